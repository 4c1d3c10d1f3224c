"""Tests for core/activity.py (bounded activity log)."""

from __future__ import annotations

import logging

from claudemeter.core.activity import ActivityLog


class TestActivityLog:
    """Tests for ActivityLog."""

    def test_entries_are_timestamped(self, clock, utc_now):
        """Entries use the injected clock."""
        log = ActivityLog(clock=clock)
        entry = log.add("Polling started")

        assert entry.timestamp == utc_now
        assert entry.message == "Polling started"
        assert log.entries() == [entry]

    def test_bounded_to_max_entries(self, clock):
        """Only the newest max_entries messages are kept."""
        log = ActivityLog(max_entries=50, clock=clock)
        for i in range(60):
            log.add(f"message {i}")

        entries = log.entries()
        assert len(log) == 50
        assert entries[0].message == "message 10"
        assert entries[-1].message == "message 59"

    def test_entries_limit(self, clock):
        """entries(limit) returns the newest entries."""
        log = ActivityLog(clock=clock)
        for i in range(5):
            log.add(f"message {i}")

        assert [e.message for e in log.entries(2)] == ["message 3", "message 4"]
        assert log.entries(0) == []

    def test_listener_receives_messages(self, clock, utc_now):
        """The listener gets each message with its timestamp."""
        received = []
        log = ActivityLog(clock=clock, listener=lambda m, t: received.append((m, t)))

        log.add("Fetch OK")

        assert received == [("Fetch OK", utc_now)]

    def test_failing_listener_is_contained(self, clock, caplog):
        """A broken listener does not lose the entry."""

        def broken(message, timestamp):
            raise RuntimeError("renderer gone")

        log = ActivityLog(clock=clock, listener=broken)
        log.add("still recorded")

        assert len(log) == 1
        assert "Log listener failed" in caplog.text

    def test_mirrors_to_logging(self, clock, caplog):
        """Messages are forwarded to the claudemeter.activity logger."""
        log = ActivityLog(clock=clock)
        with caplog.at_level(logging.INFO, logger="claudemeter.activity"):
            log.add("Session expired (HTTP 401)", logging.WARNING)

        record = caplog.records[-1]
        assert record.name == "claudemeter.activity"
        assert record.levelno == logging.WARNING
        assert record.getMessage() == "Session expired (HTTP 401)"

    def test_clear(self, clock):
        log = ActivityLog(clock=clock)
        log.add("x")
        log.clear()
        assert len(log) == 0
