"""CLI commands for claudemeter."""
