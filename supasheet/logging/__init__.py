"""Logging setup and the JSON Lines error log."""
