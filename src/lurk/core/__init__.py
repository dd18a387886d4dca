"""Core configuration, clock and error definitions."""
