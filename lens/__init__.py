"""Command-line entry points for SessionLens."""
