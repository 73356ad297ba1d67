"""SessionLens: behavioral pattern detection for coding-assistant sessions."""

__version__ = "0.1.0"
