"""Personal task tracker with anonymous sessions and owner-scoped task rows."""

__version__ = "0.1.0"
