"""Voice assistant command dispatch service."""

__version__ = "0.1.0"
