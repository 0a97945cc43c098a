"""Task management API: rate limiting and token lifecycle."""

__version__ = "1.0.0"
