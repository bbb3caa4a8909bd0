"""Error codes, request context, sessions, authenticators, rate limiters, JSON responses and middleware for web services."""

__version__ = "0.1.0"