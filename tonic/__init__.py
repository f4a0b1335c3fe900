"""Per-request context, error collection, debug output, content negotiation and file system helpers."""

__version__ = "0.1.0"
__all__ = ["context", "debug", "errors", "fs", "http", "negotiation"]