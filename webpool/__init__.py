"""A small HTTP server that serves connections from a self-sizing pool of worker threads."""

__version__ = "0.1.0"
__all__ = ["__version__"]