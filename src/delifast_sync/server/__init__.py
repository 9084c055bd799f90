"""HTTP server module."""
