"""
Backend package for Firefly Grove.

This package provides a FastAPI application with storage, queue and
database abstractions for memorial branches, memories and heir releases.
"""
