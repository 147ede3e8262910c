"""Layered web application skeleton with JWT auth, Redis caching, MySQL access and scheduled jobs."""

__version__ = "0.1.0"