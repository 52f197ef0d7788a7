# src/squashrank/middleware/__init__.py

"""Middleware components for SquashRank API."""

from .logging import RequestLoggingMiddleware

__all__ = ["RequestLoggingMiddleware"]
