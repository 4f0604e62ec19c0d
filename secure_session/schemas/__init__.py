"""Pydantic models shared across the package."""

from .http import Request, Response

__all__ = ["Request", "Response"]
