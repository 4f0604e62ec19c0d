"""Bundled authorization and analytics providers."""
