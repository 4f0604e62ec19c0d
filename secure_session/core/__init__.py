"""
Core helpers for the secure session.

This package contains the header decoration, challenge detection and
reauthorization logic together with configuration and the collaborator
contracts.  Nothing here performs network I/O directly.
"""

__all__ = []
