"""
Optional inference backends for bubble_kit.

Kept apart from the decoding modules so post-processing can be used without
installing an inference runtime.
"""

from __future__ import annotations

__all__ = []
