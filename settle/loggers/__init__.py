from __future__ import annotations

from .context import ContextLogger

__all__ = ["ContextLogger"]
