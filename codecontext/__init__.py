"""codecontext: local codebase intelligence for language-model assistants."""

from __future__ import annotations

__version__ = "0.3.0"

from .engine import CodeContextEngine

__all__ = ["CodeContextEngine", "__version__"]
