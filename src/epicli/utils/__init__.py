"""Small shared helpers."""

from .slug import safe_dirname

__all__ = ["safe_dirname"]
