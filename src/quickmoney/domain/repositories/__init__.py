"""Repository protocol definitions for domain layer."""

from .state import StateRepository

__all__ = ["StateRepository"]
