"""Built-in distribution definitions."""

__all__ = ["arch"]