from .runner import HarnessRunner

__all__ = ["HarnessRunner"]
