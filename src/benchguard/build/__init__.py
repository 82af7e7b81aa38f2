from .driver import BuildDriver

__all__ = ["BuildDriver"]
