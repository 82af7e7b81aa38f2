from .core import GitRepo, WorkingTreeState
from .guard import CheckoutGuard, GuardState

__all__ = ["CheckoutGuard", "GitRepo", "GuardState", "WorkingTreeState"]
