from .git import GitRepo, WorkingTreeState

__all__ = ["GitRepo", "WorkingTreeState"]
