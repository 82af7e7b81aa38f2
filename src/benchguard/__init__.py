__version__ = "0.1.0.dev0"

from .config import BenchConfig, RunConfiguration
from .orchestrator import Orchestrator, needs_baseline_build
from .repo import CheckoutGuard, GitRepo

__all__ = [
    "__version__",
    "BenchConfig",
    "CheckoutGuard",
    "GitRepo",
    "Orchestrator",
    "RunConfiguration",
    "needs_baseline_build",
]
