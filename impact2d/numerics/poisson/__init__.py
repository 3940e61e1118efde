"""Poissonソルバーパッケージ"""

from .sor import SORSolver, PoissonConfig, PoissonResult

__all__ = ["SORSolver", "PoissonConfig", "PoissonResult"]
