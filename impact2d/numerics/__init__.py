"""数値計算パッケージ

適応格子エンジンとPoissonソルバーを提供します。
"""

from .adaptivity import WaveletAdaptivity, AdaptResult
from .poisson import SORSolver, PoissonConfig, PoissonResult

__all__ = [
    "WaveletAdaptivity",
    "AdaptResult",
    "SORSolver",
    "PoissonConfig",
    "PoissonResult",
]
