"""適応格子パッケージ

ウェーブレット誤差推定、場の補間、適応格子エンジンを提供します。
"""

from .engine import WaveletAdaptivity, AdaptResult, RefinePredicate
from .prolongation import prolong, restrict, remap_values
from .wavelet import wavelet_error, limited_slopes, minmod

__all__ = [
    "WaveletAdaptivity",
    "AdaptResult",
    "RefinePredicate",
    "prolong",
    "restrict",
    "remap_values",
    "wavelet_error",
    "limited_slopes",
    "minmod",
]
