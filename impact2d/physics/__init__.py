"""物理モデルパッケージ

物性値、体積分率、表面張力、射影法ソルバーを提供します。
"""

from .properties import FluidProperties, DerivedNumbers, mix, c_round
from .vof import fraction_from_levelset, circle, advect_fraction
from .surface_tension import SurfaceTensionModel
from .centered import CenteredSolver, SolverError

__all__ = [
    "FluidProperties",
    "DerivedNumbers",
    "mix",
    "c_round",
    "fraction_from_levelset",
    "circle",
    "advect_fraction",
    "SurfaceTensionModel",
    "CenteredSolver",
    "SolverError",
]
