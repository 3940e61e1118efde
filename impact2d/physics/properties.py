"""流体の物性値と無次元数を管理するモジュール

このモジュールは、二相流体の物性値（密度、粘性係数）と、
初期条件から計算されるレイノルズ数・ウェーバー数を提供します。
"""

from dataclasses import dataclass
from typing import Tuple
import math
import numpy as np


@dataclass(frozen=True)
class FluidProperties:
    """流体の物性値を保持するクラス

    Attributes:
        density: 密度 [kg/m³]
        viscosity: 粘性係数 [Pa·s]
    """

    density: float
    viscosity: float

    def __post_init__(self):
        """物性値の妥当性チェック"""
        if self.density <= 0:
            raise ValueError("密度は正の値である必要があります")
        if self.viscosity <= 0:
            raise ValueError("粘性係数は正の値である必要があります")


def mix(fraction: np.ndarray, liquid: float, gas: float) -> np.ndarray:
    """体積分率による物性値の算術平均"""
    f = np.clip(fraction, 0.0, 1.0)
    return f * liquid + (1.0 - f) * gas


def c_round(value: float) -> int:
    """0から遠い方向への四捨五入"""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


@dataclass(frozen=True)
class DerivedNumbers:
    """液滴衝突の無次元数

    Attributes:
        reynolds: Re = ρ_l U₀ D / μ_l
        weber: We = ρ_l D U₀² / σ
    """

    reynolds: float
    weber: float

    @classmethod
    def compute(
        cls,
        density: float,
        velocity: float,
        diameter: float,
        viscosity: float,
        surface_tension: float,
    ) -> "DerivedNumbers":
        """物性値と衝突条件から無次元数を計算

        Args:
            density: 液相の密度
            velocity: 衝突速度
            diameter: 液滴直径
            viscosity: 液相の粘性係数
            surface_tension: 表面張力係数

        Returns:
            計算された無次元数
        """
        if min(density, velocity, diameter, viscosity, surface_tension) <= 0:
            raise ValueError("無次元数の計算には正の物理量が必要です")
        return cls(
            reynolds=density * velocity * diameter / viscosity,
            weber=density * diameter * velocity**2 / surface_tension,
        )

    @classmethod
    def from_config(cls, config) -> "DerivedNumbers":
        """シミュレーション設定から無次元数を計算"""
        return cls.compute(
            density=config.phases.liquid.density,
            velocity=config.droplet.impact_velocity,
            diameter=config.droplet.diameter,
            viscosity=config.phases.liquid.viscosity,
            surface_tension=config.physics.surface_tension,
        )

    def rounded(self) -> Tuple[int, int]:
        """整数に丸めた (Re, We)"""
        return c_round(self.reynolds), c_round(self.weber)
