"""SOR法による可変係数Poissonソルバーを提供するモジュール

このモジュールは、赤黒順序付けのSuccessive Over-Relaxation (SOR)法により
可変係数のPoisson方程式

    ∇・(β∇p) = rhs

を一様な2次元格子上で解きます。β はセル面で与え、壁面の面では 0
（Neumann条件）とします。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional
import logging
import numpy as np


@dataclass
class PoissonConfig:
    """Poissonソルバーの設定"""

    omega: float = 1.7
    tolerance: float = 1e-6
    max_iterations: int = 200
    check_interval: int = 10

    def validate(self) -> None:
        """設定値の妥当性を検証"""
        if not 0.0 < self.omega < 2.0:
            raise ValueError("緩和係数は0と2の間である必要があります")
        if self.tolerance <= 0:
            raise ValueError("許容誤差は正の値である必要があります")
        if self.max_iterations < 1:
            raise ValueError("最大反復回数は正の整数である必要があります")
        if self.check_interval < 1:
            raise ValueError("収束判定の間隔は正の整数である必要があります")


@dataclass
class PoissonResult:
    """Poisson方程式の求解結果"""

    solution: np.ndarray
    iterations: int
    residual: float
    converged: bool
    diagnostics: Dict[str, Any] = field(default_factory=dict)


class SORSolver:
    """赤黒SOR法による可変係数Poissonソルバー"""

    def __init__(
        self,
        config: Optional[PoissonConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """SORソルバーを初期化

        Args:
            config: ソルバー設定
            logger: ロガー（オプション）
        """
        self.config = config or PoissonConfig()
        self.config.validate()
        self._logger = logger or logging.getLogger(__name__)
        self._masks: Dict[tuple, tuple] = {}

    def solve(
        self,
        rhs: np.ndarray,
        beta_x: np.ndarray,
        beta_y: np.ndarray,
        h: float,
        initial: Optional[np.ndarray] = None,
    ) -> PoissonResult:
        """Poisson方程式を解く

        Args:
            rhs: 右辺（形状 (ny, nx)）
            beta_x: x方向の面係数（形状 (ny, nx+1)）
            beta_y: y方向の面係数（形状 (ny+1, nx)）
            h: 格子間隔
            initial: 初期推定値

        Returns:
            求解結果
        """
        ny, nx = rhs.shape
        if beta_x.shape != (ny, nx + 1) or beta_y.shape != (ny + 1, nx):
            raise ValueError("面係数の形状が右辺と一致しません")

        # Neumann条件の可解性のため右辺の平均を除去
        b = (rhs - rhs.mean()) * h * h
        p = np.zeros_like(rhs) if initial is None else initial.astype(float).copy()

        west = beta_x[:, :-1]
        east = beta_x[:, 1:]
        south = beta_y[:-1, :]
        north = beta_y[1:, :]
        diag = west + east + south + north
        if np.any(diag <= 0):
            raise ValueError("対角成分が正でないセルがあります")

        red, black = self._checkerboard(rhs.shape)
        scale = max(float(np.abs(b).max()), np.finfo(float).tiny)
        omega = self.config.omega

        residual = np.inf
        iterations = 0
        converged = False
        for iterations in range(1, self.config.max_iterations + 1):
            for mask in (red, black):
                padded = np.pad(p, 1, mode="edge")
                neighbours = (
                    west * padded[1:-1, :-2]
                    + east * padded[1:-1, 2:]
                    + south * padded[:-2, 1:-1]
                    + north * padded[2:, 1:-1]
                )
                gauss_seidel = (neighbours - b) / diag
                p[mask] = (1.0 - omega) * p[mask] + omega * gauss_seidel[mask]

            if iterations % self.config.check_interval == 0:
                residual = self._residual(p, b, west, east, south, north) / scale
                if residual < self.config.tolerance:
                    converged = True
                    break

        if not converged:
            residual = self._residual(p, b, west, east, south, north) / scale
            converged = residual < self.config.tolerance
            if not converged:
                self._logger.debug(
                    f"Poissonソルバーが収束しませんでした: 反復{iterations}回, "
                    f"残差{residual:.3e}"
                )

        p -= p.mean()
        return PoissonResult(
            solution=p,
            iterations=iterations,
            residual=float(residual),
            converged=converged,
            diagnostics={"method": "SOR", "omega": omega, "redblack": True},
        )

    @staticmethod
    def _residual(p, b, west, east, south, north) -> float:
        """離散方程式の残差の最大値"""
        padded = np.pad(p, 1, mode="edge")
        lap = (
            west * (padded[1:-1, :-2] - p)
            + east * (padded[1:-1, 2:] - p)
            + south * (padded[:-2, 1:-1] - p)
            + north * (padded[2:, 1:-1] - p)
        )
        return float(np.abs(b - lap).max())

    def _checkerboard(self, shape: tuple) -> tuple:
        """赤黒マスクの生成（形状ごとにキャッシュ）"""
        if shape not in self._masks:
            jj, ii = np.indices(shape)
            red = (ii + jj) % 2 == 0
            self._masks[shape] = (red, ~red)
        return self._masks[shape]
