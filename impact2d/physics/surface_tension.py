"""
表面張力の計算を担当するモジュール

体積分率から界面曲率を求め、連続表面力（CSF）モデルによる表面張力を
セル面上の加速度として計算します。圧力勾配と同じ面上で評価するため、
静止液滴での圧力と表面張力の釣り合いが保たれます。

F_st = σκ∇f

ここで:
- σ: 表面張力係数
- κ: 曲率 (= -∇・(∇f̃/|∇f̃|))、f̃ は平滑化した体積分率
"""

from typing import Any, Dict, Tuple
import numpy as np
from scipy import ndimage


class SurfaceTensionModel:
    """CSFモデルによる表面張力"""

    def __init__(self, coefficient: float, smoothing_passes: int = 2):
        """
        Args:
            coefficient: 表面張力係数 [N/m]
            smoothing_passes: 曲率計算前の平滑化回数
        """
        if coefficient < 0:
            raise ValueError("表面張力係数は非負である必要があります")
        self.sigma = float(coefficient)
        self.smoothing_passes = int(smoothing_passes)
        self._diagnostics: Dict[str, Any] = {}

    def curvature(self, fraction: np.ndarray, h: float) -> np.ndarray:
        """界面曲率を計算

        Args:
            fraction: 体積分率（形状 (ny, nx)）
            h: 格子間隔

        Returns:
            セル中心の曲率（|κ| ≤ 1/h に制限）
        """
        smoothed = fraction.astype(float)
        for _ in range(self.smoothing_passes):
            smoothed = ndimage.uniform_filter(smoothed, size=3, mode="nearest")

        gy, gx = np.gradient(smoothed, h)
        norm = np.hypot(gx, gy)
        threshold = 1e-8 / h
        with np.errstate(divide="ignore", invalid="ignore"):
            nx = np.where(norm > threshold, gx / norm, 0.0)
            ny = np.where(norm > threshold, gy / norm, 0.0)

        kappa = -(np.gradient(nx, h, axis=1) + np.gradient(ny, h, axis=0))
        return np.clip(kappa, -1.0 / h, 1.0 / h)

    def face_accelerations(
        self,
        fraction: np.ndarray,
        beta_x: np.ndarray,
        beta_y: np.ndarray,
        h: float,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """セル面上の表面張力加速度を計算

        Args:
            fraction: 体積分率（形状 (ny, nx)）
            beta_x: x方向の面上の 1/ρ（形状 (ny, nx+1)）
            beta_y: y方向の面上の 1/ρ（形状 (ny+1, nx)）
            h: 格子間隔

        Returns:
            (x方向の面加速度, y方向の面加速度)
        """
        ax = np.zeros_like(beta_x)
        ay = np.zeros_like(beta_y)
        if self.sigma == 0.0:
            return ax, ay

        kappa = self.curvature(fraction, h)

        kappa_x = 0.5 * (kappa[:, 1:] + kappa[:, :-1])
        grad_x = (fraction[:, 1:] - fraction[:, :-1]) / h
        ax[:, 1:-1] = self.sigma * kappa_x * grad_x * beta_x[:, 1:-1]

        kappa_y = 0.5 * (kappa[1:, :] + kappa[:-1, :])
        grad_y = (fraction[1:, :] - fraction[:-1, :]) / h
        ay[1:-1, :] = self.sigma * kappa_y * grad_y * beta_y[1:-1, :]

        self._diagnostics = {
            "surface_tension_coefficient": self.sigma,
            "max_curvature": float(np.max(np.abs(kappa))),
        }
        return ax, ay

    def capillary_timestep(self, density_mean: float, h: float) -> float:
        """表面張力波に対する時間刻み幅の上限 sqrt(ρ h³ / (π σ))"""
        if self.sigma == 0.0:
            return np.inf
        return float(np.sqrt(density_mean * h**3 / (np.pi * self.sigma)))

    def get_diagnostics(self) -> Dict[str, Any]:
        """診断情報を取得"""
        return dict(self._diagnostics)
