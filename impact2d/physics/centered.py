"""
二相流の射影法ソルバー

適応格子の葉セル上の場を最大レベルの一様格子に展開し、
1時間ステップ進めてから葉セルへ面積平均で書き戻します。

1ステップの手順:
1. CFL条件・表面張力波・粘性拡散から時間刻み幅を決定
2. 体積分率を方向分離スキームで移流
3. 密度・粘性を体積分率の算術平均で評価
4. 移流項（一次風上）と粘性項による予測速度
5. 面速度に表面張力加速度を加え、∇・(β∇p) = ∇・u*/Δt を解いて射影
   （β = 1/ρ、セル面上で評価）
6. セル中心速度を面加速度の平均で補正

境界条件: 下端は滑りなし壁（f = 0）、その他は滑り壁。
"""

import logging
from typing import Any, Dict, Optional, Tuple
import numpy as np

from ..core.field import FieldRegistry
from ..numerics.poisson import PoissonConfig, SORSolver
from .properties import FluidProperties, mix
from .surface_tension import SurfaceTensionModel
from .vof import advect_fraction


class SolverError(RuntimeError):
    """流体ソルバーの時間積分に失敗した場合の例外"""


class CenteredSolver:
    """セル中心配置の射影法ソルバー

    Attributes:
        fields: 物理場レジストリ（"f", "u", "p" を使用）
        max_level: 計算に用いる一様格子のレベル
        cfl: CFL数
    """

    def __init__(
        self,
        fields: FieldRegistry,
        max_level: int,
        cfl: float = 0.5,
        poisson: Optional[PoissonConfig] = None,
        curvature_smoothing: int = 2,
        logger: Optional[logging.Logger] = None,
    ):
        """ソルバーを初期化

        Args:
            fields: 物理場レジストリ
            max_level: 一様格子のレベル
            cfl: CFL数
            poisson: 圧力Poissonソルバーの設定
            curvature_smoothing: 曲率計算前の平滑化回数
            logger: ロガー
        """
        if not 0.0 < cfl <= 1.0:
            raise ValueError("CFL数は0より大きく1以下である必要があります")
        for name in ("f", "u", "p"):
            if name not in fields:
                raise ValueError(f"ソルバーに必要な場 {name!r} が宣言されていません")

        self.fields = fields
        self.max_level = int(max_level)
        self.cfl = float(cfl)
        self.logger = logger or logging.getLogger(__name__)

        self._poisson = SORSolver(poisson, logger=self.logger)
        self._curvature_smoothing = curvature_smoothing
        self._liquid: Optional[FluidProperties] = None
        self._gas: Optional[FluidProperties] = None
        self._surface_tension = SurfaceTensionModel(0.0, curvature_smoothing)
        self._step = 0
        self._diagnostics: Dict[str, Any] = {}

    def set_fluid_properties(
        self, liquid: FluidProperties, gas: FluidProperties
    ) -> None:
        """液相（f = 1）と気相（f = 0）の物性値を設定"""
        self._liquid = liquid
        self._gas = gas

    def set_surface_tension(self, sigma: float) -> None:
        """表面張力係数を設定"""
        self._surface_tension = SurfaceTensionModel(sigma, self._curvature_smoothing)

    @property
    def grid_spacing(self) -> float:
        mesh = self.fields.mesh
        return mesh.size / 2**self.max_level

    def advance_one_step(self, clock, dt_max: float = np.inf) -> float:
        """1時間ステップ進める

        Args:
            clock: 実行クロック（advance(dt) を持つ）
            dt_max: 時間刻み幅の上限（次のイベント時刻まで）

        Returns:
            実際に用いた時間刻み幅

        Raises:
            SolverError: 物性値が未設定、または解が発散した場合
        """
        if self._liquid is None or self._gas is None:
            raise SolverError("流体の物性値が設定されていません")

        mesh = self.fields.mesh
        owner = mesh.owner_map(max(self.max_level, mesh.max_level))
        h = mesh.size / owner.shape[0]

        f = self.fields.values("f")[owner]
        ux = self.fields.values("u.x")[owner]
        uy = self.fields.values("u.y")[owner]
        p = self.fields.values("p")[owner]

        dt = self._timestep(ux, uy, h, dt_max)

        u_face, v_face = self._face_velocities(ux, uy)
        f_new = advect_fraction(f, u_face, v_face, dt, h, x_first=self._step % 2 == 0)

        rho = mix(f_new, self._liquid.density, self._gas.density)
        mu = mix(f_new, self._liquid.viscosity, self._gas.viscosity)

        ux_star = ux + dt * self._momentum_rhs(ux, ux, uy, rho, mu, h, "x")
        uy_star = uy + dt * self._momentum_rhs(uy, ux, uy, rho, mu, h, "y")

        beta_x, beta_y = self._face_coefficients(rho)
        st_x, st_y = self._surface_tension.face_accelerations(
            f_new, beta_x, beta_y, h
        )

        u_face, v_face = self._face_velocities(ux_star, uy_star)
        u_face += dt * st_x
        v_face += dt * st_y

        divergence = (
            u_face[:, 1:] - u_face[:, :-1] + v_face[1:, :] - v_face[:-1, :]
        ) / h
        result = self._poisson.solve(divergence / dt, beta_x, beta_y, h, initial=p)
        p_new = result.solution

        gp_x = np.zeros_like(beta_x)
        gp_y = np.zeros_like(beta_y)
        gp_x[:, 1:-1] = beta_x[:, 1:-1] * (p_new[:, 1:] - p_new[:, :-1]) / h
        gp_y[1:-1, :] = beta_y[1:-1, :] * (p_new[1:, :] - p_new[:-1, :]) / h

        accel_x = st_x - gp_x
        accel_y = st_y - gp_y
        ux_new = ux_star + dt * 0.5 * (accel_x[:, 1:] + accel_x[:, :-1])
        uy_new = uy_star + dt * 0.5 * (accel_y[1:, :] + accel_y[:-1, :])

        for name, data in (("f", f_new), ("u.x", ux_new), ("u.y", uy_new), ("p", p_new)):
            if not np.all(np.isfinite(data)):
                raise SolverError(f"場 {name!r} に非有限値が発生しました (t={clock.t:g})")

        self._write_back(owner, "f", np.clip(f_new, 0.0, 1.0))
        self._write_back(owner, "u.x", ux_new)
        self._write_back(owner, "u.y", uy_new)
        self._write_back(owner, "p", p_new)

        self._step += 1
        self._diagnostics = {
            "dt": dt,
            "max_velocity": float(max(np.abs(ux_new).max(), np.abs(uy_new).max())),
            "poisson_iterations": result.iterations,
            "poisson_residual": result.residual,
            "poisson_converged": result.converged,
            **self._surface_tension.get_diagnostics(),
        }
        clock.advance(dt)
        return dt

    def get_diagnostics(self) -> Dict[str, Any]:
        """直前のステップの診断情報を取得"""
        return dict(self._diagnostics)

    def _timestep(self, ux, uy, h: float, dt_max: float) -> float:
        """時間刻み幅を決定"""
        dt = float(dt_max)
        umax = float(max(np.abs(ux).max(), np.abs(uy).max()))
        if umax > 0.0:
            dt = min(dt, self.cfl * h / umax)

        rho_mean = 0.5 * (self._liquid.density + self._gas.density)
        dt = min(dt, self._surface_tension.capillary_timestep(rho_mean, h))

        nu_max = max(
            self._liquid.viscosity / self._liquid.density,
            self._gas.viscosity / self._gas.density,
        )
        dt = min(dt, 0.25 * h * h / nu_max)

        if not np.isfinite(dt) or dt <= 0.0:
            raise SolverError(f"無効な時間刻み幅です: {dt}")
        return dt

    @staticmethod
    def _face_velocities(ux: np.ndarray, uy: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """セル中心速度から面の法線速度を補間（壁面では 0）"""
        ny, nx = ux.shape
        u_face = np.zeros((ny, nx + 1))
        v_face = np.zeros((ny + 1, nx))
        u_face[:, 1:-1] = 0.5 * (ux[:, 1:] + ux[:, :-1])
        v_face[1:-1, :] = 0.5 * (uy[1:, :] + uy[:-1, :])
        return u_face, v_face

    @staticmethod
    def _face_coefficients(rho: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """面上の β = 1/ρ（壁面では 0）"""
        ny, nx = rho.shape
        beta_x = np.zeros((ny, nx + 1))
        beta_y = np.zeros((ny + 1, nx))
        beta_x[:, 1:-1] = 2.0 / (rho[:, 1:] + rho[:, :-1])
        beta_y[1:-1, :] = 2.0 / (rho[1:, :] + rho[:-1, :])
        return beta_x, beta_y

    def _momentum_rhs(self, q, ux, uy, rho, mu, h: float, component: str) -> np.ndarray:
        """移流項と粘性項 -(u・∇)q + ∇・(μ∇q)/ρ"""
        padded = self._pad_velocity(q, component)
        centre = padded[1:-1, 1:-1]
        west = padded[1:-1, :-2]
        east = padded[1:-1, 2:]
        south = padded[:-2, 1:-1]
        north = padded[2:, 1:-1]

        advection = np.where(ux > 0.0, ux * (centre - west), ux * (east - centre)) / h
        advection += np.where(uy > 0.0, uy * (centre - south), uy * (north - centre)) / h

        mu_p = np.pad(mu, 1, mode="edge")
        mu_w = 0.5 * (mu_p[1:-1, :-2] + mu)
        mu_e = 0.5 * (mu_p[1:-1, 2:] + mu)
        mu_s = 0.5 * (mu_p[:-2, 1:-1] + mu)
        mu_n = 0.5 * (mu_p[2:, 1:-1] + mu)
        viscous = (
            mu_e * (east - centre)
            - mu_w * (centre - west)
            + mu_n * (north - centre)
            - mu_s * (centre - south)
        ) / (h * h)

        return -advection + viscous / rho

    @staticmethod
    def _pad_velocity(q: np.ndarray, component: str) -> np.ndarray:
        """速度成分にゴーストセルを付加

        壁面の法線成分は反対称（速度 0）、下端の接線成分も反対称（滑りなし）、
        その他の接線成分は対称（滑り壁）とします。
        """
        padded = np.pad(q, 1, mode="edge")
        if component == "x":
            padded[1:-1, 0] = -q[:, 0]
            padded[1:-1, -1] = -q[:, -1]
            padded[0, 1:-1] = -q[0, :]
        else:
            padded[0, 1:-1] = -q[0, :]
            padded[-1, 1:-1] = -q[-1, :]
        return padded

    def _write_back(self, owner: np.ndarray, name: str, grid: np.ndarray) -> None:
        """一様格子の値を葉セルごとの面積平均として書き戻す"""
        n_cells = self.fields.mesh.n_cells
        flat_owner = owner.ravel()
        counts = np.bincount(flat_owner, minlength=n_cells)
        sums = np.bincount(flat_owner, weights=grid.ravel(), minlength=n_cells)
        self.fields.set_values(name, sums / np.maximum(counts, 1))
