"""適応格子上の場をフレーム画像として描画するモジュール

葉セルの値を最大レベルの一様格子に展開し、matplotlib で描画します。
pyplot の状態を使わずに Figure を直接生成するため、
バックエンドに依存せずバッチ実行できます。
"""

from typing import Optional, Tuple
import numpy as np
from matplotlib.figure import Figure
from matplotlib.axes import Axes

from ..core import Domain, FieldRegistry


class FrameRenderer:
    """フレーム画像の描画器

    描画は set_view → clear → draw_vof / squares / box → save の順に行います。
    """

    def __init__(
        self,
        fields: FieldRegistry,
        domain: Domain,
        dpi: int = 100,
        cmap: str = "jet",
    ):
        """描画器を初期化

        Args:
            fields: 物理場レジストリ
            domain: 計算領域
            dpi: 画像の解像度
            cmap: カラーマップ
        """
        self.fields = fields
        self.domain = domain
        self.dpi = dpi
        self.cmap = cmap
        self._view = {"tx": 0.0, "ty": 0.0, "width": 800, "height": 800}
        self._figure: Optional[Figure] = None
        self._ax: Optional[Axes] = None

    def set_view(
        self, tx: float = 0.0, ty: float = 0.0, width: int = 800, height: int = 800
    ) -> None:
        """視点を設定

        表示範囲は中心 (-tx·L, -ty·L)、一辺 L の正方形です（L は領域サイズ）。

        Args:
            tx, ty: 領域サイズで正規化した平行移動量
            width, height: 画像サイズ [pixel]
        """
        if width < 1 or height < 1:
            raise ValueError("画像サイズは正である必要があります")
        self._view = {"tx": tx, "ty": ty, "width": width, "height": height}

    @property
    def window(self) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        """表示範囲 ((xmin, xmax), (ymin, ymax))"""
        length = self.domain.size
        cx = -self._view["tx"] * length
        cy = -self._view["ty"] * length
        half = 0.5 * length
        return (cx - half, cx + half), (cy - half, cy + half)

    def clear(self) -> None:
        """新しい図を用意"""
        width = self._view["width"] / self.dpi
        height = self._view["height"] / self.dpi
        self._figure = Figure(figsize=(width, height), dpi=self.dpi)
        self._ax = self._figure.add_axes((0.0, 0.0, 1.0, 1.0))
        self._ax.set_axis_off()
        (xmin, xmax), (ymin, ymax) = self.window
        self._ax.set_xlim(xmin, xmax)
        self._ax.set_ylim(ymin, ymax)
        self._ax.set_aspect("equal")

    def draw_vof(self, name: str) -> None:
        """体積分率の 0.5 等値線（界面）を描画"""
        grid = self._raster(name)
        if grid.min() >= 0.5 or grid.max() <= 0.5:
            return
        x, y = self._coordinates(grid.shape[0])
        self._axes().contour(x, y, grid, levels=[0.5], colors="black", linewidths=1.0)

    def squares(self, name: str, linear: bool = True, spread: float = 10.0) -> None:
        """場の値をカラーマップで塗りつぶし描画

        Args:
            name: 場または成分の名前
            linear: 色を線形補間するかどうか
            spread: 色の範囲（平均 ± spread·標準偏差、負なら最小〜最大）
        """
        grid = self._raster(name)
        vmin, vmax = self._color_range(name, spread)
        (xmin, xmax), (ymin, ymax) = self.domain.extent
        self._axes().imshow(
            grid,
            origin="lower",
            extent=(xmin, xmax, ymin, ymax),
            cmap=self.cmap,
            vmin=vmin,
            vmax=vmax,
            interpolation="bilinear" if linear else "nearest",
            zorder=0,
        )

    def box(self) -> None:
        """領域の境界を描画"""
        (xmin, xmax), (ymin, ymax) = self.domain.extent
        self._axes().plot(
            [xmin, xmax, xmax, xmin, xmin],
            [ymin, ymin, ymax, ymax, ymin],
            color="black",
            linewidth=1.0,
        )

    def save(self, path: str) -> None:
        """図をファイルに保存して破棄"""
        if self._figure is None:
            self.clear()
        try:
            self._figure.savefig(path, dpi=self.dpi)
        finally:
            self._figure = None
            self._ax = None

    def _axes(self) -> Axes:
        if self._ax is None:
            self.clear()
        return self._ax

    def _raster(self, name: str) -> np.ndarray:
        """葉セルの値を最大レベルの一様格子に展開（行が y、列が x）"""
        owner = self.fields.mesh.owner_map()
        return self.fields.values(name)[owner]

    def _coordinates(self, n: int) -> Tuple[np.ndarray, np.ndarray]:
        x0, y0 = self.domain.origin
        h = self.domain.size / n
        centers = (np.arange(n) + 0.5) * h
        return x0 + centers, y0 + centers

    def _color_range(self, name: str, spread: float) -> Tuple[float, float]:
        values = self.fields.values(name)
        if spread < 0:
            vmin, vmax = float(values.min()), float(values.max())
        else:
            stats = self.fields.statistics(name)
            areas = self.fields.mesh.areas()
            variance = np.sum((values - stats["mean"]) ** 2 * areas) / np.sum(areas)
            std = float(np.sqrt(variance))
            vmin, vmax = stats["mean"] - spread * std, stats["mean"] + spread * std
        if vmax <= vmin:
            vmin, vmax = vmin - 0.5, vmax + 0.5
        return vmin, vmax
