"""計算領域を定義するモジュール"""

from dataclasses import dataclass
from typing import Tuple
import math

from .mesh import QuadTreeMesh


@dataclass(frozen=True)
class Domain:
    """正方形の計算領域

    Attributes:
        origin: 左下座標。x方向は領域中心が 0 になるように配置
        size: 一辺の長さ
        base_level: 基本格子のレベル（基本格子数 = 2**base_level）
    """

    origin: Tuple[float, float]
    size: float
    base_level: int

    @classmethod
    def configure(cls, box_length: float, base_grid_resolution: int) -> "Domain":
        """領域の大きさと基本格子数から領域を構築

        原点は (-box_length/2, 0) に置かれます。

        Args:
            box_length: 領域の一辺の長さ
            base_grid_resolution: 基本格子数（2のべき乗）

        Returns:
            構築された計算領域
        """
        if box_length <= 0:
            raise ValueError("領域サイズは正の値である必要があります")
        if base_grid_resolution < 1 or (
            base_grid_resolution & (base_grid_resolution - 1)
        ):
            raise ValueError(
                f"基本格子数は2のべき乗である必要があります: {base_grid_resolution}"
            )

        base_level = int(round(math.log2(base_grid_resolution)))
        return cls(
            origin=(-box_length / 2.0, 0.0), size=float(box_length), base_level=base_level
        )

    @property
    def base_resolution(self) -> int:
        return 2**self.base_level

    @property
    def extent(self) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        """((xmin, xmax), (ymin, ymax))"""
        x0, y0 = self.origin
        return (x0, x0 + self.size), (y0, y0 + self.size)

    def contains(self, x: float, y: float) -> bool:
        (xmin, xmax), (ymin, ymax) = self.extent
        return xmin <= x <= xmax and ymin <= y <= ymax

    def cell_size(self, level: int) -> float:
        """指定レベルのセル幅"""
        return self.size / 2**level

    def create_mesh(self) -> QuadTreeMesh:
        """基本格子で初期化された適応格子を生成"""
        return QuadTreeMesh(self.origin, self.size, self.base_level)
