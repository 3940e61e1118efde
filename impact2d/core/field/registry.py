"""格子上の名前付き物理場を管理するモジュール

このモジュールは、適応格子の葉セル上に配置されたスカラー場・ベクトル場を
名前で管理するレジストリを提供します。ベクトル場の成分は "u.x", "u.y" の
ように成分名でも参照できます。
"""

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple
import numpy as np

from ..mesh import QuadTreeMesh

# 格子変更時の補間方法
PROLONGATION_STRATEGIES = ("fraction", "linear", "injection")

COMPONENT_NAMES = ("x", "y")


@dataclass
class MeshField:
    """葉セル上の物理場

    Attributes:
        name: 場の名前
        rank: 0 ならスカラー、1 ならベクトル
        data: 値の配列。スカラーは (n,)、ベクトルは (n, 2)
        prolongation: セル分割時の補間方法
    """

    name: str
    rank: int
    data: np.ndarray
    prolongation: str = "linear"

    @property
    def component_names(self) -> List[str]:
        if self.rank == 0:
            return [self.name]
        return [f"{self.name}.{c}" for c in COMPONENT_NAMES]


class FieldRegistry:
    """名前付き物理場のレジストリ

    場の値は常に格子の葉セル配列と同じ順序で保持されます。
    """

    def __init__(self, mesh: QuadTreeMesh):
        """レジストリを初期化

        Args:
            mesh: 場を配置する適応格子
        """
        self._mesh = mesh
        self._fields: Dict[str, MeshField] = {}

    @property
    def mesh(self) -> QuadTreeMesh:
        return self._mesh

    @property
    def names(self) -> List[str]:
        """宣言順の場の名前"""
        return list(self._fields)

    def __contains__(self, name: str) -> bool:
        try:
            self._resolve(name)
        except KeyError:
            return False
        return True

    def __iter__(self) -> Iterator[MeshField]:
        return iter(self._fields.values())

    def declare_field(
        self, name: str, rank: int = 0, prolongation: str = "linear"
    ) -> MeshField:
        """場を宣言してゼロで初期化

        Args:
            name: 場の名前（"." を含めない）
            rank: 0（スカラー）または 1（ベクトル）
            prolongation: セル分割時の補間方法

        Returns:
            宣言された場
        """
        if not name or "." in name:
            raise ValueError(f"無効な場の名前です: {name!r}")
        if name in self._fields:
            raise ValueError(f"場 {name!r} は既に宣言されています")
        if rank not in (0, 1):
            raise ValueError(f"rankは0または1である必要があります: {rank}")
        self._check_strategy(prolongation)

        shape = (self._mesh.n_cells,) if rank == 0 else (self._mesh.n_cells, 2)
        mesh_field = MeshField(
            name=name, rank=rank, data=np.zeros(shape), prolongation=prolongation
        )
        self._fields[name] = mesh_field
        return mesh_field

    def get(self, name: str) -> MeshField:
        """場を取得（成分名は不可）"""
        if name not in self._fields:
            raise KeyError(f"未宣言の場です: {name!r}")
        return self._fields[name]

    def values(self, name: str) -> np.ndarray:
        """場または成分の値を取得

        Args:
            name: 場の名前または成分名（例: "u.y"）

        Returns:
            値の配列（ビュー）
        """
        mesh_field, component = self._resolve(name)
        if component is None:
            return mesh_field.data
        return mesh_field.data[:, component]

    def component(self, name: str, index: int) -> str:
        """ベクトル場の成分名を取得（例: component("u", 1) -> "u.y"）"""
        mesh_field = self.get(name)
        if mesh_field.rank != 1:
            raise ValueError(f"場 {name!r} はベクトル場ではありません")
        return mesh_field.component_names[index]

    def set_values(self, name: str, values: np.ndarray) -> None:
        """場または成分の値を設定

        Args:
            name: 場の名前または成分名
            values: 設定する値（スカラーまたは配列）
        """
        mesh_field, component = self._resolve(name)
        if component is None:
            target = mesh_field.data
        else:
            target = mesh_field.data[:, component]
        values = np.broadcast_to(np.asarray(values, dtype=float), target.shape)
        target[...] = values

    def replace_data(self, name: str, data: np.ndarray) -> None:
        """格子変更後の新しい値配列で置き換え"""
        mesh_field = self.get(name)
        expected = 1 + mesh_field.rank
        if data.ndim != expected or data.shape[0] != self._mesh.n_cells:
            raise ValueError(
                f"場 {name!r} の形状 {data.shape} が葉セル数 {self._mesh.n_cells} と一致しません"
            )
        mesh_field.data = data

    def set_prolongation(self, name: str, strategy: str) -> None:
        """セル分割時の補間方法を登録"""
        self._check_strategy(strategy)
        self.get(name).prolongation = strategy

    def integrate(self, name: str) -> float:
        """セル面積で重み付けした総和"""
        return float(np.sum(self.values(name) * self._mesh.areas()))

    def statistics(self, name: str) -> Dict[str, float]:
        """場の最小値・最大値・面積平均"""
        values = self.values(name)
        areas = self._mesh.areas()
        return {
            "min": float(values.min()),
            "max": float(values.max()),
            "mean": float(np.sum(values * areas) / np.sum(areas)),
        }

    def _resolve(self, name: str) -> Tuple[MeshField, Optional[int]]:
        if name in self._fields:
            return self._fields[name], None

        base, _, suffix = name.partition(".")
        if base in self._fields and suffix in COMPONENT_NAMES:
            mesh_field = self._fields[base]
            if mesh_field.rank == 1:
                return mesh_field, COMPONENT_NAMES.index(suffix)
        raise KeyError(f"未宣言の場です: {name!r}")

    @staticmethod
    def _check_strategy(strategy: str) -> None:
        if strategy not in PROLONGATION_STRATEGIES:
            raise ValueError(
                f"未知の補間方法です: {strategy!r}（有効な値: {PROLONGATION_STRATEGIES}）"
            )
