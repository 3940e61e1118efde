"""四分木適応格子を提供するモジュール

このモジュールは、葉セルのみを (level, ix, iy) の整数配列として保持する
2次元四分木格子を提供します。セルの分割・統合は配列演算で一括に行い、
変更内容は MeshChange として返されます。場の値の補間（prolongation /
restriction）は格子自身では行わず、適応格子エンジン側が担当します。
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple
import numpy as np


@dataclass
class MeshChange:
    """格子変更の記録

    新しい葉配列は [維持されたセル, 分割で生成された子セル, 統合で生成された親セル]
    の順に並びます。

    Attributes:
        kept: 維持されたセルの旧インデックス
        parents: 分割されたセルの旧インデックス
        offsets: 子セルごとの親中心からの向き (sx, sy)、各成分は -1 または +1
        merged: 統合された兄弟セルの旧インデックス（形状 (m, 4)）
    """

    kept: np.ndarray
    parents: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))
    offsets: np.ndarray = field(default_factory=lambda: np.zeros((0, 2)))
    merged: np.ndarray = field(
        default_factory=lambda: np.zeros((0, 4), dtype=np.int64)
    )

    @property
    def n_refined(self) -> int:
        """分割されたセル数"""
        return int(len(self.parents))

    @property
    def n_coarsened(self) -> int:
        """統合で生成された親セル数"""
        return int(len(self.merged))

    @property
    def is_empty(self) -> bool:
        return self.n_refined == 0 and self.n_coarsened == 0


class QuadTreeMesh:
    """葉セル配列による四分木格子

    Attributes:
        origin: 計算領域の左下座標 (x0, y0)
        size: 計算領域の一辺の長さ
        base_level: 基本格子のレベル（これより粗くはならない）
    """

    def __init__(self, origin: Tuple[float, float], size: float, base_level: int):
        """基本格子 (2**base_level)^2 個のセルで格子を初期化

        Args:
            origin: 計算領域の左下座標
            size: 計算領域の一辺の長さ
            base_level: 基本格子のレベル
        """
        if size <= 0:
            raise ValueError("領域サイズは正の値である必要があります")
        if base_level < 0:
            raise ValueError("基本レベルは非負である必要があります")

        self.origin = (float(origin[0]), float(origin[1]))
        self.size = float(size)
        self.base_level = int(base_level)

        n = 2**self.base_level
        iy, ix = np.divmod(np.arange(n * n, dtype=np.int64), n)
        self._level = np.full(n * n, self.base_level, dtype=np.int64)
        self._ix = ix
        self._iy = iy

        self._version = 0
        self._owner_cache: Optional[Tuple[int, int, np.ndarray]] = None

    @property
    def n_cells(self) -> int:
        """葉セル数"""
        return int(len(self._level))

    @property
    def level(self) -> np.ndarray:
        return self._level

    @property
    def ix(self) -> np.ndarray:
        return self._ix

    @property
    def iy(self) -> np.ndarray:
        return self._iy

    @property
    def max_level(self) -> int:
        """現在の最細レベル"""
        return int(self._level.max())

    @property
    def version(self) -> int:
        """格子が変更されるたびに増加するカウンタ"""
        return self._version

    def cell_size(self) -> np.ndarray:
        """各葉セルの一辺の長さ"""
        return self.size / (2.0**self._level)

    def areas(self) -> np.ndarray:
        """各葉セルの面積"""
        return self.cell_size() ** 2

    def centers(self) -> Tuple[np.ndarray, np.ndarray]:
        """各葉セルの中心座標

        Returns:
            (x, y) のタプル
        """
        h = self.cell_size()
        x = self.origin[0] + (self._ix + 0.5) * h
        y = self.origin[1] + (self._iy + 0.5) * h
        return x, y

    def level_histogram(self) -> dict:
        """レベルごとの葉セル数"""
        levels, counts = np.unique(self._level, return_counts=True)
        return {int(lev): int(c) for lev, c in zip(levels, counts)}

    def copy(self) -> "QuadTreeMesh":
        """格子の深いコピーを作成"""
        new_mesh = QuadTreeMesh(self.origin, self.size, self.base_level)
        new_mesh._level = self._level.copy()
        new_mesh._ix = self._ix.copy()
        new_mesh._iy = self._iy.copy()
        new_mesh._version = self._version
        return new_mesh

    def owner_map(self, level: Optional[int] = None) -> np.ndarray:
        """一様格子上の各画素を所有する葉セルのインデックスを取得

        Args:
            level: 一様格子のレベル（Noneの場合は現在の最細レベル）

        Returns:
            形状 (2**level, 2**level) の配列。行がy方向、列がx方向
        """
        top = self.max_level if level is None else int(level)
        if top < self.max_level:
            raise ValueError(
                f"一様格子のレベル({top})が最細レベル({self.max_level})より粗いです"
            )

        if self._owner_cache is not None:
            version, cached_level, owner = self._owner_cache
            if version == self._version and cached_level == top:
                return owner

        n = 2**top
        owner = np.full((n, n), -1, dtype=np.int64)
        for lev in np.unique(self._level):
            sel = np.nonzero(self._level == lev)[0]
            m = 2 ** int(lev)
            coarse = np.full((m, m), -1, dtype=np.int64)
            coarse[self._iy[sel], self._ix[sel]] = sel
            factor = 2 ** (top - int(lev))
            fine = np.repeat(np.repeat(coarse, factor, axis=0), factor, axis=1)
            owner = np.where(fine >= 0, fine, owner)

        self._owner_cache = (self._version, top, owner)
        return owner

    def locate(self, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        """点を含む葉セルのインデックスを取得

        Args:
            x: x座標の配列
            y: y座標の配列

        Returns:
            葉セルのインデックス。領域外の点は -1
        """
        top = self.max_level
        n = 2**top
        hmin = self.size / n
        jx = np.floor((np.asarray(x) - self.origin[0]) / hmin).astype(np.int64)
        jy = np.floor((np.asarray(y) - self.origin[1]) / hmin).astype(np.int64)
        outside = (jx < 0) | (jx >= n) | (jy < 0) | (jy >= n)

        owner = self.owner_map(top)
        result = owner[np.clip(jy, 0, n - 1), np.clip(jx, 0, n - 1)]
        return np.where(outside, -1, result)

    def neighbour_indices(self, axis: int, direction: int) -> np.ndarray:
        """各葉セルの隣接セル（セル幅 h だけ離れた点を含むセル）を取得

        領域外を指す場合は自身のインデックスを返します（ゼロ勾配）。

        Args:
            axis: 0 ならx方向、1 ならy方向
            direction: -1 または +1

        Returns:
            隣接セルのインデックス
        """
        if axis not in (0, 1):
            raise ValueError(f"無効な軸です: {axis}")
        if direction not in (-1, 1):
            raise ValueError(f"無効な向きです: {direction}")

        x, y = self.centers()
        h = self.cell_size()
        if axis == 0:
            x = x + direction * h
        else:
            y = y + direction * h

        found = self.locate(x, y)
        own = np.arange(self.n_cells, dtype=np.int64)
        return np.where(found < 0, own, found)

    def refine(self, mask: np.ndarray) -> MeshChange:
        """指定された葉セルを4つの子セルに分割

        Args:
            mask: 分割するセルを示す真偽値配列

        Returns:
            格子変更の記録
        """
        mask = np.asarray(mask, dtype=bool)
        if mask.shape != self._level.shape:
            raise ValueError("マスクの形状が葉セル数と一致しません")

        parents = np.nonzero(mask)[0]
        kept = np.nonzero(~mask)[0]
        if len(parents) == 0:
            return MeshChange(kept=kept)

        sx = np.tile(np.array([0, 1, 0, 1], dtype=np.int64), len(parents))
        sy = np.tile(np.array([0, 0, 1, 1], dtype=np.int64), len(parents))
        child_level = np.repeat(self._level[parents] + 1, 4)
        child_ix = np.repeat(2 * self._ix[parents], 4) + sx
        child_iy = np.repeat(2 * self._iy[parents], 4) + sy
        offsets = np.stack((2 * sx - 1, 2 * sy - 1), axis=1).astype(float)

        self._level = np.concatenate((self._level[kept], child_level))
        self._ix = np.concatenate((self._ix[kept], child_ix))
        self._iy = np.concatenate((self._iy[kept], child_iy))
        self._version += 1

        return MeshChange(kept=kept, parents=parents, offsets=offsets)

    def coarsen(self, mask: np.ndarray) -> MeshChange:
        """4つの兄弟セルがすべて指定されている場合に親セルへ統合

        基本レベルより粗くはなりません。

        Args:
            mask: 統合候補のセルを示す真偽値配列

        Returns:
            格子変更の記録
        """
        mask = np.asarray(mask, dtype=bool)
        if mask.shape != self._level.shape:
            raise ValueError("マスクの形状が葉セル数と一致しません")

        candidates = np.nonzero(mask & (self._level > self.base_level))[0]
        if len(candidates) == 0:
            return MeshChange(kept=np.arange(self.n_cells, dtype=np.int64))

        keys = self._parent_keys(candidates)
        _, inverse, counts = np.unique(keys, return_inverse=True, return_counts=True)
        complete = counts[inverse] == 4
        members = candidates[complete]
        if len(members) == 0:
            return MeshChange(kept=np.arange(self.n_cells, dtype=np.int64))

        order = np.argsort(keys[complete], kind="stable")
        merged = members[order].reshape(-1, 4)

        removed = np.zeros(self.n_cells, dtype=bool)
        removed[merged.ravel()] = True
        kept = np.nonzero(~removed)[0]

        first = merged[:, 0]
        self._level = np.concatenate((self._level[kept], self._level[first] - 1))
        self._ix = np.concatenate((self._ix[kept], self._ix[first] // 2))
        self._iy = np.concatenate((self._iy[kept], self._iy[first] // 2))
        self._version += 1

        return MeshChange(kept=kept, merged=merged)

    def _parent_keys(self, indices: np.ndarray) -> np.ndarray:
        """親セルを一意に識別する整数キー"""
        level = self._level[indices] - 1
        return (level << 42) | ((self._ix[indices] // 2) << 21) | (self._iy[indices] // 2)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(cells={self.n_cells}, "
            f"levels={self.base_level}..{self.max_level})"
        )
