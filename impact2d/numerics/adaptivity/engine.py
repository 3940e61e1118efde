"""ウェーブレット誤差に基づく適応格子エンジン

このモジュールは、四分木格子と物理場レジストリを対象に、
述語による一括細分化と、ウェーブレット誤差による細分化・粗視化を提供します。
格子が変更されるたびに、レジストリ内のすべての場を登録済みの補間方法で
新しい葉セル配列へ写像します。
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence
import numpy as np

from ...core.field import FieldRegistry
from ...core.mesh import MeshChange
from .prolongation import remap_values
from .wavelet import wavelet_error

# predicate(x, y, level) -> 真偽値配列
RefinePredicate = Callable[[np.ndarray, np.ndarray, np.ndarray], np.ndarray]


@dataclass(frozen=True)
class AdaptResult:
    """1回の適応処理の結果

    Attributes:
        refined: 分割されたセル数
        coarsened: 統合で生成された親セル数
        cells: 処理後の葉セル数
    """

    refined: int
    coarsened: int
    cells: int


class WaveletAdaptivity:
    """ウェーブレット誤差による適応格子エンジン"""

    def __init__(
        self,
        fields: FieldRegistry,
        coarsen_ratio: float = 2.0 / 3.0,
        logger: Optional[logging.Logger] = None,
    ):
        """エンジンを初期化

        Args:
            fields: 物理場レジストリ（格子もここから取得）
            coarsen_ratio: 粗視化の閾値（許容誤差に対する比）
            logger: ロガー
        """
        if not 0.0 < coarsen_ratio < 1.0:
            raise ValueError("coarsen_ratioは0と1の間である必要があります")
        self.fields = fields
        self.coarsen_ratio = coarsen_ratio
        self.logger = logger or logging.getLogger(__name__)

    @property
    def mesh(self):
        return self.fields.mesh

    def refine_where(self, predicate: RefinePredicate, max_level: int) -> int:
        """述語を満たすセルを、満たさなくなるか最大レベルに達するまで分割

        Args:
            predicate: セル中心座標とレベルを受け取る述語
            max_level: 最大レベル

        Returns:
            分割されたセルの総数
        """
        total = 0
        while True:
            x, y = self.mesh.centers()
            mask = np.asarray(predicate(x, y, self.mesh.level), dtype=bool)
            mask &= self.mesh.level < max_level
            if not mask.any():
                break
            change = self._apply(self.mesh.refine, mask)
            total += change.n_refined

        self.logger.debug(f"述語による細分化: {total}セルを分割")
        return total

    def adapt(
        self, names: Sequence[str], tolerances: Sequence[float], max_level: int
    ) -> AdaptResult:
        """ウェーブレット誤差に基づいて細分化・粗視化

        いずれかの場で誤差が許容値を超えるセルを分割し、
        すべての場で誤差が許容値の coarsen_ratio 倍未満のセルを統合候補とします。

        Args:
            names: 対象の場（成分名可）
            tolerances: 各場の許容誤差（names と同じ順序）
            max_level: 最大レベル

        Returns:
            適応処理の結果
        """
        if len(names) != len(tolerances):
            raise ValueError(
                f"場の数({len(names)})と許容誤差の数({len(tolerances)})が一致しません"
            )
        if any(tol <= 0 for tol in tolerances):
            raise ValueError("許容誤差は正の値である必要があります")

        ratio = np.zeros(self.mesh.n_cells)
        for name, tol in zip(names, tolerances):
            error = wavelet_error(self.mesh, self.fields.values(name))
            ratio = np.maximum(ratio, error / tol)

        level = self.mesh.level
        refine_mask = (ratio > 1.0) & (level < max_level)
        coarsen_mask = ((ratio < self.coarsen_ratio) | (level > max_level)) & ~(
            refine_mask
        )

        refined = self._apply(self.mesh.refine, refine_mask)
        coarsen_mask = np.concatenate(
            (coarsen_mask[refined.kept], np.zeros(4 * refined.n_refined, dtype=bool))
        )
        coarsened = self._apply(self.mesh.coarsen, coarsen_mask)

        return AdaptResult(
            refined=refined.n_refined,
            coarsened=coarsened.n_coarsened,
            cells=self.mesh.n_cells,
        )

    def _apply(self, operation, mask: np.ndarray) -> MeshChange:
        """格子操作を実行し、すべての場を新しい葉セル配列へ写像"""
        old_mesh = self.mesh.copy()
        change = operation(mask)
        if change.is_empty:
            return change

        for mesh_field in self.fields:
            data = remap_values(
                old_mesh, mesh_field.data, change, mesh_field.prolongation
            )
            self.fields.replace_data(mesh_field.name, data)
        return change
