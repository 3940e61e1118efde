"""格子変更時の場の補間を提供するモジュール

セル分割時の補間（prolongation）とセル統合時の平均（restriction）を実装します。

補間方法:
- injection: 子セルに親セルの値をそのまま複写
- linear: minmod制限付き線形補間（保存的）
- fraction: 線形補間の補正量を [0, 1] に収まるよう縮小（保存的かつ単調）
"""

import numpy as np

from ...core.mesh import QuadTreeMesh, MeshChange
from .wavelet import limited_slopes


def prolong(
    old_mesh: QuadTreeMesh,
    values: np.ndarray,
    change: MeshChange,
    strategy: str,
) -> np.ndarray:
    """分割された親セルから子セルの値を生成

    Args:
        old_mesh: 変更前の格子
        values: 変更前の葉セル上のスカラー値
        change: 格子変更の記録
        strategy: 補間方法

    Returns:
        子セルの値（change.offsets と同じ順序）
    """
    parent_values = np.repeat(values[change.parents], 4)
    if strategy == "injection" or change.n_refined == 0:
        return parent_values

    slopes = limited_slopes(old_mesh, values)[change.parents]
    slopes = np.repeat(slopes, 4, axis=0)
    correction = 0.25 * np.sum(slopes * change.offsets, axis=1)

    if strategy == "linear":
        return parent_values + correction
    if strategy == "fraction":
        return parent_values + _bounded_scale(parent_values, correction) * correction
    raise ValueError(f"未知の補間方法です: {strategy!r}")


def restrict(values: np.ndarray, change: MeshChange) -> np.ndarray:
    """統合された兄弟セルの平均を親セルの値とする"""
    if change.n_coarsened == 0:
        return np.zeros(0)
    return values[change.merged].mean(axis=1)


def remap_values(
    old_mesh: QuadTreeMesh, values: np.ndarray, change: MeshChange, strategy: str
) -> np.ndarray:
    """格子変更前の値配列を変更後の葉セル順序に並べ替え

    Args:
        old_mesh: 変更前の格子
        values: スカラー (n,) またはベクトル (n, 2) の値
        change: 格子変更の記録
        strategy: 補間方法

    Returns:
        変更後の値配列
    """
    if values.ndim == 2:
        columns = [
            remap_values(old_mesh, values[:, c], change, strategy)
            for c in range(values.shape[1])
        ]
        return np.stack(columns, axis=1)

    return np.concatenate(
        (
            values[change.kept],
            prolong(old_mesh, values, change, strategy),
            restrict(values, change),
        )
    )


def _bounded_scale(parent: np.ndarray, correction: np.ndarray) -> np.ndarray:
    """子セルの値が [0, 1] に収まるような補正量の縮小率（兄弟ごとに共通）"""
    with np.errstate(divide="ignore", invalid="ignore"):
        upper = np.where(correction > 0.0, (1.0 - parent) / correction, np.inf)
        lower = np.where(correction < 0.0, parent / -correction, np.inf)
    ratio = np.clip(np.minimum(upper, lower), 0.0, 1.0)
    family = ratio.reshape(-1, 4).min(axis=1)
    return np.repeat(family, 4)
