"""ウェーブレット誤差推定を提供するモジュール

線形補間で粗いレベルから復元した値と実際の値との差（2階差分の半分）を
各葉セルの局所誤差として評価します。
"""

import numpy as np

from ...core.mesh import QuadTreeMesh


def wavelet_error(mesh: QuadTreeMesh, values: np.ndarray) -> np.ndarray:
    """各葉セルの局所誤差を推定

    Args:
        mesh: 適応格子
        values: 葉セル上のスカラー値

    Returns:
        各葉セルの誤差推定値 max_axis |v(x-h) - 2v(x) + v(x+h)| / 2
    """
    values = np.asarray(values, dtype=float)
    if values.shape != (mesh.n_cells,):
        raise ValueError("値の形状が葉セル数と一致しません")

    error = np.zeros(mesh.n_cells)
    for axis in (0, 1):
        lower = values[mesh.neighbour_indices(axis, -1)]
        upper = values[mesh.neighbour_indices(axis, +1)]
        error = np.maximum(error, 0.5 * np.abs(lower - 2.0 * values + upper))
    return error


def limited_slopes(mesh: QuadTreeMesh, values: np.ndarray) -> np.ndarray:
    """minmod制限付きのセル幅あたりの勾配

    Args:
        mesh: 適応格子
        values: 葉セル上のスカラー値

    Returns:
        形状 (n, 2) の勾配（セル幅 h あたりの変化量）
    """
    slopes = np.zeros((mesh.n_cells, 2))
    for axis in (0, 1):
        lower = values[mesh.neighbour_indices(axis, -1)]
        upper = values[mesh.neighbour_indices(axis, +1)]
        slopes[:, axis] = minmod(values - lower, upper - values)
    return slopes


def minmod(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """minmod制限関数"""
    return np.where(a * b > 0.0, np.sign(a) * np.minimum(np.abs(a), np.abs(b)), 0.0)
