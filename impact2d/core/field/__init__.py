"""場のパッケージ初期化

このパッケージは、適応格子上の名前付き物理場を提供します。
"""

from .registry import FieldRegistry, MeshField, PROLONGATION_STRATEGIES

__all__ = ["FieldRegistry", "MeshField", "PROLONGATION_STRATEGIES"]
