"""適応格子パッケージ

このパッケージは、四分木による適応格子を提供します。
"""

from .quadtree import QuadTreeMesh, MeshChange

__all__ = ["QuadTreeMesh", "MeshChange"]
