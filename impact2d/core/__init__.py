"""計算領域・適応格子・物理場のパッケージ"""

from .domain import Domain
from .mesh import QuadTreeMesh, MeshChange
from .field import FieldRegistry, MeshField

__all__ = ["Domain", "QuadTreeMesh", "MeshChange", "FieldRegistry", "MeshField"]
