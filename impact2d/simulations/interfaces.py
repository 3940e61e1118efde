"""
ドライバーが利用する外部コンポーネントのインターフェース

流体ソルバー・適応格子エンジン・描画器は、ここで定義するプロトコルを満たせば
差し替えることができます。標準の実装はそれぞれ
CenteredSolver、WaveletAdaptivity、FrameRenderer です。
"""

from typing import Any, Protocol, Sequence, runtime_checkable

from ..numerics.adaptivity import AdaptResult, RefinePredicate
from ..physics import FluidProperties


@runtime_checkable
class FlowSolver(Protocol):
    """二相流ソルバー"""

    def set_fluid_properties(self, liquid: FluidProperties, gas: FluidProperties) -> None:
        ...

    def set_surface_tension(self, sigma: float) -> None:
        ...

    def advance_one_step(self, clock: Any, dt_max: float) -> float:
        """1ステップ進めて clock.advance(dt) を呼び、dt を返す"""
        ...


@runtime_checkable
class AdaptivityEngine(Protocol):
    """適応格子エンジン"""

    def refine_where(self, predicate: RefinePredicate, max_level: int) -> int:
        ...

    def adapt(
        self, names: Sequence[str], tolerances: Sequence[float], max_level: int
    ) -> AdaptResult:
        ...


@runtime_checkable
class Renderer(Protocol):
    """フレーム描画器"""

    def set_view(self, **params: Any) -> None:
        ...

    def clear(self) -> None:
        ...

    def draw_vof(self, name: str) -> None:
        ...

    def squares(self, name: str, linear: bool = True, spread: float = 10.0) -> None:
        ...

    def box(self) -> None:
        ...

    def save(self, path: str) -> None:
        ...
