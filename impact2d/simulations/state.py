"""
シミュレーションの実行状態を管理するモジュール

このモジュールは、反復回数と時刻を保持する実行クロック、
イベントのコールバックに渡される実行コンテキスト、
実行結果の要約を提供します。
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
import logging
import math

from ..core import Domain, FieldRegistry
from ..physics import DerivedNumbers
from .config import SimulationConfig


@dataclass
class RunClock:
    """反復回数 i と時刻 t

    時刻はソルバーが advance で、反復回数はドライバーが tick で進めます。
    """

    i: int = 0
    t: float = 0.0

    def advance(self, dt: float) -> None:
        """時刻を dt だけ進める"""
        if not math.isfinite(dt) or dt <= 0.0:
            raise ValueError(f"時間刻み幅は正の有限値である必要があります: {dt}")
        self.t += dt

    def tick(self) -> None:
        """反復回数を1つ進める"""
        self.i += 1


@dataclass
class RunContext:
    """1回の実行に必要なオブジェクトをまとめたコンテキスト

    すべてのイベントのコールバックに引数として渡されます。

    Attributes:
        config: シミュレーション設定
        numbers: 無次元数
        clock: 実行クロック
        domain: 計算領域
        fields: 物理場レジストリ（格子も保持）
        solver: 流体ソルバー
        engine: 適応格子エンジン
        renderer: フレーム描画器（出力しない場合は None）
        run_dir: 実行ディレクトリ
        logger: ロガー
    """

    config: SimulationConfig
    numbers: DerivedNumbers
    clock: RunClock
    domain: Domain
    fields: FieldRegistry
    solver: Any
    engine: Any
    renderer: Optional[Any]
    run_dir: Path
    logger: Any = field(default_factory=lambda: logging.getLogger(__name__))

    @property
    def mesh(self):
        return self.fields.mesh


@dataclass
class RunSummary:
    """実行結果の要約

    Attributes:
        steps: 実行したステップ数
        final_time: 終了時の時刻
        frames: 出力したフレーム数
        log_lines: ステップログの行数
        io_failures: 出力に失敗した回数
        initial_area: 初期の液相面積
        final_area: 終了時の液相面積
        event_counts: イベントごとの発火回数
        run_dir: 実行ディレクトリ
        cells_refined: 格子適応で分割したセル数の合計
        cells_coarsened: 格子適応で統合したセル数の合計
        dt_overshoots: ソルバーが dt_max を超えて進んだ回数
    """

    steps: int
    final_time: float
    frames: int
    log_lines: int
    io_failures: int
    initial_area: float
    final_area: float
    event_counts: Dict[str, int]
    run_dir: Path
    cells_refined: int = 0
    cells_coarsened: int = 0
    dt_overshoots: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "steps": self.steps,
            "final_time": self.final_time,
            "frames": self.frames,
            "log_lines": self.log_lines,
            "io_failures": self.io_failures,
            "initial_area": self.initial_area,
            "final_area": self.final_area,
            "event_counts": dict(self.event_counts),
            "run_dir": str(self.run_dir),
            "cells_refined": self.cells_refined,
            "cells_coarsened": self.cells_coarsened,
            "dt_overshoots": self.dt_overshoots,
        }
