"""シミュレーションの実行を管理するモジュール

このモジュールは、計算領域・物理場・ソルバー・適応格子エンジン・描画器を構築し、
イベントスケジューラにイベントを登録してシミュレーションループを実行します。

登録されるイベント（同じ反復では上から順に実行）:
- init: t = 0 で初期条件を構築し、無次元数を表示
- log_status: 毎ステップ（output.log_interval ごと）に反復回数と時刻を記録
- adapt: 毎ステップ格子を適応
- movie: output.frame_interval ごとにフレーム画像を保存（t = 0 を含む）
- end: t = time.end_time で無次元数を表示・記録して終了

ソルバーが失敗した場合は、直近のログレコードを実行ディレクトリの debug.log に
書き出してから例外を再送出します。
"""

import logging
import math
from pathlib import Path
from typing import Any, Optional

from ..core import Domain, FieldRegistry
from ..logger import BufferedLogHandler, SimulationLogger
from ..numerics.adaptivity import WaveletAdaptivity
from ..physics import CenteredSolver, DerivedNumbers, FluidProperties, SolverError
from ..visualization import FrameRenderer
from .config import SimulationConfig
from .diagnostics import (
    DEBUG_LOG_FILENAME,
    LOG_FILENAME,
    FrameWriter,
    StepLog,
    banner,
    end_record,
    run_directory_name,
)
from .initializer import InitialConditionBuilder
from .interfaces import AdaptivityEngine, FlowSolver, Renderer
from .refinement import AdaptiveRefinementController
from .scheduler import AtEnd, EventScheduler, EveryStep, EveryTime, Once
from .state import RunClock, RunContext, RunSummary

# ソルバー失敗時に debug.log へ書き出すログレコード数
DEBUG_LOG_RECORDS = 200


class SimulationRunner:
    """シミュレーションを実行するクラス

    ソルバー・エンジン・描画器を指定しない場合は標準の実装を使用します。
    """

    def __init__(
        self,
        config: SimulationConfig,
        logger: Optional[Any] = None,
        solver: Optional[FlowSolver] = None,
        engine: Optional[AdaptivityEngine] = None,
        renderer: Optional[Renderer] = None,
    ):
        """初期化

        Args:
            config: シミュレーション設定（ここで検証されます）
            logger: ロガー
            solver: 流体ソルバー（FlowSolver プロトコル）
            engine: 適応格子エンジン（AdaptivityEngine プロトコル）
            renderer: 描画器（Renderer プロトコル）

        Raises:
            ConfigurationError: 設定値が不正な場合
        """
        config.validate()
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.numbers = DerivedNumbers.from_config(config)

        self._solver = solver
        self._engine = engine
        self._renderer = renderer

        self.context: Optional[RunContext] = None
        self.scheduler: Optional[EventScheduler] = None
        self.step_log: Optional[StepLog] = None
        self.frame_writer: Optional[FrameWriter] = None
        self.initializer: Optional[InitialConditionBuilder] = None
        self.refinement: Optional[AdaptiveRefinementController] = None
        self.initial_area = 0.0
        self.dt_overshoots = 0

    def setup(self) -> RunContext:
        """計算に必要なオブジェクトを構築し、イベントを登録

        Returns:
            実行コンテキスト
        """
        config = self.config

        # 計算領域と物理場
        domain = Domain.configure(config.domain.box_length, config.domain.base_resolution)
        fields = FieldRegistry(domain.create_mesh())
        fields.declare_field("f", prolongation="fraction")
        fields.declare_field("u", rank=1)
        fields.declare_field("p")

        engine = self._engine
        if engine is None:
            engine = WaveletAdaptivity(
                fields, coarsen_ratio=config.adaptivity.coarsen_ratio, logger=self.logger
            )
        solver = self._solver
        if solver is None:
            solver = CenteredSolver(
                fields,
                max_level=config.domain.max_level,
                cfl=config.time.cfl,
                poisson=config.solver.poisson,
                curvature_smoothing=config.solver.curvature_smoothing,
                logger=self.logger,
            )
        solver.set_fluid_properties(
            FluidProperties(config.phases.liquid.density, config.phases.liquid.viscosity),
            FluidProperties(config.phases.gas.density, config.phases.gas.viscosity),
        )
        solver.set_surface_tension(config.physics.surface_tension)

        renderer = self._renderer
        if renderer is None and config.output.render_frames:
            renderer = FrameRenderer(fields, domain, dpi=config.output.dpi)

        # 出力先
        run_dir = Path(config.output.root_dir) / run_directory_name(
            config.droplet.impact_velocity, config.droplet.diameter
        )
        run_dir.mkdir(parents=True, exist_ok=True)
        self.step_log = StepLog(run_dir / LOG_FILENAME, self.logger)
        self.step_log.reset()
        self.frame_writer = (
            FrameWriter(renderer, run_dir, config.output, self.logger)
            if renderer is not None
            else None
        )

        self.initializer = InitialConditionBuilder(fields, engine, self.logger)
        self.refinement = AdaptiveRefinementController(
            engine, config.adaptivity, config.domain.max_level, self.logger
        )

        self.context = RunContext(
            config=config,
            numbers=self.numbers,
            clock=RunClock(),
            domain=domain,
            fields=fields,
            solver=solver,
            engine=engine,
            renderer=renderer,
            run_dir=run_dir,
            logger=self.logger,
        )

        # イベントの登録（登録順が実行順）
        self.scheduler = EventScheduler(self.logger, config.time.max_iterations)
        self.scheduler.register("init", Once(0.0), self._on_init)
        self.scheduler.register(
            "log_status", EveryStep(config.output.log_interval), self._on_log_status
        )
        self.scheduler.register("adapt", EveryStep(1), self._on_adapt)
        self.scheduler.register(
            "movie",
            EveryTime(config.output.frame_interval, include_start=True),
            self._on_movie,
        )
        self.scheduler.register("end", AtEnd(config.time.end_time), self._on_end)

        self.logger.info(f"実行ディレクトリ: {run_dir}")
        return self.context

    def run(self) -> RunSummary:
        """シミュレーションを実行

        呼び出すたびに新しい状態から実行します。

        Returns:
            実行結果の要約

        Raises:
            SolverError: ソルバーが失敗した場合
            SchedulerError: 反復回数の上限を超えた場合
        """
        recent = BufferedLogHandler(DEBUG_LOG_RECORDS)
        base_logger = self._base_logger()
        base_logger.addHandler(recent)
        try:
            context = self.setup()
            self.dt_overshoots = 0
            self.logger.info(
                f"シミュレーションを開始: end_time = {self.config.time.end_time:g}, "
                f"frame_interval = {self.config.output.frame_interval:g}"
            )
            try:
                steps = self.scheduler.run(context, self._step)
            except SolverError as e:
                self.logger.error(
                    f"ソルバーが失敗しました (i={context.clock.i}, t={context.clock.t:g}): {e}",
                    exc_info=True,
                )
                self._save_debug_log(recent, context)
                raise
        finally:
            base_logger.removeHandler(recent)

        summary = RunSummary(
            steps=steps,
            final_time=context.clock.t,
            frames=self.frame_writer.frames if self.frame_writer else 0,
            log_lines=self.step_log.lines_written,
            io_failures=self.step_log.failures
            + (self.frame_writer.failures if self.frame_writer else 0),
            initial_area=self.initial_area,
            final_area=context.fields.integrate("f"),
            event_counts=self.scheduler.fire_counts(),
            run_dir=context.run_dir,
            cells_refined=self.refinement.total_refined,
            cells_coarsened=self.refinement.total_coarsened,
            dt_overshoots=self.dt_overshoots,
        )
        self.logger.info(
            f"シミュレーション正常終了: {summary.steps}ステップ, "
            f"t = {summary.final_time:g}, フレーム数 {summary.frames}"
        )
        if summary.io_failures:
            self.logger.warning(f"出力に {summary.io_failures} 回失敗しました")
        if summary.dt_overshoots:
            self.logger.warning(
                f"ソルバーが {summary.dt_overshoots} 回イベント時刻を越えて進みました"
                "（フレームが欠落している可能性があります）"
            )
        return summary

    def _base_logger(self) -> logging.Logger:
        """ハンドラを追加できる標準ライブラリのロガー"""
        if isinstance(self.logger, (SimulationLogger, logging.LoggerAdapter)):
            return self.logger.logger
        return self.logger

    def _save_debug_log(self, recent: BufferedLogHandler, context: RunContext) -> None:
        path = context.run_dir / DEBUG_LOG_FILENAME
        clock = context.clock
        try:
            recent.dump(path, header=f"ソルバーの失敗: i={clock.i}, t={clock.t:g}")
        except OSError as e:
            self.logger.warning(f"デバッグログを保存できません: {path} ({e})")
            return
        self.logger.info(f"直近のログを保存しました: {path}")

    def _step(self, context: RunContext, dt_max: float) -> None:
        """ソルバーで1ステップ進める

        ソルバーが dt_max を超えて進んだ場合は、時刻イベントを取りこぼすため警告します。
        """
        clock = context.clock
        t_before = clock.t
        dt = context.solver.advance_one_step(clock, dt_max)
        if not clock.t > t_before:
            raise SolverError(
                f"ソルバーが時刻を進めませんでした (i={clock.i}, t={clock.t:g})"
            )
        excess = (clock.t - t_before) - dt_max
        if excess > max(1e-9 * dt_max, 4 * math.ulp(clock.t)):
            self.dt_overshoots += 1
            self.logger.warning(
                f"ソルバーが時刻の上限を超えて進みました (i={clock.i}, "
                f"t={clock.t:g}, 上限 {t_before + dt_max:g})"
            )
        self.logger.debug(f"ステップ {clock.i + 1}: t = {clock.t:g}, dt = {dt:.3e}")

    def _announce(self) -> None:
        message = banner(self.numbers)
        print(message)
        self.logger.info(message)

    def _on_init(self, context: RunContext) -> None:
        self._announce()
        self.initial_area = self.initializer.seed(context.config)

    def _on_log_status(self, context: RunContext) -> None:
        self.step_log.append(context.clock.i, context.clock.t)

    def _on_adapt(self, context: RunContext) -> None:
        self.refinement.adapt_step()

    def _on_movie(self, context: RunContext) -> None:
        if self.frame_writer is not None:
            self.frame_writer.write(context.clock.i, context.clock.t)

    def _on_end(self, context: RunContext) -> None:
        self._announce()
        self.step_log.write(end_record(self.numbers))
