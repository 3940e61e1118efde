"""シミュレーション実行パッケージ

設定、イベントスケジューラ、初期条件、格子適応、診断出力、
およびそれらを組み合わせて実行するランナーを提供します。
"""

from .config import (
    ConfigurationError,
    SimulationConfig,
    DomainConfig,
    DropletConfig,
    PhaseConfig,
    PhasesConfig,
    PhysicsConfig,
    AdaptivityConfig,
    TimeConfig,
    SolverConfig,
    ViewConfig,
    OutputConfig,
)
from .state import RunClock, RunContext, RunSummary
from .interfaces import FlowSolver, AdaptivityEngine, Renderer
from .scheduler import (
    EventScheduler,
    ScheduledEvent,
    EventState,
    SchedulerError,
    Once,
    EveryStep,
    EveryTime,
    AtEnd,
)
from .initializer import InitialConditionBuilder
from .refinement import AdaptiveRefinementController
from .diagnostics import (
    StepLog,
    FrameWriter,
    format_iteration,
    frame_filename,
    run_directory_name,
)
from .runner import SimulationRunner

__all__ = [
    "ConfigurationError",
    "SimulationConfig",
    "DomainConfig",
    "DropletConfig",
    "PhaseConfig",
    "PhasesConfig",
    "PhysicsConfig",
    "AdaptivityConfig",
    "TimeConfig",
    "SolverConfig",
    "ViewConfig",
    "OutputConfig",
    "RunClock",
    "RunContext",
    "RunSummary",
    "FlowSolver",
    "AdaptivityEngine",
    "Renderer",
    "EventScheduler",
    "ScheduledEvent",
    "EventState",
    "SchedulerError",
    "Once",
    "EveryStep",
    "EveryTime",
    "AtEnd",
    "InitialConditionBuilder",
    "AdaptiveRefinementController",
    "StepLog",
    "FrameWriter",
    "format_iteration",
    "frame_filename",
    "run_directory_name",
    "SimulationRunner",
]
