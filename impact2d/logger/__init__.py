"""シミュレーション用ロギングパッケージ

このパッケージは、シミュレーション全体で使用される統一的なロギング機能を提供します。
"""

from .logger import SimulationLogger
from .handlers import FileLogHandler, ConsoleLogHandler, BufferedLogHandler
from .formatters import DetailedFormatter, ColoredFormatter
from .config import LogConfig, to_level

__all__ = [
    "SimulationLogger",
    "FileLogHandler",
    "ConsoleLogHandler",
    "BufferedLogHandler",
    "DetailedFormatter",
    "ColoredFormatter",
    "LogConfig",
    "to_level",
]
