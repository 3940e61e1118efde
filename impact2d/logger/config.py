"""ロギング設定を管理するモジュール

このモジュールは、ロギングシステムの設定を管理するためのクラスを提供します。
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Any, Optional
from pathlib import Path

VALID_LEVELS = ("debug", "info", "warning", "error", "critical")


def to_level(name: str) -> int:
    """ログレベル名（大文字小文字は区別しない）を logging の数値に変換"""
    if str(name).lower() not in VALID_LEVELS:
        raise ValueError(f"無効なログレベルです: {name}")
    return getattr(logging, str(name).upper())


@dataclass
class LogConfig:
    """ロギング設定を管理するクラス

    Attributes:
        level: 基本ログレベル
        log_dir: ログファイル出力ディレクトリ
        file_logging: ファイルへのログ出力設定
        console_logging: コンソールへのログ出力設定
    """

    level: str = "info"
    log_dir: Path = Path("logs")
    file_logging: Dict[str, Any] = field(
        default_factory=lambda: {
            "enabled": True,
            "filename": "simulation.log",
            "level": "debug",
            "max_bytes": 10_000_000,  # 10MB
            "backup_count": 5,
        }
    )
    console_logging: Dict[str, Any] = field(
        default_factory=lambda: {"enabled": True, "level": "info", "color": True}
    )

    def __post_init__(self):
        """ディレクトリパスの正規化"""
        if isinstance(self.log_dir, str):
            self.log_dir = Path(self.log_dir)

    def validate(self):
        """設定の妥当性を検証

        Raises:
            ValueError: 無効な設定値が検出された場合
        """
        levels = [
            self.level,
            self.file_logging.get("level", "debug"),
            self.console_logging.get("level", "info"),
        ]
        for level in levels:
            to_level(level)

        if not self.file_logging["enabled"] and not self.console_logging["enabled"]:
            raise ValueError("少なくとも1つのログ出力先を有効にする必要があります")

    def get_file_path(self, filename: Optional[str] = None) -> Path:
        """ログファイルのパスを取得

        Args:
            filename: 指定されたファイル名（Noneの場合はデフォルト使用）

        Returns:
            ログファイルの完全パス
        """
        filename = filename or self.file_logging["filename"]
        return self.log_dir / filename

    def create_directories(self):
        """必要なディレクトリを作成"""
        if self.file_logging["enabled"]:
            self.log_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_dict(cls, config_dict: Optional[Dict[str, Any]]) -> "LogConfig":
        """辞書から設定を生成（未指定の項目はデフォルト値）"""
        config_dict = config_dict or {}
        default = cls()
        file_logging = {**default.file_logging, **config_dict.get("file", {})}
        console_logging = {**default.console_logging, **config_dict.get("console", {})}
        return cls(
            level=config_dict.get("level", default.level),
            log_dir=Path(config_dict.get("log_dir", default.log_dir)),
            file_logging=file_logging,
            console_logging=console_logging,
        )

    def to_dict(self) -> Dict[str, Any]:
        """設定を辞書形式にシリアライズ"""
        return {
            "level": self.level,
            "log_dir": str(self.log_dir),
            "file": dict(self.file_logging),
            "console": dict(self.console_logging),
        }
