"""シミュレーション用ロガーを提供するモジュール

このモジュールは、シミュレーション固有のロギング機能を提供します。
ハンドラはルートのロガーにのみ設定し、セクション用のロガーは
標準ライブラリのロガー階層を通じて親のハンドラへ伝播させます。
"""

import logging
from typing import Optional, Dict, Any
from .config import LogConfig, to_level
from .handlers import FileLogHandler, ConsoleLogHandler


class SimulationLogger:
    """シミュレーション用ロガークラス

    シミュレーション全体で一貫したロギングを提供し、
    進捗状況や重要なイベントを記録します。
    """

    def __init__(
        self,
        name: str,
        config: Optional[LogConfig] = None,
        parent: Optional["SimulationLogger"] = None,
    ):
        """ロガーを初期化

        Args:
            name: ロガーの名前
            config: ロギング設定
            parent: 親ロガー（階層的ロギング用）
        """
        self.name = name
        self.config = config or LogConfig()
        self.parent = parent

        if parent is None:
            self.config.validate()
            self.config.create_directories()
            self._logger = self._create_logger()
            self.info(f"ロギングシステムを初期化: {name}")
        else:
            self._logger = logging.getLogger(name)
            self._logger.setLevel(logging.NOTSET)

    @property
    def logger(self) -> logging.Logger:
        """標準ライブラリのロガー"""
        return self._logger

    def _create_logger(self) -> logging.Logger:
        """ロガーを生成して設定

        Returns:
            設定済みのロガーインスタンス
        """
        logger = logging.getLogger(self.name)
        logger.setLevel(to_level(self.config.level))

        # 既存のハンドラをクリア
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

        if self.config.file_logging["enabled"]:
            logger.addHandler(FileLogHandler(self.config))
        if self.config.console_logging["enabled"]:
            logger.addHandler(ConsoleLogHandler(self.config))
        return logger

    # stacklevel=2 で呼び出し元のファイル名・行番号を記録する
    def debug(self, msg: str, *args, **kwargs):
        """デバッグレベルのログを出力"""
        kwargs.setdefault("stacklevel", 2)
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        """情報レベルのログを出力"""
        kwargs.setdefault("stacklevel", 2)
        self._logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        """警告レベルのログを出力"""
        kwargs.setdefault("stacklevel", 2)
        self._logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        """エラーレベルのログを出力"""
        kwargs.setdefault("stacklevel", 2)
        self._logger.error(msg, *args, **kwargs)

    def critical(self, msg: str, *args, **kwargs):
        """クリティカルレベルのログを出力"""
        kwargs.setdefault("stacklevel", 2)
        self._logger.critical(msg, *args, **kwargs)

    def isEnabledFor(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)

    def start_section(self, name: str) -> "SimulationLogger":
        """新しいログセクションを開始

        Args:
            name: セクション名

        Returns:
            セクション用の子ロガー
        """
        return SimulationLogger(f"{self.name}.{name}", self.config, self)

    def log_error_with_context(
        self, msg: str, error: Exception, context: Optional[Dict[str, Any]] = None
    ):
        """エラー情報をコンテキスト付きでログ出力

        Args:
            msg: エラーメッセージ
            error: 発生した例外
            context: 追加のコンテキスト情報
        """
        error_info = {
            "message": msg,
            "error_type": type(error).__name__,
            "error_msg": str(error),
            "context": context or {},
        }
        self._logger.error(
            f"エラーが発生しました: {error_info}",
            exc_info=(type(error), error, error.__traceback__),
        )

    def close(self):
        """ルートロガーのハンドラを閉じて取り外す"""
        if self.parent is not None:
            return
        for handler in list(self._logger.handlers):
            self._logger.removeHandler(handler)
            handler.close()

    def __enter__(self):
        """コンテキストマネージャのエントリー"""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """コンテキストマネージャのイグジット

        エラーが発生した場合はログに記録します。
        """
        if exc_type is not None:
            self.log_error_with_context(
                "セクション内でエラーが発生しました", exc_val, {"section": self.name}
            )
        return False  # 例外を伝播させる
