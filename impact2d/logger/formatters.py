"""ログフォーマッタを提供するモジュール"""

import copy
import datetime
import logging


class DetailedFormatter(logging.Formatter):
    """詳細なログフォーマッタ

    ファイル名と行番号を含み、時刻をミリ秒単位で出力します。
    """

    def __init__(self, fmt: str = None):
        if fmt is None:
            fmt = (
                "%(asctime)s - %(name)s - %(levelname)s - "
                "[%(filename)s:%(lineno)d] - %(message)s"
            )
        super().__init__(fmt)

    def formatTime(self, record: logging.LogRecord, datefmt: str = None) -> str:
        """時刻のフォーマット

        Args:
            record: ログレコード
            datefmt: 日付フォーマット文字列

        Returns:
            フォーマットされた時刻文字列
        """
        ct = datetime.datetime.fromtimestamp(record.created)
        if datefmt:
            return ct.strftime(datefmt)
        return ct.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]


class ColoredFormatter(logging.Formatter):
    """ログレベルに応じて色付けするフォーマッタ"""

    # ANSIエスケープシーケンス
    COLORS = {
        "DEBUG": "\033[36m",  # シアン
        "INFO": "\033[32m",  # 緑
        "WARNING": "\033[33m",  # 黄
        "ERROR": "\033[31m",  # 赤
        "CRITICAL": "\033[35m",  # マゼンタ
        "RESET": "\033[0m",  # リセット
    }

    def __init__(self, fmt: str = None, use_color: bool = True):
        if fmt is None:
            fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        super().__init__(fmt)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        """ログレコードをフォーマット

        他のハンドラに影響しないよう、レコードの複製に色を付けます。
        """
        if not self.use_color:
            return super().format(record)

        colored = copy.copy(record)
        color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        colored.levelname = f"{color}{record.levelname}{self.COLORS['RESET']}"
        return super().format(colored)
