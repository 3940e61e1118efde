"""ログハンドラを提供するモジュール

- FileLogHandler: 実行ログ（simulation.log）をローテーションしながら出力
- ConsoleLogHandler: 標準エラー出力への出力
- BufferedLogHandler: 直近のログレコードを保持し、ソルバーの異常終了時に
  実行ディレクトリの debug.log へ書き出す
"""

import logging
import logging.handlers
from collections import deque
from pathlib import Path
from typing import Deque, List, Optional, Union

from .config import LogConfig, to_level
from .formatters import ColoredFormatter, DetailedFormatter


class FileLogHandler(logging.handlers.RotatingFileHandler):
    """ファイルログハンドラ

    LogConfig の file セクション（ファイル名・最大サイズ・世代数・レベル）に従います。
    """

    def __init__(self, config: LogConfig):
        section = config.file_logging
        super().__init__(
            filename=str(config.get_file_path()),
            maxBytes=int(section["max_bytes"]),
            backupCount=int(section["backup_count"]),
            encoding="utf-8",
        )
        self.setFormatter(DetailedFormatter())
        self.setLevel(to_level(section["level"]))


class ConsoleLogHandler(logging.StreamHandler):
    """コンソールログハンドラ（LogConfig の console セクション）"""

    def __init__(self, config: LogConfig):
        super().__init__()
        section = config.console_logging
        self.setFormatter(ColoredFormatter(use_color=bool(section["color"])))
        self.setLevel(to_level(section["level"]))


class BufferedLogHandler(logging.Handler):
    """直近のログレコードを保持するハンドラ

    容量を超えた古いレコードは捨てられます。レコードは書き出すときに整形します。
    """

    def __init__(self, capacity: int = 200):
        """
        Args:
            capacity: 保持するレコード数
        """
        if capacity < 1:
            raise ValueError(f"バッファの容量は正である必要があります: {capacity}")
        super().__init__()
        self.records: Deque[logging.LogRecord] = deque(maxlen=capacity)
        self.setFormatter(DetailedFormatter())

    def emit(self, record: logging.LogRecord):
        self.records.append(record)

    def get_logs(self) -> List[str]:
        """保持しているレコードを整形して返す（古い順）"""
        return [self.format(record) for record in self.records]

    def dump(self, path: Union[str, Path], header: Optional[str] = None) -> Path:
        """保持しているレコードをファイルに書き出す

        Args:
            path: 出力先
            header: 先頭に書く1行（失敗時の反復回数・時刻など）

        Returns:
            書き出したファイルのパス

        Raises:
            OSError: ファイルに書き込めない場合
        """
        path = Path(path)
        with path.open("w", encoding="utf-8") as f:
            if header:
                f.write(f"{header}\n")
            for line in self.get_logs():
                f.write(f"{line}\n")
        return path

    def clear(self):
        """保持しているレコードを破棄"""
        self.records.clear()
