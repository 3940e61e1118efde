"""
診断出力（ステップログ・フレーム画像）を担当するモジュール

出力ファイル:
- <実行ディレクトリ>/log.log: 各ステップの "反復回数 時刻" を1行ずつ追記
- <実行ディレクトリ>/<反復回数(8桁)>_t=<時刻>.png: 一定時間ごとのフレーム画像

実行ディレクトリ名は衝突速度と液滴直径から "v=<U₀>__D=<D>" とします。
出力の失敗（ファイル名の桁あふれを含む）は警告として記録し、計算は継続します。
ソルバーが失敗した場合は、直前のログを <実行ディレクトリ>/debug.log に保存します。
"""

import logging
from pathlib import Path
from typing import Optional, Union

from ..physics import DerivedNumbers
from .config import OutputConfig

LOG_FILENAME = "log.log"
DEBUG_LOG_FILENAME = "debug.log"


def format_iteration(i: int, digits: int = 8) -> str:
    """反復回数をゼロ埋めした文字列

    Args:
        i: 反復回数
        digits: 桁数

    Returns:
        ゼロ埋めされた文字列（例: 42 -> "00000042"）

    Raises:
        ValueError: i が負、または digits 桁に収まらない場合
    """
    if i < 0 or i >= 10**digits:
        raise ValueError(f"反復回数 {i} は {digits} 桁の範囲 [0, 10^{digits}) 外です")
    return format(i, f"0{digits}d")


def frame_filename(
    run_dir: Union[str, Path],
    i: int,
    t: float,
    digits: int = 8,
    image_format: str = "png",
) -> Path:
    """フレーム画像のパス "<run_dir>/<i>_t=<t>.<format>" """
    return Path(run_dir) / f"{format_iteration(i, digits)}_t={t:g}.{image_format}"


def run_directory_name(velocity: float, diameter: float) -> str:
    """実行ディレクトリ名 "v=<U₀>__D=<D>" """
    return "v=%g__D=%g" % (velocity, diameter)


def banner(numbers: DerivedNumbers) -> str:
    """開始・終了時に表示する無次元数"""
    reynolds, weber = numbers.rounded()
    return "Re: %d, We:%d" % (reynolds, weber)


def end_record(numbers: DerivedNumbers) -> str:
    """終了時にステップログへ追記する行"""
    reynolds, weber = numbers.rounded()
    return "Re:%d, We:%d\n" % (reynolds, weber)


class StepLog:
    """ステップログファイル

    書き込みのたびにファイルを開いて閉じます。
    """

    def __init__(self, path: Union[str, Path], logger: Optional[logging.Logger] = None):
        self.path = Path(path)
        self.logger = logger or logging.getLogger(__name__)
        self.lines_written = 0
        self.failures = 0

    def reset(self) -> bool:
        """ログファイルを空にして作成"""
        self.lines_written = 0
        try:
            with open(self.path, "w", encoding="utf-8"):
                pass
        except OSError as e:
            self._warn("ステップログを作成できません", e)
            return False
        return True

    def append(self, i: int, t: float) -> bool:
        """ "<i> <t>" の行を追記"""
        if self.write("%d %g\n" % (i, t)):
            self.lines_written += 1
            return True
        return False

    def write(self, text: str) -> bool:
        """テキストを追記

        Returns:
            書き込みに成功したかどうか
        """
        try:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(text)
        except OSError as e:
            self._warn("ステップログに書き込めません", e)
            return False
        return True

    def _warn(self, msg: str, error: OSError) -> None:
        self.failures += 1
        self.logger.warning(f"{msg}: {self.path} ({error})")


class FrameWriter:
    """フレーム画像の出力

    体積分率の界面と鉛直速度 u.y の分布を描画して保存します。
    """

    def __init__(
        self,
        renderer,
        run_dir: Union[str, Path],
        output: OutputConfig,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Args:
            renderer: 描画器（Renderer プロトコル）
            run_dir: 実行ディレクトリ
            output: 出力の設定
            logger: ロガー
        """
        self.renderer = renderer
        self.run_dir = Path(run_dir)
        self.output = output
        self.logger = logger or logging.getLogger(__name__)
        self.frames = 0
        self.failures = 0

    def write(self, i: int, t: float) -> Optional[Path]:
        """現在の場を描画して保存

        Args:
            i: 反復回数
            t: 時刻

        Returns:
            保存したファイルのパス（失敗した場合は None）
        """
        try:
            path = frame_filename(
                self.run_dir, i, t, self.output.index_digits, self.output.image_format
            )
        except ValueError as e:
            self.failures += 1
            self.logger.warning(f"フレーム画像のファイル名を作成できません (t={t:g}): {e}")
            return None
        view = self.output.view

        self.renderer.set_view(tx=view.tx, ty=view.ty, width=view.width, height=view.height)
        self.renderer.clear()
        self.renderer.draw_vof("f")
        self.renderer.squares("u.y", linear=self.output.linear, spread=self.output.spread)
        self.renderer.box()
        try:
            self.renderer.save(str(path))
        except OSError as e:
            self.failures += 1
            self.logger.warning(f"フレーム画像を保存できません: {path} ({e})")
            return None

        self.frames += 1
        self.logger.debug(f"フレームを保存: {path.name}")
        return path
