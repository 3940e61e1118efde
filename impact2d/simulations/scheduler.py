"""
時刻・反復回数に基づくイベントスケジューラ

このモジュールは、シミュレーションループの各反復の後に評価される
イベント（コールバック）を管理します。

トリガーの種類:
- Once(t0): t ≥ t0 となった最初の評価で1回だけ発火
- EveryStep(di): 反復回数 i が di の倍数のとき発火
- EveryTime(dt): 時刻が dt の新しい倍数に達したとき発火
  （1ステップで複数の倍数を越えても1回のみ）
- AtEnd(t_end): t ≥ t_end で発火し、その反復の評価後にループを終了

同じ反復で複数のイベントが発火する場合は登録順に実行されます。
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

# 時刻比較の相対許容誤差
EPSILON = 1e-9

EventCallback = Callable[[Any], None]


class SchedulerError(RuntimeError):
    """スケジューラの実行に失敗した場合の例外"""


class EventState(Enum):
    """イベントの状態"""

    PENDING = "pending"
    FIRED = "fired"
    RETIRED = "retired"
    REARMED = "re-armed"


def _reached(t: float, target: float) -> bool:
    return t >= target - EPSILON * max(abs(target), abs(t))


class Trigger:
    """トリガーの基底クラス"""

    # 発火後に再び発火しうるかどうか
    repeating = True

    def reset(self) -> None:
        """内部状態を初期化"""

    def is_due(self, i: int, t: float) -> bool:
        raise NotImplementedError

    def mark_fired(self, i: int, t: float) -> None:
        """発火を記録"""

    def deadline(self, t: float) -> Optional[float]:
        """t より後で次に発火しうる時刻（時刻に依存しないトリガーは None）"""
        return None


@dataclass
class Once(Trigger):
    """指定時刻以降の最初の評価で1回だけ発火"""

    time: float = 0.0
    repeating = False

    def is_due(self, i: int, t: float) -> bool:
        return _reached(t, self.time)

    def deadline(self, t: float) -> Optional[float]:
        return self.time if self.time > t else None


@dataclass
class EveryStep(Trigger):
    """反復回数の間隔で発火（i = 0 を含む）"""

    interval: int = 1

    def __post_init__(self):
        if int(self.interval) != self.interval or self.interval < 1:
            raise ValueError(f"反復間隔は正の整数である必要があります: {self.interval}")

    def is_due(self, i: int, t: float) -> bool:
        return i % self.interval == 0


@dataclass
class EveryTime(Trigger):
    """時刻の間隔で発火

    時刻 t の区間番号 k = floor(t/dt + ε) が最後に発火した区間番号より
    大きくなったときに発火します。include_start が真なら t = 0 でも発火します。
    """

    interval: float = 1.0
    include_start: bool = False
    _last_index: int = field(default=0, init=False, repr=False, compare=False)

    def __post_init__(self):
        if not (math.isfinite(self.interval) and self.interval > 0):
            raise ValueError(f"時間間隔は正の値である必要があります: {self.interval}")
        self.reset()

    def reset(self) -> None:
        self._last_index = -1 if self.include_start else 0

    def _index(self, t: float) -> int:
        return math.floor(t / self.interval + EPSILON)

    def is_due(self, i: int, t: float) -> bool:
        return self._index(t) > self._last_index

    def mark_fired(self, i: int, t: float) -> None:
        self._last_index = self._index(t)

    def deadline(self, t: float) -> Optional[float]:
        return (self._last_index + 1) * self.interval


@dataclass
class AtEnd(Trigger):
    """終了時刻で1回だけ発火し、ループを終了させる"""

    time: float = 0.0
    repeating = False

    def is_due(self, i: int, t: float) -> bool:
        return _reached(t, self.time)

    def deadline(self, t: float) -> Optional[float]:
        return self.time


@dataclass
class ScheduledEvent:
    """登録済みのイベント

    Attributes:
        name: イベント名
        trigger: トリガー
        callback: コンテキストを受け取るコールバック
        priority: 登録順（小さいほど先に実行）
        state: イベントの状態
        fire_count: 発火回数
    """

    name: str
    trigger: Trigger
    callback: EventCallback
    priority: int
    state: EventState = EventState.PENDING
    fire_count: int = 0

    @property
    def active(self) -> bool:
        return self.state is not EventState.RETIRED


class EventScheduler:
    """イベントスケジューラ

    イベントは登録のみ可能で、削除や取り消しはできません。
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        max_iterations: Optional[int] = None,
    ):
        """スケジューラを初期化

        Args:
            logger: ロガー
            max_iterations: 反復回数の上限（None なら無制限）
        """
        self.logger = logger or logging.getLogger(__name__)
        self.max_iterations = max_iterations
        self._events: List[ScheduledEvent] = []
        self._finished = False

    @property
    def events(self) -> List[ScheduledEvent]:
        return list(self._events)

    @property
    def finished(self) -> bool:
        """終了イベントが発火したかどうか"""
        return self._finished

    def register(
        self, name: str, trigger: Trigger, callback: EventCallback
    ) -> ScheduledEvent:
        """イベントを登録

        Args:
            name: イベント名（一意）
            trigger: トリガー
            callback: コンテキストを受け取るコールバック

        Returns:
            登録されたイベント
        """
        if any(event.name == name for event in self._events):
            raise ValueError(f"イベント {name!r} は既に登録されています")
        trigger.reset()
        event = ScheduledEvent(
            name=name, trigger=trigger, callback=callback, priority=len(self._events)
        )
        self._events.append(event)
        self.logger.debug(f"イベントを登録: {name} ({trigger})")
        return event

    def evaluate(self, context) -> List[str]:
        """現在のクロックで発火すべきイベントを登録順に実行

        Args:
            context: clock 属性を持つ実行コンテキスト

        Returns:
            発火したイベント名のリスト
        """
        i, t = context.clock.i, context.clock.t
        fired = []
        for event in sorted(self._events, key=lambda e: e.priority):
            if not event.active or not event.trigger.is_due(i, t):
                continue

            event.state = EventState.FIRED
            event.trigger.mark_fired(i, t)
            event.fire_count += 1
            event.callback(context)
            fired.append(event.name)

            if isinstance(event.trigger, AtEnd):
                self._finished = True
            event.state = (
                EventState.REARMED if event.trigger.repeating else EventState.RETIRED
            )
        return fired

    def next_deadline(self, t: float) -> float:
        """t より後の最も早い時刻トリガーの期限（なければ inf）"""
        deadlines = [
            event.trigger.deadline(t) for event in self._events if event.active
        ]
        future = [d for d in deadlines if d is not None and d > t]
        return min(future, default=math.inf)

    def run(self, context, step: Callable[[Any, float], None]) -> int:
        """終了イベントが発火するまでループを実行

        初期クロックでイベントを評価した後、
        ステップの実行・反復回数の更新・イベントの評価を繰り返します。

        Args:
            context: clock 属性を持つ実行コンテキスト
            step: (context, dt_max) を受け取り、時刻を進めるステップ関数

        Returns:
            実行したステップ数

        Raises:
            SchedulerError: 終了イベントが登録されていない、または反復回数の上限を超えた場合
        """
        if not any(isinstance(event.trigger, AtEnd) for event in self._events):
            raise SchedulerError("終了イベントが登録されていません")

        clock = context.clock
        self.evaluate(context)

        steps = 0
        while not self._finished:
            if self.max_iterations is not None and steps >= self.max_iterations:
                raise SchedulerError(
                    f"反復回数の上限 ({self.max_iterations}) に達しました (t={clock.t:g})"
                )
            step(context, self.next_deadline(clock.t) - clock.t)
            clock.tick()
            steps += 1
            self.evaluate(context)

        return steps

    def fire_counts(self) -> Dict[str, int]:
        """イベントごとの発火回数"""
        return {event.name: event.fire_count for event in self._events}
