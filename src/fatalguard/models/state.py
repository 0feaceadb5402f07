"""ガードの状態定義。"""

from enum import StrEnum


class GuardState(StrEnum):
    """致命的シーケンスの状態。

    IDLE → EXITING: 最初の致命的イベントを受理。
    EXITING → IDLE: シャットダウンフックが時間内に完了。
    EXITING → TIMED_OUT: タイムアウト発火。reset() でのみ IDLE に戻る。
    """

    IDLE = "idle"
    EXITING = "exiting"
    TIMED_OUT = "timed_out"
