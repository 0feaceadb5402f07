"""ガードが扱うエラー種別。

SignalError は「終了を要求された」ことを、その他の例外は「何かが壊れた」
ことを表す。ShutdownTimeoutError はガード自身が合成する。
"""

from __future__ import annotations

import signal

from fatalguard.models.exit_code import ExitCode


class FatalGuardError(Exception):
    """fatalguard が送出する例外の基底クラス。"""


class SignalError(FatalGuardError):
    """終了シグナルを表す例外。メッセージはシグナル名のみ。

    Attributes:
        signal_name: シグナル名（"SIGHUP", "SIGINT", "SIGTERM"）。
        signum: シグナル番号。このプラットフォームに存在しなければ None。
    """

    def __init__(self, signal_name: str) -> None:
        super().__init__(signal_name)
        self.signal_name = signal_name
        sig = getattr(signal.Signals, signal_name, None)
        self.signum: int | None = int(sig) if sig is not None else None

    @property
    def exit_code(self) -> int:
        """既定の終了処理で使う終了コード（128 + シグナル番号）。"""
        if self.signum is None:
            return ExitCode.FATAL_ERROR
        return ExitCode.SIGNAL_BASE + self.signum


class ShutdownTimeoutError(FatalGuardError, TimeoutError):
    """シャットダウンフックが timeout 秒以内に完了しなかった。"""

    def __init__(self, timeout: float) -> None:
        super().__init__(
            f"fatalguard: shutdown hook took longer than the configured "
            f"timeout ({timeout:g}s)"
        )
        self.timeout = timeout
