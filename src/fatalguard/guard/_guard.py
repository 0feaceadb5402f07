"""FatalErrorGuard — 致命的エラーと終了シグナルのガード。

最初に受理した致命的イベントだけを扱い、シャットダウンフックを一度だけ
実行してタイムアウトで時間を区切り、その後に通常の終了処理へ戻す。

状態遷移:
    IDLE → EXITING: 最初の致命的イベントを受理。
    EXITING → IDLE: フックが timeout 秒以内に完了。
    EXITING → TIMED_OUT: タイムアウト発火。以後のイベントは破棄される。
    TIMED_OUT → IDLE: reset() のみ。

フック完了後の扱い:
    - SignalError: 次のループ反復で再送出し、既定の終了処理に委ねる。
    - その他の例外: app_error_policy に従う（デフォルトは IGNORE で何もしない。
      終了させるかどうかはフック側の責務とする）。
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import sys
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from functools import partial
from typing import Self

from fatalguard.guard._errors import ShutdownTimeoutError, SignalError
from fatalguard.guard._events import UNCAUGHT_EXCEPTION, EventSource, Listener
from fatalguard.models.config import AppErrorPolicy, GuardConfig
from fatalguard.models.exit_code import ExitCode
from fatalguard.models.state import GuardState

logger = logging.getLogger(__name__)

AlertFn = Callable[[BaseException, str], None]
ShutdownHook = Callable[[BaseException], Awaitable[None] | None]

_UNCAUGHT_MESSAGE = "uncaught exception"


def default_alert(error: BaseException, message: str) -> None:
    """タイムスタンプ付きの 1 行通知を stdout に書き出す。"""
    timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    print(f"{timestamp} -- fatal error: {message}", file=sys.stdout, flush=True)


async def _run_hook(hook: ShutdownHook | None, error: BaseException) -> None:
    """フックを実行する。同期関数のフックも受け付ける。"""
    if hook is None:
        return
    result = hook(error)
    if inspect.isawaitable(result):
        await result


def _reraise(error: BaseException) -> None:
    raise error


def _exit_after(error: BaseException) -> None:
    raise SystemExit(ExitCode.FATAL_ERROR) from error


class FatalErrorGuard:
    """プロセス全体の致命的エラーハンドラ。

    EventSource に uncaught_exception と SIGHUP/SIGINT/SIGTERM のリスナーを
    登録し、全イベントを handle_fatal_error() に集約する。

    Attributes:
        shutdown_hook: ``hook(error)`` 形式のフック。コルーチン関数も同期関数も可。
            None なら即座に完了する。
        timeout: フックの待機上限（秒）。
        alert: ``alert(error, message)`` 形式の通知関数。None で通知を抑止する。
        app_error_policy: フック完了後の非シグナルエラーの扱い。
        defer_sighup: 他の SIGHUP リスナーがいる場合に SIGHUP を無視するか。
    """

    def __init__(
        self,
        events: EventSource,
        config: GuardConfig | None = None,
        *,
        shutdown_hook: ShutdownHook | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._events = events
        self._config = config if config is not None else GuardConfig()
        self._configured_hook = shutdown_hook
        self._loop = loop

        self.shutdown_hook: ShutdownHook | None = None
        self.timeout: float = self._config.timeout
        self.alert: AlertFn | None = None
        self.app_error_policy: AppErrorPolicy = self._config.app_error_policy
        self.defer_sighup: bool = self._config.defer_sighup
        self._restore_defaults()

        self._installed = False
        self._handles_uncaught = False
        self._exiting = False
        self._timed_out = False
        self._last_error: BaseException | None = None
        self._sequence = 0
        self._countdown: asyncio.TimerHandle | None = None
        # 実行中シーケンスのループと完了通知。シーケンスごとに作り直す
        self._sequence_loop: asyncio.AbstractEventLoop | None = None
        self._settled: asyncio.Event | None = None

    # ------------------------------------------------------------------
    # 状態
    # ------------------------------------------------------------------

    @property
    def installed(self) -> bool:
        """install() 済みで、シグナルリスナーが登録されているか。"""
        return self._installed

    @property
    def handles_uncaught(self) -> bool:
        """uncaught_exception リスナーが登録されているか。

        フックの完了またはタイムアウトで解除され、install() / reset() で戻る。
        """
        return self._handles_uncaught

    @property
    def exiting(self) -> bool:
        return self._exiting

    @property
    def timed_out(self) -> bool:
        return self._timed_out

    @property
    def last_error(self) -> BaseException | None:
        return self._last_error

    @property
    def state(self) -> GuardState:
        if self._timed_out:
            return GuardState.TIMED_OUT
        if self._exiting:
            return GuardState.EXITING
        return GuardState.IDLE

    # ------------------------------------------------------------------
    # install / uninstall / reset
    # ------------------------------------------------------------------

    def install(self) -> Self:
        """リスナーを登録する。既存の登録は先に解除するため冪等。"""
        self.uninstall()
        for event, listener in self._registrations():
            self._events.add_listener(event, listener)
        self._installed = True
        self._handles_uncaught = True
        return self

    def uninstall(self) -> Self:
        """全リスナーを解除する。未登録のリスナーの解除失敗は無視する。"""
        for event, listener in self._registrations():
            self._remove_listener(event, listener)
        self._installed = False
        self._handles_uncaught = False
        return self

    async def wait_settled(self) -> GuardState:
        """実行中の致命的シーケンスがフック完了かタイムアウトで終わるまで待つ。

        シーケンスがなければ即座に返る。

        Returns:
            待機後の状態（IDLE または TIMED_OUT）。
        """
        if self._settled is not None:
            await self._settled.wait()
        return self.state

    def reset(self) -> Self:
        """設定をデフォルトに戻し、状態を初期化して再登録する。

        1 プロセス内で状態機械を繰り返し動かすため（主にテスト用）。
        実行中のフックは取り消さないが、その完了は無視される。
        """
        self.uninstall()
        self._restore_defaults()
        if self._countdown is not None:
            self._countdown.cancel()
            self._countdown = None
        self._sequence += 1
        self._exiting = False
        self._timed_out = False
        self._last_error = None
        self._sequence_loop = None
        if self._settled is not None:
            self._settled.set()
            self._settled = None
        return self.install()

    # ------------------------------------------------------------------
    # 状態遷移
    # ------------------------------------------------------------------

    def handle_fatal_error(
        self, error: BaseException, message: str | None = None
    ) -> None:
        """致命的イベントを処理する。全リスナーの共通入口。

        Args:
            error: 致命的イベントを表す例外。
            message: 通知用のラベル。None なら str(error) を使う。
        """
        if message is None:
            message = str(error)
        if self.alert is not None:
            self.alert(error, message)

        if self._exiting:
            print(
                f"already exiting, error ignored: {message}: {error!r}",
                file=sys.stdout,
                flush=True,
            )
            logger.warning("Fatal event ignored during shutdown: %s", message)
            return

        self._exiting = True
        self._last_error = error
        self._sequence += 1
        sequence = self._sequence
        # ループはキャッシュしない。asyncio.run() ごとに別のループになる
        loop = self._loop or asyncio.get_running_loop()
        self._sequence_loop = loop
        self._settled = asyncio.Event()

        logger.info("Fatal event accepted, running shutdown hook: %s", message)
        self._countdown = loop.call_later(self.timeout, self._on_timeout, sequence)
        task = loop.create_task(_run_hook(self.shutdown_hook, error))
        task.add_done_callback(partial(self._on_hook_done, sequence, error))

    def _on_timeout(self, sequence: int) -> None:
        if sequence != self._sequence:
            return
        self._countdown = None
        self._detach_uncaught()
        self._timed_out = True
        self._mark_settled()
        logger.warning("Shutdown hook exceeded the %gs timeout", self.timeout)
        raise ShutdownTimeoutError(self.timeout)

    def _on_hook_done(
        self,
        sequence: int,
        error: BaseException,
        task: asyncio.Task[None],
    ) -> None:
        if task.cancelled():
            logger.warning("Shutdown hook was cancelled")
        elif (hook_error := task.exception()) is not None:
            logger.error("Shutdown hook failed", exc_info=hook_error)

        if sequence != self._sequence:
            return
        if self._countdown is not None:
            self._countdown.cancel()
            self._countdown = None
        # 以降に起きる例外を再帰的に処理しない
        self._detach_uncaught()

        if self._timed_out:
            return
        self._exiting = False
        logger.info("Shutdown hook completed")

        loop = self._sequence_loop or asyncio.get_running_loop()
        if isinstance(error, SignalError):
            # 例外処理の文脈の外で送出しないと既定の終了処理に届かない
            loop.call_soon(_reraise, error)
        elif self.app_error_policy is AppErrorPolicy.REDISPATCH:
            loop.call_soon(self._events.emit, UNCAUGHT_EXCEPTION, error)
        elif self.app_error_policy is AppErrorPolicy.EXIT:
            loop.call_soon(_exit_after, error)
        # 待機側の再開は上の後続処理より後になる
        self._mark_settled()

    # ------------------------------------------------------------------
    # リスナー
    # ------------------------------------------------------------------

    def _on_uncaught(self, error: BaseException) -> None:
        self.handle_fatal_error(error, _UNCAUGHT_MESSAGE)

    def _on_hup(self) -> None:
        # アプリ側が SIGHUP を扱っているなら致命的とはみなさない
        if self.defer_sighup and len(self._events.listeners("SIGHUP")) > 1:
            logger.debug("SIGHUP left to the application's own listener")
            return
        self.handle_fatal_error(SignalError("SIGHUP"))

    def _on_int(self) -> None:
        self.handle_fatal_error(SignalError("SIGINT"))

    def _on_term(self) -> None:
        self.handle_fatal_error(SignalError("SIGTERM"))

    # ------------------------------------------------------------------
    # 内部ヘルパー
    # ------------------------------------------------------------------

    def _registrations(self) -> tuple[tuple[str, Listener], ...]:
        return (
            (UNCAUGHT_EXCEPTION, self._on_uncaught),
            ("SIGHUP", self._on_hup),
            ("SIGINT", self._on_int),
            ("SIGTERM", self._on_term),
        )

    def _remove_listener(self, event: str, listener: Listener) -> None:
        try:
            self._events.remove_listener(event, listener)
        except Exception:
            logger.debug("No %s listener to remove", event, exc_info=True)

    def _restore_defaults(self) -> None:
        self.shutdown_hook = self._configured_hook
        self.timeout = self._config.timeout
        self.alert = default_alert if self._config.alert else None
        self.app_error_policy = self._config.app_error_policy
        self.defer_sighup = self._config.defer_sighup

    def _detach_uncaught(self) -> None:
        self._remove_listener(UNCAUGHT_EXCEPTION, self._on_uncaught)
        self._handles_uncaught = False

    def _mark_settled(self) -> None:
        if self._settled is not None:
            self._settled.set()
