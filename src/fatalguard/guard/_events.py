"""プロセスイベントの登録 API。

EventSource は名前付きイベントへのリスナー登録・解除・列挙・配信の
4 操作だけを定義する。ProcessEvents は asyncio イベントループ上の
実装で、以下をリスナーへ中継する:

- ループのコールバックで捕捉されなかった例外（"uncaught_exception"）
- threading.excepthook に到達したスレッド例外（"uncaught_exception"）
- SIGHUP / SIGINT / SIGTERM（シグナル名がイベント名）

uncaught_exception にリスナーがいない場合は既定の終了処理を行う。
SignalError は 128 + シグナル番号、それ以外は 1 で SystemExit を送出し、
SystemExit はイベントループの外まで伝播する。
"""

from __future__ import annotations

import asyncio
import logging
import signal
import threading
from collections.abc import Callable
from typing import Any, Final, Protocol, Self, runtime_checkable

from fatalguard.guard._errors import SignalError
from fatalguard.models.exit_code import ExitCode

logger = logging.getLogger(__name__)

UNCAUGHT_EXCEPTION: Final[str] = "uncaught_exception"
FATAL_SIGNALS: Final[tuple[str, ...]] = ("SIGHUP", "SIGINT", "SIGTERM")

Listener = Callable[..., object]


@runtime_checkable
class EventSource(Protocol):
    """名前付きイベントの登録 API。"""

    def add_listener(self, event: str, listener: Listener) -> None:
        """リスナーを末尾に追加する。"""
        ...

    def remove_listener(self, event: str, listener: Listener) -> None:
        """リスナーを 1 件解除する。未登録なら ValueError。"""
        ...

    def listeners(self, event: str) -> list[Listener]:
        """登録済みリスナーのコピーを返す。"""
        ...

    def emit(self, event: str, *args: object) -> bool:
        """全リスナーを登録順に呼び出す。リスナーがいれば True。"""
        ...


class ProcessEvents:
    """asyncio イベントループに結び付いた EventSource 実装。

    attach() するまではリスナーを保持するだけで、ループやシグナルには
    触れない。detach() で元の例外ハンドラ・excepthook・シグナル処理を戻す。
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop | None = None,
        *,
        capture_threads: bool = True,
    ) -> None:
        self._loop = loop
        self._capture_threads = capture_threads
        self._listeners: dict[str, list[Listener]] = {}
        self._attached = False
        self._previous_exception_handler: Any = None
        self._previous_thread_hook: Callable[[threading.ExceptHookArgs], Any] | None = (
            None
        )
        # ループが add_signal_handler 非対応の場合の退避先: signum → 元のハンドラ
        self._fallback_signals: dict[int, Any] = {}
        self._loop_signals: set[int] = set()

    @property
    def attached(self) -> bool:
        return self._attached

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        """結び付いたイベントループ。未指定なら実行中のループを採用する。"""
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    # ------------------------------------------------------------------
    # EventSource
    # ------------------------------------------------------------------

    def add_listener(self, event: str, listener: Listener) -> None:
        registered = self._listeners.setdefault(event, [])
        registered.append(listener)
        if self._attached and len(registered) == 1 and event in FATAL_SIGNALS:
            self._watch_signal(event)

    def remove_listener(self, event: str, listener: Listener) -> None:
        registered = self._listeners.get(event)
        if not registered:
            raise ValueError(f"listener is not registered for {event!r}")
        registered.remove(listener)
        if not registered:
            del self._listeners[event]
            if self._attached and event in FATAL_SIGNALS:
                self._unwatch_signal(event)

    def listeners(self, event: str) -> list[Listener]:
        return list(self._listeners.get(event, ()))

    def emit(self, event: str, *args: object) -> bool:
        registered = self.listeners(event)
        for listener in registered:
            listener(*args)
        return bool(registered)

    # ------------------------------------------------------------------
    # attach / detach
    # ------------------------------------------------------------------

    def attach(self) -> Self:
        """ループ例外・スレッド例外・シグナルの中継を開始する。冪等。"""
        if self._attached:
            return self
        loop = self.loop
        self._previous_exception_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._handle_loop_exception)
        if self._capture_threads:
            self._previous_thread_hook = threading.excepthook
            threading.excepthook = self._handle_thread_exception
        self._attached = True
        for event in FATAL_SIGNALS:
            if self._listeners.get(event):
                self._watch_signal(event)
        return self

    def detach(self) -> Self:
        """attach() の効果を取り消す。リスナー自体は保持する。冪等。"""
        if not self._attached:
            return self
        for event in FATAL_SIGNALS:
            self._unwatch_signal(event)
        self.loop.set_exception_handler(self._previous_exception_handler)
        self._previous_exception_handler = None
        if self._previous_thread_hook is not None:
            threading.excepthook = self._previous_thread_hook
            self._previous_thread_hook = None
        self._attached = False
        return self

    # ------------------------------------------------------------------
    # uncaught exceptions
    # ------------------------------------------------------------------

    def dispatch_uncaught(self, error: BaseException) -> None:
        """例外を uncaught_exception リスナーへ配信する。

        リスナーがいなければ既定の終了処理として SystemExit を送出する。
        """
        if self.emit(UNCAUGHT_EXCEPTION, error):
            return
        if isinstance(error, SignalError):
            logger.info("Terminating on %s", error.signal_name)
            raise SystemExit(error.exit_code) from error
        logger.critical("Uncaught exception, terminating", exc_info=error)
        raise SystemExit(ExitCode.FATAL_ERROR) from error

    def _handle_loop_exception(
        self,
        loop: asyncio.AbstractEventLoop,
        context: dict[str, Any],
    ) -> None:
        error = context.get("exception")
        if error is None:
            if self._previous_exception_handler is not None:
                self._previous_exception_handler(loop, context)
            else:
                loop.default_exception_handler(context)
            return
        self.dispatch_uncaught(error)

    def _handle_thread_exception(self, args: threading.ExceptHookArgs) -> None:
        if args.exc_value is None or issubclass(args.exc_type, SystemExit):
            return
        try:
            self.loop.call_soon_threadsafe(self.dispatch_uncaught, args.exc_value)
        except RuntimeError:
            # ループが閉じている
            if self._previous_thread_hook is not None:
                self._previous_thread_hook(args)

    # ------------------------------------------------------------------
    # signals
    # ------------------------------------------------------------------

    def _watch_signal(self, event: str) -> None:
        sig = getattr(signal, event, None)
        if sig is None:
            logger.debug("Signal %s is not available on this platform", event)
            return
        loop = self.loop
        try:
            loop.add_signal_handler(sig, self.emit, event)
        except (NotImplementedError, RuntimeError):
            # RuntimeError: メインスレッド以外で動くループ
            logger.debug("Loop cannot watch %s, using signal.signal", event)
        else:
            self._loop_signals.add(sig)
            return

        def _handler(signum: int, frame: object | None) -> None:
            loop.call_soon_threadsafe(self.emit, event)

        try:
            self._fallback_signals[sig] = signal.signal(sig, _handler)
        except ValueError:
            logger.debug("Signal %s is not supported in this context", event)

    def _unwatch_signal(self, event: str) -> None:
        sig = getattr(signal, event, None)
        if sig is None:
            return
        if sig in self._loop_signals:
            self._loop_signals.discard(sig)
            self.loop.remove_signal_handler(sig)
        elif sig in self._fallback_signals:
            signal.signal(sig, self._fallback_signals.pop(sig))
