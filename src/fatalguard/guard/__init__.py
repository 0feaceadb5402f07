"""致命的エラーと終了シグナルのガード。

構成:
    EventSource / ProcessEvents: リスナー登録 API と asyncio 上の実装。
    FatalErrorGuard: 最初の致命的イベントだけを扱う状態機械。
    guarded_run: ガード付きで asyncio プログラムを実行するヘルパー。
"""

from fatalguard.guard._errors import FatalGuardError, ShutdownTimeoutError, SignalError
from fatalguard.guard._events import (
    FATAL_SIGNALS,
    UNCAUGHT_EXCEPTION,
    EventSource,
    ProcessEvents,
)
from fatalguard.guard._guard import (
    AlertFn,
    FatalErrorGuard,
    ShutdownHook,
    default_alert,
)
from fatalguard.guard._runner import guarded_run

__all__ = [
    "FATAL_SIGNALS",
    "UNCAUGHT_EXCEPTION",
    "AlertFn",
    "EventSource",
    "FatalErrorGuard",
    "FatalGuardError",
    "ProcessEvents",
    "ShutdownHook",
    "ShutdownTimeoutError",
    "SignalError",
    "default_alert",
    "guarded_run",
]
