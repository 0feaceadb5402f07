"""fatalguard — asyncio プロセス向けの致命的エラー・終了シグナルガード。

未捕捉例外と SIGHUP/SIGINT/SIGTERM を単一の非同期シャットダウンフックへ
集約し、フックの実行時間をタイムアウトで区切ってから終了処理に戻す。
"""

from fatalguard.config import resolve_config
from fatalguard.guard import (
    EventSource,
    FatalErrorGuard,
    FatalGuardError,
    ProcessEvents,
    ShutdownTimeoutError,
    SignalError,
    guarded_run,
)
from fatalguard.models import AppErrorPolicy, GuardConfig, GuardState

__all__ = [
    "AppErrorPolicy",
    "EventSource",
    "FatalErrorGuard",
    "FatalGuardError",
    "GuardConfig",
    "GuardState",
    "ProcessEvents",
    "ShutdownTimeoutError",
    "SignalError",
    "guarded_run",
    "main",
    "resolve_config",
]


def main() -> None:
    """パッケージエントリポイント。cli.main() に委譲する。"""
    from fatalguard.cli import main as cli_main

    cli_main()
