"""guarded_run — ガード付きで asyncio プログラムを実行する。"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any, TypeVar

from fatalguard.guard._events import ProcessEvents
from fatalguard.guard._guard import FatalErrorGuard, ShutdownHook
from fatalguard.models.config import GuardConfig

T = TypeVar("T")


def guarded_run(
    main: Coroutine[Any, Any, T],
    *,
    shutdown_hook: ShutdownHook | None = None,
    config: GuardConfig | None = None,
) -> T | None:
    """asyncio.run() と同様に main を実行し、その間ガードを有効にする。

    新しいイベントループに ProcessEvents を結び付けてガードを install し、
    main の終了後に uninstall と detach を行う。main 自身が送出した例外も
    未捕捉例外としてガードへ渡し、フックの完了かタイムアウトを待ってから
    app_error_policy に従って終了処理を行う。

    Args:
        main: 実行するコルーチン。
        shutdown_hook: 致命的イベント受理時に一度だけ実行するフック。
        config: ガード設定。None の場合はデフォルト値。

    Returns:
        main の戻り値。main が例外で終わり、ポリシーが終了させなかった
        場合は None。

    Raises:
        SystemExit: 終了シグナルや未捕捉例外による既定の終了処理。
    """

    async def _guarded() -> T | None:
        events = ProcessEvents(asyncio.get_running_loop()).attach()
        guard = FatalErrorGuard(events, config, shutdown_hook=shutdown_hook).install()
        try:
            return await main
        except Exception as error:
            # ガードが解除済みなら既定の終了処理で SystemExit になる
            events.dispatch_uncaught(error)
            await guard.wait_settled()
            return None
        finally:
            guard.uninstall()
            events.detach()

    return asyncio.run(_guarded())
