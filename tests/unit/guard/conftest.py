"""ガードテスト共通フィクスチャ・ヘルパー。"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Coroutine
from typing import Any

import pytest

from fatalguard.guard import UNCAUGHT_EXCEPTION, ProcessEvents

SETTLE_SECONDS = 0.05


@pytest.fixture
async def events() -> AsyncIterator[ProcessEvents]:
    """実行中のループに attach 済みの ProcessEvents（スレッド例外は中継しない）。"""
    process_events = ProcessEvents(
        asyncio.get_running_loop(), capture_threads=False
    ).attach()
    yield process_events
    process_events.detach()


@pytest.fixture
def uncaught(events: ProcessEvents) -> list[BaseException]:
    """uncaught_exception に届いた例外を記録するリスト。"""
    received: list[BaseException] = []
    events.add_listener(UNCAUGHT_EXCEPTION, received.append)
    return received


async def settle(seconds: float = SETTLE_SECONDS) -> None:
    """スケジュール済みのコールバックが走るまで待つ。"""
    await asyncio.sleep(seconds)


def run_until_exit(
    loop: asyncio.AbstractEventLoop,
    coro: Coroutine[Any, Any, None],
) -> SystemExit:
    """ループ外へ伝播する SystemExit を捕捉して返し、残タスクを片付ける。"""
    try:
        loop.run_until_complete(coro)
    except SystemExit as exc:
        caught = exc
    else:
        pytest.fail("SystemExit was not raised")
    pending = asyncio.all_tasks(loop)
    for task in pending:
        task.cancel()
    loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
    return caught
