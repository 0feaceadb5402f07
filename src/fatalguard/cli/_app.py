"""CliApp — Typer アプリケーション定義。

config: 解決済み設定を JSON で出力する。
demo: ガード付きの待機プロセスを起動し、シグナル時の挙動を手元で確認する。
"""

from __future__ import annotations

import asyncio
import importlib.metadata
import os
import sys
import tomllib
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console

from fatalguard.config import resolve_config
from fatalguard.guard import guarded_run
from fatalguard.models.config import GuardConfig
from fatalguard.models.exit_code import ExitCode

app = typer.Typer(
    name="fatalguard",
    help="Fatal error and termination signal guard for asyncio processes.",
    add_completion=False,
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    """--version 指定時にバージョン番号を出力して終了する。"""
    if value:
        print(importlib.metadata.version("fatalguard"))
        raise typer.Exit()


@app.callback()
def _main_callback(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
) -> None:
    """Fatal error and termination signal guard."""


def _load_config(timeout: float | None, policy: str | None) -> GuardConfig:
    """設定を解決する。失敗時は stderr に出力し CONFIG_ERROR で終了する。"""
    try:
        return resolve_config(
            cli_overrides={"timeout": timeout, "app_error_policy": policy}
        )
    except ValidationError as e:
        print(
            f"Error: invalid configuration.\n{e}\n"
            "Check [tool.fatalguard] in pyproject.toml and "
            "~/.config/fatalguard/config.toml.",
            file=sys.stderr,
        )
        raise typer.Exit(code=ExitCode.CONFIG_ERROR) from None
    except (tomllib.TOMLDecodeError, PermissionError) as e:
        print(f"Error: cannot read configuration: {e}", file=sys.stderr)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR) from None


TimeoutOption = Annotated[
    float | None,
    typer.Option("--timeout", help="Shutdown hook timeout in seconds."),
]
PolicyOption = Annotated[
    str | None,
    typer.Option(
        "--policy",
        help="What to do with application errors after the hook: "
        "ignore, redispatch or exit.",
    ),
]


@app.command("config")
def config_command(
    timeout: TimeoutOption = None,
    policy: PolicyOption = None,
) -> None:
    """Show the resolved guard configuration as JSON."""
    config = _load_config(timeout, policy)
    print(config.model_dump_json(indent=2))


@app.command("demo")
def demo_command(
    hook_delay: Annotated[
        float,
        typer.Option("--hook-delay", min=0.0, help="Seconds the shutdown hook takes."),
    ] = 0.0,
    timeout: TimeoutOption = None,
    policy: PolicyOption = None,
) -> None:
    """Run an idle guarded process until a termination signal arrives."""
    config = _load_config(timeout, policy)
    console = Console(file=sys.stderr)

    async def _shutdown_hook(error: BaseException) -> None:
        console.print(f"shutdown hook: {error!r} (taking {hook_delay:g}s)")
        await asyncio.sleep(hook_delay)
        console.print("shutdown hook: done")

    async def _idle() -> None:
        console.print(
            f"guard installed (pid {os.getpid()}, timeout {config.timeout:g}s); "
            "send SIGINT, SIGTERM or SIGHUP to stop"
        )
        await asyncio.Event().wait()

    guarded_run(_idle(), shutdown_hook=_shutdown_hook, config=config)
