"""設定テーブルの読み込み。

ユーザー設定ファイルはトップレベル全体、pyproject.toml は
[tool.fatalguard] テーブルだけを設定レイヤーとして扱う。
値の検証は GuardConfig に委ねる。
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Final

PYPROJECT_TABLE: Final[tuple[str, ...]] = ("tool", "fatalguard")


def read_config_table(path: Path, *keys: str) -> dict[str, Any] | None:
    """TOML ファイルを読み、keys で辿ったテーブルを返す。

    keys を省略するとトップレベル全体を返す。途中のキーが存在しないか
    テーブルでなければ None を返す。

    Raises:
        tomllib.TOMLDecodeError: TOML 構文エラーの場合。
        FileNotFoundError: ファイルが存在しない場合。
        PermissionError: 読み取り権限がない場合。
    """
    with path.open("rb") as f:
        table: Any = tomllib.load(f)
    for key in keys:
        table = table.get(key)
        if not isinstance(table, dict):
            return None
    return table


def read_user_config(path: Path) -> dict[str, Any] | None:
    """ユーザー設定ファイルを読む。ファイルがなければ None。"""
    try:
        return read_config_table(path)
    except FileNotFoundError:
        return None


def read_pyproject_section(path: Path) -> dict[str, Any] | None:
    """pyproject.toml の [tool.fatalguard] を読む。テーブルがなければ None。"""
    return read_config_table(path, *PYPROJECT_TABLE)
