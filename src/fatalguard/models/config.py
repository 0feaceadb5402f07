"""ガード設定モデル。

タイムアウト・アラート有効化・アプリケーションエラー方針・SIGHUP 委譲の
4 項目を定義する。全項目にデフォルト値があり、引数なしで構築可能。
"""

from __future__ import annotations

from enum import StrEnum
from typing import Final

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator

DEFAULT_TIMEOUT_SECONDS: Final[float] = 30.0


class AppErrorPolicy(StrEnum):
    """シャットダウンフック完了後の非シグナルエラーの扱い。

    IGNORE: 何もしない。フックがエラーを処理済みとみなす（デフォルト）。
    REDISPATCH: 残りの uncaught_exception リスナーへ再配信する。
    EXIT: 終了コード 1 でプロセスを終了する。
    """

    IGNORE = "ignore"
    REDISPATCH = "redispatch"
    EXIT = "exit"


class GuardConfig(BaseModel):
    """FatalErrorGuard の設定を統合した不変モデル。

    設定ファイルの綴り間違いを検出するため未知のキーは拒否する。

    Attributes:
        timeout: シャットダウンフックの待機上限（秒、正の値）。
        alert: 致命的イベント受理時に通知行を出力するか。
        app_error_policy: フック完了後の非シグナルエラーの扱い。
            大文字小文字は区別しない。
        defer_sighup: 他の SIGHUP リスナーが存在する場合に SIGHUP を無視するか。
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    timeout: float = Field(
        default=DEFAULT_TIMEOUT_SECONDS, gt=0, allow_inf_nan=False
    )
    alert: StrictBool = True
    app_error_policy: AppErrorPolicy = AppErrorPolicy.IGNORE
    defer_sighup: StrictBool = True

    @field_validator("app_error_policy", mode="before")
    @classmethod
    def normalize_policy(cls, v: object) -> object:
        # "EXIT" も "exit" も受け付ける。不明な値は後続の検証に任せる
        if isinstance(v, str):
            return v.strip().lower()
        return v
