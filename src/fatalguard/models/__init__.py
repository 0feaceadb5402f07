"""設定・状態・終了コードのモデル。"""

from fatalguard.models.config import (
    DEFAULT_TIMEOUT_SECONDS,
    AppErrorPolicy,
    GuardConfig,
)
from fatalguard.models.exit_code import ExitCode
from fatalguard.models.state import GuardState

__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "AppErrorPolicy",
    "ExitCode",
    "GuardConfig",
    "GuardState",
]
