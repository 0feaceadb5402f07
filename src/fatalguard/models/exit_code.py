"""ExitCode — 終了コードの定義。"""

from enum import IntEnum


class ExitCode(IntEnum):
    """プロセス終了コード。

    シグナルによる終了は SIGNAL_BASE + シグナル番号（シェルの慣例）を使う。
    """

    SUCCESS = 0
    FATAL_ERROR = 1
    CONFIG_ERROR = 4
    SIGNAL_BASE = 128
