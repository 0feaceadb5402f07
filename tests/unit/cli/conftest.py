"""CLI テスト共通フィクスチャ・ヘルパー。"""

from __future__ import annotations

from pydantic import ValidationError

from fatalguard.models.config import GuardConfig

PATCH_RESOLVE_CONFIG = "fatalguard.cli._app.resolve_config"
PATCH_GUARDED_RUN = "fatalguard.cli._app.guarded_run"
PATCH_VERSION = "fatalguard.cli._app.importlib.metadata.version"


def make_validation_error() -> ValidationError:
    """テスト用の実際の ValidationError を生成する。"""
    try:
        GuardConfig.model_validate({"timeout": -1})
    except ValidationError as e:
        return e
    raise AssertionError("GuardConfig accepted a negative timeout")
