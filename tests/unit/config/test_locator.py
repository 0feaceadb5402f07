"""設定ファイル探索のテスト。"""

from __future__ import annotations

from pathlib import Path

from fatalguard.config._locator import find_pyproject_toml, get_user_config_path


def _create_pyproject_toml(base: Path) -> Path:
    """base に pyproject.toml を作成し、そのパスを返す。"""
    path = base / "pyproject.toml"
    path.write_text("[project]\nname = 'test'\n", encoding="utf-8")
    return path


class TestFindPyprojectToml:
    """find_pyproject_toml のテスト。"""

    def test_found_in_current(self, tmp_path: Path) -> None:
        path = _create_pyproject_toml(tmp_path)
        assert find_pyproject_toml(tmp_path) == path.resolve()

    def test_found_in_parent(self, tmp_path: Path) -> None:
        path = _create_pyproject_toml(tmp_path)
        child = tmp_path / "src" / "pkg"
        child.mkdir(parents=True)
        assert find_pyproject_toml(child) == path.resolve()

    def test_nearest_wins(self, tmp_path: Path) -> None:
        _create_pyproject_toml(tmp_path)
        child = tmp_path / "sub"
        child.mkdir()
        nearest = _create_pyproject_toml(child)
        assert find_pyproject_toml(child) == nearest.resolve()

    def test_directory_named_pyproject_ignored(self, tmp_path: Path) -> None:
        """pyproject.toml という名前のディレクトリは対象外。"""
        child = tmp_path / "child"
        (child / "pyproject.toml").mkdir(parents=True)
        path = _create_pyproject_toml(tmp_path)
        assert find_pyproject_toml(child) == path.resolve()


class TestGetUserConfigPath:
    """get_user_config_path のテスト。"""

    def test_under_home_config(self) -> None:
        expected = Path.home() / ".config" / "fatalguard" / "config.toml"
        assert get_user_config_path() == expected
