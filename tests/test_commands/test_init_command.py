"""
init コマンドのテスト（対話はモック）
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest
import typer

from qad.commands.init import InitOptions, _validate_optional_api_key, init_command, validate_role_name
from qad.core.config import ConfigStore, default_config
from qad.errors import QadError

from tests.helpers import PLAYWRIGHT_CONFIG


def _package_json(root: Path, deps: dict) -> None:
    (root / "package.json").write_text(json.dumps({"devDependencies": deps}), encoding="utf-8")


class TestInitGuards:
    """init の中断条件のテスト。"""

    def test_existing_config_kept_when_declined(self, store: ConfigStore) -> None:
        before = store.path.read_text(encoding="utf-8")
        with patch("qad.commands.init.ui.confirm", side_effect=[False]):
            init_command(store=store)
        assert store.path.read_text(encoding="utf-8") == before

    def test_not_a_playwright_project(self, project_dir: Path) -> None:
        store = ConfigStore(project_dir)
        with patch("qad.commands.init.ui.confirm", side_effect=[False]):
            init_command(store=store)
        assert not store.exists()

    def test_missing_peer_dependency_declined(self, project_dir: Path, capsys: pytest.CaptureFixture[str]) -> None:
        _package_json(project_dir, {"playwright": "1.45.0"})
        store = ConfigStore(project_dir)
        with patch("qad.commands.init.ui.confirm", side_effect=[False]):
            init_command(store=store)
        assert "npm install -D @playwright/test" in capsys.readouterr().out
        assert not store.exists()

    def test_no_playwright_config_declined(self, project_dir: Path) -> None:
        _package_json(project_dir, {"@playwright/test": "1.45.0"})
        with patch("qad.commands.init.ui.confirm", side_effect=[False]):
            with pytest.raises(QadError):
                init_command(store=ConfigStore(project_dir))

    def test_no_playwright_config_accepted(self, project_dir: Path) -> None:
        _package_json(project_dir, {"@playwright/test": "1.45.0"})
        with patch("qad.commands.init.ui.confirm", side_effect=[True]):
            with pytest.raises(typer.Exit):
                init_command(store=ConfigStore(project_dir))


class TestInitFlow:
    """init の対話フローのテスト。"""

    @pytest.fixture
    def project(self, project_dir: Path) -> ConfigStore:
        _package_json(project_dir, {"@playwright/test": "1.45.0"})
        (project_dir / "playwright.config.ts").write_text(PLAYWRIGHT_CONFIG, encoding="utf-8")
        return ConfigStore(project_dir)

    def test_detected_defaults_are_offered(self, project: ConfigStore) -> None:
        answers = {
            "テストディレクトリ": "./e2e",
            "ベース URL": "http://localhost:5173",
            "認証状態ディレクトリ": "playwright/.auth",
            "環境変数ファイル": ".env.qa",
        }
        defaults_seen: dict[str, str] = {}

        def fake_ask(message, default=None, validate=None, secret=False):
            defaults_seen[message] = default
            return answers.get(message, "")

        with patch("qad.commands.init.ui.ask", side_effect=fake_ask), \
                patch("qad.commands.init.ui.confirm", side_effect=[False]):
            init_command(InitOptions(skip_github_actions=True), store=project)

        assert defaults_seen["テストディレクトリ"] == "./e2e"
        assert defaults_seen["ベース URL"] == "http://localhost:5173"
        config = project.load()
        assert config.testDir == "e2e"
        assert config.setup.enabled is False

    def test_setup_disabled_skips_setup_file(self, project: ConfigStore) -> None:
        options = InitOptions(
            test_dir="tests", base_url="http://localhost:3000", auth_dir=".auth", env_dir=".env.qa",
            skip_github_actions=True,
        )
        with patch("qad.commands.init.ui.ask", return_value=""), \
                patch("qad.commands.init.ui.confirm", side_effect=[False]):
            init_command(options, store=project)

        root = project.project_dir
        config = project.load()
        assert config.setup.path == default_config().setup.path
        assert not (root / config.setup.path).exists()
        assert (root / ".auth").is_dir()
        assert "name: 'setup'" not in (root / "playwright.config.ts").read_text(encoding="utf-8")

    def test_existing_setup_script(self, project: ConfigStore) -> None:
        options = InitOptions(
            test_dir="tests", base_url="http://localhost:3000", auth_dir=".auth", env_dir=".env.qa",
            skip_github_actions=True,
        )
        with patch("qad.commands.init.ui.ask", side_effect=["", "tests/global.setup.ts"]), \
                patch("qad.commands.init.ui.choose", side_effect=lambda message, choices: choices[1]), \
                patch("qad.commands.init.ui.confirm", side_effect=[True, False]):
            init_command(options, store=project)

        config = project.load()
        assert config.setup.path == "tests/global.setup.ts"
        assert not (project.project_dir / "tests" / "global.setup.ts").exists()

    def test_chains_into_login(self, project: ConfigStore) -> None:
        options = InitOptions(
            test_dir="tests", base_url="http://localhost:3000", auth_dir=".auth", env_dir=".env.qa",
            skip_github_actions=True,
        )
        with patch("qad.commands.init.ui.ask", side_effect=["", "tests/auth.setup.ts", "admin"]), \
                patch("qad.commands.init.ui.choose", side_effect=lambda message, choices: choices[0]), \
                patch("qad.commands.init.ui.confirm", side_effect=[True, True]), \
                patch("qad.commands.init.login_command") as login:
            init_command(options, store=project)

        login.assert_called_once()
        assert login.call_args.args == ("admin",)
        assert login.call_args.kwargs["store"] is project

    def test_failed_login_does_not_abort(self, project: ConfigStore, capsys: pytest.CaptureFixture[str]) -> None:
        options = InitOptions(
            test_dir="tests", base_url="http://localhost:3000", auth_dir=".auth", env_dir=".env.qa",
            skip_github_actions=True,
        )
        with patch("qad.commands.init.ui.ask", side_effect=["", "tests/auth.setup.ts", "admin"]), \
                patch("qad.commands.init.ui.choose", side_effect=lambda message, choices: choices[0]), \
                patch("qad.commands.init.ui.confirm", side_effect=[True, True]), \
                patch("qad.commands.init.login_command", side_effect=QadError("codegen failed")):
            init_command(options, store=project)

        captured = capsys.readouterr()
        assert "codegen failed" in captured.err
        assert "qa-director login admin" in captured.out
        assert project.exists()


class TestValidateRoleName:
    """validate_role_name のテスト。"""

    @pytest.mark.parametrize("name", ["user", "Admin2", "read-only", "qa_bot"])
    def test_valid(self, name: str) -> None:
        assert validate_role_name(name) is None

    @pytest.mark.parametrize("name", ["", "2fa", "-user", "has space", "a/b"])
    def test_invalid(self, name: str) -> None:
        assert validate_role_name(name) is not None


class TestOptionalApiKey:
    """init の API キー入力検証のテスト。"""

    def test_blank_is_allowed(self) -> None:
        assert _validate_optional_api_key("") is None

    def test_same_rule_as_agent(self) -> None:
        assert _validate_optional_api_key("sk-proj-123") is not None
        assert _validate_optional_api_key("sk-ant-api03-xyz") is None
