"""
generate コマンドのテスト

ブラウザエージェント・コーディングエージェント・npx はすべてモック。
"""

from __future__ import annotations

import os
import time
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from qad.commands.generate import (
    GENERATE_MAX_TURNS,
    build_final_description,
    expand_braces,
    find_latest_test_file,
    generate_command,
    run_generated_test,
)
from qad.core.agent import EDIT_TOOLS, AgentResult
from qad.core.browser_agent import BrowserAgentResult
from qad.core.config import ConfigStore, Role
from qad.errors import AgentError, MissingApiKeyError, QadError

TRANSCRIPT = "Tool Call: browser_navigate\nTool Result: Page Title: Profile\n"


@pytest.fixture
def with_user(store: ConfigStore, user_role: Role, monkeypatch: pytest.MonkeyPatch) -> ConfigStore:
    store.add_role(user_role)
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
    return store


def _generate(
    store: ConfigStore,
    answers: list[bool],
    browser: BrowserAgentResult | None = None,
    coding: AgentResult | None = None,
    description: str | None = "Open the profile page",
    role_name: str | None = "user",
    debug: bool = False,
):
    browser = browser or BrowserAgentResult(success=True, output=TRANSCRIPT)
    coding = coding or AgentResult(success=True, duration_ms=2500, cost_usd=0.042, turns=9)
    with patch("qad.commands.generate.ui.confirm", side_effect=answers), \
            patch("qad.commands.generate.run_browser_agent", return_value=browser) as browser_agent, \
            patch("qad.commands.generate.run_coding_agent", return_value=coding) as coding_agent, \
            patch("qad.commands.generate.run_generated_test") as run_test:
        generate_command(description, role_name, debug=debug, store=store)
    return browser_agent, coding_agent, run_test


class TestGenerateCommand:
    """generate_command のテスト。"""

    def test_happy_path(self, with_user: ConfigStore, capsys: pytest.CaptureFixture[str]) -> None:
        # 生成する / 追加指示なし / ファイル名なし / 実行しない
        browser_agent, coding_agent, run_test = _generate(with_user, [True, False, False, False])

        browser_agent.assert_called_once()
        assert browser_agent.call_args.args == ("Open the profile page",)
        assert browser_agent.call_args.kwargs["storage_state_path"] == "playwright/.auth/storageState.user.json"
        assert browser_agent.call_args.kwargs["base_url"] == "http://localhost:3000"

        prompt = coding_agent.call_args.args[0]
        assert TRANSCRIPT in prompt
        assert "<role>\nuser\n</role>" in prompt
        assert coding_agent.call_args.kwargs["max_turns"] == GENERATE_MAX_TURNS
        assert coding_agent.call_args.kwargs["allowed_tools"] == EDIT_TOOLS
        run_test.assert_not_called()

        out = capsys.readouterr().out
        assert "$0.0420" in out
        assert "2.50s" in out

    def test_additional_instructions_and_filename(self, with_user: ConfigStore) -> None:
        with patch("qad.commands.generate.ui.ask", side_effect=["Check the avatar too", "profile-page"]):
            _, coding_agent, _ = _generate(with_user, [True, True, True, False])
        prompt = coding_agent.call_args.args[0]
        assert "Additional instructions: Check the avatar too" in prompt
        assert 'Please name the generated test file "profile-page"' in prompt

    def test_run_after_generation(self, with_user: ConfigStore) -> None:
        _, _, run_test = _generate(with_user, [True, False, False, True])
        run_test.assert_called_once()
        assert run_test.call_args.args[0].name == "user"

    def test_declined_generation(self, with_user: ConfigStore) -> None:
        _, coding_agent, _ = _generate(with_user, [False])
        coding_agent.assert_not_called()

    def test_browser_failure_is_fatal(self, with_user: ConfigStore) -> None:
        with pytest.raises(AgentError) as exc_info:
            _generate(with_user, [], browser=BrowserAgentResult(success=False, error="page crashed"))
        assert "page crashed" in str(exc_info.value)

    def test_coding_failure_is_fatal(self, with_user: ConfigStore) -> None:
        with pytest.raises(AgentError):
            _generate(with_user, [True, False, False], coding=AgentResult(success=False, error="max turns"))

    def test_debug_prints_prompt(self, with_user: ConfigStore, capsys: pytest.CaptureFixture[str]) -> None:
        _generate(with_user, [True, False, False, False], debug=True)
        assert "<browser_agent_output>" in capsys.readouterr().out

    def test_prompts_for_missing_description(self, with_user: ConfigStore) -> None:
        with patch("qad.commands.generate.ui.ask", return_value="Log out"):
            browser_agent, _, _ = _generate(with_user, [True, False, False, False], description="  ")
        assert browser_agent.call_args.args == ("Log out",)

    def test_role_chosen_interactively(self, with_user: ConfigStore) -> None:
        with patch("qad.commands.generate.ui.choose", return_value="user") as choose:
            _generate(with_user, [True, False, False, False], role_name=None)
        assert choose.call_args.args[1] == ["user"]

    def test_unknown_role(self, with_user: ConfigStore) -> None:
        with pytest.raises(QadError) as exc_info:
            _generate(with_user, [], role_name="ghost")
        assert "user" in str(exc_info.value)

    def test_no_roles(self, store: ConfigStore, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant-test")
        with pytest.raises(QadError) as exc_info:
            _generate(store, [], role_name=None)
        assert "qa-director login" in str(exc_info.value)

    def test_missing_api_key(self, store: ConfigStore) -> None:
        with pytest.raises(MissingApiKeyError):
            _generate(store, [False])


class TestHelpers:
    """generate の補助関数のテスト。"""

    def test_expand_braces(self) -> None:
        assert expand_braces("tests/**/*.{test,spec}.{js,ts}") == [
            "tests/**/*.test.js",
            "tests/**/*.test.ts",
            "tests/**/*.spec.js",
            "tests/**/*.spec.ts",
        ]
        assert expand_braces("e2e/*.ts") == ["e2e/*.ts"]

    def test_build_final_description(self) -> None:
        assert build_final_description("Log in") == "Log in"
        assert build_final_description("Log in", "", "login") == (
            'Log in\n\nFilename: Please name the generated test file "login".'
        )

    def test_find_latest_test_file(self, tmp_path: Path) -> None:
        role = Role(name="user", storagePath="s.json", testMatch=["tests/user/**/*.{test,spec}.ts"])
        folder = tmp_path / "tests" / "user"
        folder.mkdir(parents=True)
        older = folder / "login.spec.ts"
        newer = folder / "profile.test.ts"
        older.write_text("", encoding="utf-8")
        newer.write_text("", encoding="utf-8")
        stamp = time.time()
        os.utime(older, (stamp - 100, stamp - 100))
        os.utime(newer, (stamp, stamp))

        assert find_latest_test_file(role, tmp_path) == newer

    def test_find_latest_test_file_default_patterns(self, tmp_path: Path, user_role: Role) -> None:
        assert find_latest_test_file(user_role, tmp_path) is None
        (tmp_path / "tests").mkdir()
        spec = tmp_path / "tests" / "home.spec.ts"
        spec.write_text("", encoding="utf-8")
        assert find_latest_test_file(user_role, tmp_path) == spec

    def test_run_generated_test(self, tmp_path: Path, user_role: Role) -> None:
        (tmp_path / "tests").mkdir()
        (tmp_path / "tests" / "home.spec.ts").write_text("", encoding="utf-8")
        with patch("qad.commands.generate.subprocess.run", return_value=MagicMock(returncode=0)) as run:
            assert run_generated_test(user_role, tmp_path) == 0

        assert run.call_args.args[0] == ["npx", "playwright", "test", "tests/home.spec.ts", "--project", "user"]
        env = run.call_args.kwargs["env"]
        assert env["STORAGE_STATE"] == str((tmp_path / user_role.storagePath).resolve())

    def test_run_generated_test_without_files(self, tmp_path: Path, user_role: Role) -> None:
        with patch("qad.commands.generate.subprocess.run") as run:
            assert run_generated_test(user_role, tmp_path) is None
        run.assert_not_called()
