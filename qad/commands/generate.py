"""
generate コマンド — 自然言語のテスト内容から Playwright テストを生成する

  1. ブラウザエージェントがロールの認証状態でタスクを実行し、記録を返す
  2. 記録とテスト内容からコーディングエージェントがテストファイルを書く
  3. 希望すれば生成されたテストをその場で実行する

ブラウザエージェント・コーディングエージェントの失敗はどちらも致命的。
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from pathlib import Path
from typing import Optional

from .. import ui
from ..ai.prompts import create_code_generation_prompt
from ..core.agent import EDIT_TOOLS, ensure_api_key, run_coding_agent
from ..core.browser_agent import run_browser_agent
from ..core.config import ConfigStore, ProjectConfig, Role
from ..errors import AgentError, QadError
from ..settings import RuntimeSettings

logger = logging.getLogger(__name__)

GENERATE_MAX_TURNS = 25
DEFAULT_TEST_PATTERNS = ["tests/**/*.{test,spec}.{js,ts}"]

_FILENAME_RE = re.compile(r"^[a-zA-Z0-9_.-]+$")
_BRACE_RE = re.compile(r"\{([^{}]*)\}")


def _required(message: str):
    def _validate(value: str) -> Optional[str]:
        return None if value else message

    return _validate


def _validate_filename(value: str) -> Optional[str]:
    if not value:
        return "ファイル名を入力してください"
    if not _FILENAME_RE.match(value):
        return "ファイル名には英数字・ドット・ハイフン・アンダースコアのみ使用できます"
    return None


def expand_braces(pattern: str) -> list[str]:
    """glob の {a,b} 展開を行う（pathlib の glob は未対応のため）。"""
    match = _BRACE_RE.search(pattern)
    if not match:
        return [pattern]
    head, tail = pattern[: match.start()], pattern[match.end():]
    expanded: list[str] = []
    for option in match.group(1).split(","):
        expanded.extend(expand_braces(head + option + tail))
    return expanded


def find_latest_test_file(role: Role, project_dir: Path | str = ".") -> Optional[Path]:
    """ロールの testMatch に一致するテストのうち、最も新しく更新されたものを返す。"""
    root = Path(project_dir)
    candidates: set[Path] = set()
    for pattern in role.testMatch or DEFAULT_TEST_PATTERNS:
        for expanded in expand_braces(pattern):
            candidates.update(p for p in root.glob(expanded) if p.is_file())
    if not candidates:
        return None
    return max(candidates, key=lambda p: p.stat().st_mtime)


def run_generated_test(role: Role, project_dir: Path | str = ".") -> Optional[int]:
    """最新のテストファイルをロールのプロジェクトで実行し、終了コードを返す。"""
    root = Path(project_dir)
    ui.warn("🧪 生成したテストを実行します...")

    latest = find_latest_test_file(role, root)
    if latest is None:
        ui.error("このロールのテストファイルが見つかりません")
        return None

    test_file = latest.relative_to(root).as_posix()
    ui.info(f"実行するテスト: {test_file}")
    env = dict(os.environ, STORAGE_STATE=str((root / role.storagePath).resolve()))
    try:
        result = subprocess.run(
            ["npx", "playwright", "test", test_file, "--project", role.name],
            cwd=root,
            env=env,
        )
    except OSError as exc:
        ui.error(f"テストを実行できませんでした: {exc}")
        return None

    if result.returncode == 0:
        ui.success("✅ テストに合格しました!")
    else:
        ui.error(f"❌ テストが終了コード {result.returncode} で失敗しました")
    return result.returncode


def _resolve_role(config: ProjectConfig, role_name: Optional[str]) -> Role:
    if not role_name:
        if not config.roles:
            raise QadError("ロールがありません。先に `qa-director login <role>` でロールを作成してください")
        role_name = ui.choose("テスト生成に使うロールを選んでください", config.role_names())

    role = config.find_role(role_name)
    if role is None:
        available = ", ".join(config.role_names()) or "なし"
        raise QadError(f"ロール '{role_name}' が見つかりません。登録済みのロール: {available}")
    return role


def build_final_description(
    description: str,
    additional_instructions: str = "",
    filename: str = "",
) -> str:
    """テスト内容に追加指示とファイル名の指定を付け加える。"""
    final = description
    if additional_instructions:
        final += f"\n\nAdditional instructions: {additional_instructions}"
    if filename:
        final += f'\n\nFilename: Please name the generated test file "{filename}".'
    return final


def generate_command(
    description: Optional[str] = None,
    role_name: Optional[str] = None,
    debug: bool = False,
    store: Optional[ConfigStore] = None,
    settings: Optional[RuntimeSettings] = None,
) -> None:
    """テストを生成する。

    Raises:
        ConfigNotFoundError: 設定ドキュメントが無い場合
        MissingApiKeyError: API キーが無く、入力も拒否された場合
        QadError: ロールが見つからない場合
        AgentError: ブラウザエージェント・コーディングエージェントが失敗した場合
    """
    store = store or ConfigStore()
    settings = settings or RuntimeSettings()
    config = store.load()
    ensure_api_key()

    if not description or not description.strip():
        description = ui.ask("生成するテストの内容", validate=_required("テストの内容を入力してください"))

    role = _resolve_role(config, role_name)
    ui.heading(f"🤖 ロール '{role.name}' のテストを生成します: {description}")

    # 1. ブラウザエージェント
    ui.warn("🌐 ブラウザ操作を実行しています...")
    browser_result = run_browser_agent(
        description,
        storage_state_path=role.storagePath,
        base_url=config.baseURL,
        settings=settings,
    )
    if not browser_result.success:
        raise AgentError(f"ブラウザ操作に失敗しました: {browser_result.error}")
    ui.success("\n✅ ブラウザ操作が完了しました!")

    if not ui.confirm("テストコードを生成しますか?", default=True):
        ui.warn("テストの生成を中止しました")
        return

    additional = ""
    if ui.confirm("テスト生成への追加の指示はありますか?", default=False):
        additional = ui.ask("追加の指示", validate=_required("指示を入力してください"))

    filename = ""
    if ui.confirm("生成するテストのファイル名を指定しますか?", default=False):
        filename = ui.ask("ファイル名（拡張子なし）", validate=_validate_filename)

    # 2. コーディングエージェント
    ui.warn("📝 テストコードを生成しています...")
    prompt = create_code_generation_prompt(
        browser_result.output,
        build_final_description(description, additional, filename),
        role.name,
    )
    if debug:
        ui.muted("🐛 DEBUG: コーディングエージェントに送るプロンプト")
        ui.muted("=" * 81)
        ui.info(prompt)
        ui.muted("=" * 81)

    result = run_coding_agent(
        prompt,
        max_turns=GENERATE_MAX_TURNS,
        allowed_tools=EDIT_TOOLS,
        cwd=store.project_dir,
        model=settings.agent_model,
    )
    if not result.success:
        raise AgentError(f"テストの生成に失敗しました: {result.error}")

    ui.success("\n✅ テストを生成しました!")
    ui.info(f"💰 コスト: ${result.cost_usd:.4f}")
    ui.info(f"🔄 ターン数: {result.turns}")
    ui.info(f"⏱️  所要時間: {result.duration_ms / 1000:.2f}s")
    logger.info("テスト生成完了: role=%s turns=%s", role.name, result.turns)

    if ui.confirm("生成したテストを今すぐ実行しますか?", default=False):
        run_generated_test(role, store.project_dir)
