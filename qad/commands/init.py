"""
init コマンド — qa-director の初期化

Playwright プロジェクトを検出し、設定値を対話で確定させてから
qa-director.yaml・セットアップスクリプト・環境変数ファイルを生成する。
最後に、続けて最初のロールを登録するかを尋ねる。
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer

from .. import ui
from ..ci.github_actions import setup_github_actions
from ..core.agent import validate_api_key
from ..core.config import (
    ROLE_NAME_PATTERN,
    ConfigStore,
    GithubActionsSettings,
    ProjectConfig,
    SetupSettings,
    default_config,
)
from ..core.detection import (
    check_peer_dependencies,
    detect_base_url,
    detect_playwright_config,
    detect_test_dir,
    is_playwright_project,
)
from ..core.files import create_env_files, create_setup_file, update_playwright_config_with_setup
from ..errors import QadError
from ..settings import RuntimeSettings
from .login import login_command

logger = logging.getLogger(__name__)


@dataclass
class InitOptions:
    """init のコマンドラインオプション。指定された項目は対話を省略する。"""

    playwright_config: Optional[str] = None
    test_dir: Optional[str] = None
    base_url: Optional[str] = None
    auth_dir: Optional[str] = None
    env_dir: Optional[str] = None
    skip_github_actions: bool = False


def validate_role_name(value: str) -> Optional[str]:
    if not value:
        return "ロール名を入力してください"
    if not re.match(ROLE_NAME_PATTERN, value):
        return "ロール名は英字で始まり、英数字・ハイフン・アンダースコアのみ使用できます"
    return None


def _validate_setup_path(value: str) -> Optional[str]:
    if not value:
        return "セットアップスクリプトのパスを入力してください"
    if not value.endswith((".ts", ".js")):
        return "セットアップスクリプトは TypeScript または JavaScript ファイルにしてください"
    return None


def _validate_optional_api_key(value: str) -> Optional[str]:
    # 空欄は「後で設定する」
    return validate_api_key(value) if value else None


def _select_playwright_config(options: InitOptions, project_dir: Path) -> str:
    if options.playwright_config:
        return ui.strip_dot_slash(options.playwright_config)

    configs = detect_playwright_config(project_dir)
    if not configs:
        ui.warn("❌ playwright.config.ts が見つかりません")
        if ui.confirm("今すぐ作成しますか?", default=True):
            ui.info("実行: npm init playwright@latest")
            ui.info("その後: qa-director init")
            raise typer.Exit(code=0)
        raise QadError("Playwright 設定が必要です")

    if len(configs) == 1:
        ui.success(f"✅ Playwright 設定を検出しました: {configs[0]}")
        return configs[0]

    return ui.choose("複数の Playwright 設定が見つかりました。使用するものを選んでください", configs)


def _confirm_settings(options: InitOptions, playwright_config: Path, defaults: ProjectConfig) -> dict:
    """testDir / baseURL / authDir / envDir を確定させる。"""
    test_dir = options.test_dir or ui.ask(
        "テストディレクトリ", default=detect_test_dir(playwright_config) or defaults.testDir
    )
    base_url = options.base_url or ui.ask(
        "ベース URL", default=detect_base_url(playwright_config) or defaults.baseURL
    )
    auth_dir = options.auth_dir or ui.ask("認証状態ディレクトリ", default=defaults.authDir)
    env_dir = options.env_dir or ui.ask("環境変数ファイル", default=defaults.envDir)
    return {
        "testDir": ui.strip_dot_slash(test_dir),
        "baseURL": base_url,
        "authDir": ui.strip_dot_slash(auth_dir),
        "envDir": ui.strip_dot_slash(env_dir),
    }


def init_command(
    options: Optional[InitOptions] = None,
    store: Optional[ConfigStore] = None,
    settings: Optional[RuntimeSettings] = None,
) -> None:
    """qa-director を初期化する。"""
    options = options or InitOptions()
    store = store or ConfigStore()
    settings = settings or RuntimeSettings()
    project_dir = store.project_dir
    defaults = default_config()

    ui.heading("🚀 qa-director を初期化します...")

    if store.exists() and not ui.confirm(f"{store.path.name} は既に存在します。上書きしますか?", default=False):
        ui.warn("初期化を中止しました")
        return

    if not is_playwright_project(project_dir):
        ui.warn("⚠️  Playwright プロジェクトではないようです")
        if not ui.confirm("このまま続けますか?", default=False):
            ui.warn("初期化を中止しました")
            return

    missing = check_peer_dependencies(project_dir)
    if missing:
        ui.warn("⚠️  必要なピア依存パッケージがありません:")
        for name in missing:
            ui.info(f"  - {name}")
        ui.warn("次のコマンドでインストールしてください:")
        ui.info(f"npm install -D {' '.join(missing)}")
        if not ui.confirm("このまま続けますか?", default=False):
            ui.warn("初期化を中止しました")
            return

    # 1. Playwright 設定と各種パス
    playwright_config = _select_playwright_config(options, project_dir)
    values = _confirm_settings(options, project_dir / playwright_config, defaults)

    # 2. GitHub Actions
    github_actions = defaults.githubActions
    if not options.skip_github_actions:
        enabled, path = setup_github_actions(project_dir)
        github_actions = GithubActionsSettings(enabled=enabled, path=path or defaults.githubActions.path)

    # 3. API キー（任意）
    api_key = ui.ask(
        "Anthropic API キー（任意。後から設定できます）",
        default="",
        validate=_validate_optional_api_key,
        secret=True,
    )
    if api_key:
        os.environ["ANTHROPIC_API_KEY"] = api_key

    # 4. セットアップスクリプト
    enable_setup = ui.confirm("認証にセットアップスクリプトを使いますか?", default=True)
    create_setup = False
    setup_path = ""
    if enable_setup:
        create_new, use_existing = "新しいセットアップスクリプトを作成する", "既存のセットアップスクリプトを使う"
        choice = ui.choose("セットアップスクリプトの構成", [create_new, use_existing])
        create_setup = choice == create_new
        setup_path = ui.strip_dot_slash(
            ui.ask(
                "セットアップスクリプトのパス" if create_setup else "既存のセットアップスクリプトのパス",
                default=f"{values['testDir']}/auth.setup.ts",
                validate=_validate_setup_path,
            )
        )

    config = ProjectConfig(
        roles=[],
        githubActions=github_actions,
        setup=SetupSettings(
            path=setup_path or defaults.setup.path,
            enabled=enable_setup,
            projectName=defaults.setup.projectName,
        ),
        playwrightConfig=playwright_config,
        **values,
    )

    # 5. ファイル生成
    try:
        (project_dir / config.testDir).mkdir(parents=True, exist_ok=True)
        (project_dir / config.authDir).mkdir(parents=True, exist_ok=True)
        if create_setup:
            create_setup_file(config, project_dir)
        create_env_files(config, api_key or None, project_dir)
        if create_setup:
            config = update_playwright_config_with_setup(config, project_dir)
        store.save(config)
    except OSError as exc:
        raise QadError(f"ファイルの作成に失敗しました: {exc}") from exc

    ui.success("✅ qa-director を初期化しました!")
    ui.info("\n作成したファイル:")
    ui.info(f"  - {store.path.name}")
    if create_setup:
        ui.info(f"  - {config.setup.path}")
    ui.info(f"  - {config.envDir}")
    ui.info(f"  - {config.envDir}.example")
    if github_actions.enabled:
        ui.info(f"  - {github_actions.path}")
    if create_setup:
        ui.info("\n更新したファイル:")
        ui.info(f"  - {config.playwrightConfig}（セットアップ用プロジェクトを追加）")
    elif enable_setup:
        ui.info(f"\n既存のセットアップスクリプトを使用します: {config.setup.path}")
    else:
        ui.warn(f"\nセットアップスクリプトは無効です。後から {store.path.name} で有効にできます")

    # 6. 最初のロール
    if enable_setup and ui.confirm("続けてログイン用のロールを作成しますか?", default=True):
        role_name = ui.ask("ロール名", default="user", validate=validate_role_name)
        try:
            login_command(role_name, store=store, settings=settings)
        except QadError as exc:
            ui.error(f"❌ ロールの作成に失敗しました: {exc}")
            ui.warn(f"後から `qa-director login {role_name}` で作成できます")

    ui.success("\n🎉 qa-director の準備ができました!")
    ui.info("\n次のステップ:")
    steps = []
    if not enable_setup:
        steps.append(f"認証を使う場合は {store.path.name} で setup を有効にする")
        steps.append('認証なしでテストを生成する: qa-director generate "テスト内容"')
    else:
        if not api_key:
            steps.append(f"ANTHROPIC_API_KEY を {config.envDir} に設定する")
        steps.append('最初のテストを生成する: qa-director generate --role <role> "テスト内容"')
    if github_actions.enabled:
        steps.append("GitHub リポジトリに CI 用の secrets を登録する")
    for i, step in enumerate(steps, start=1):
        ui.info(f"{i}. {step}")
