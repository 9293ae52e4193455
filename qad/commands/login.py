"""
login コマンド — ロールのログインフロー記録と登録

新規ロール:
  記録 → 認証情報の検出 → 環境変数化の確認 → 環境変数ファイル更新
  → ロールフォルダ → ロールレジストリ登録 → セットアップスクリプト /
  Playwright 設定の更新（ベストエフォート） → CI の secrets 参照追加

--refresh:
  登録済みロールの storageState を記録し直すだけで、レジストリは変更しない。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .. import ui
from ..ci.github_actions import create_secrets_info, update_workflow_with_env_vars
from ..core.config import ConfigStore, ProjectConfig, Role
from ..core.env_detection import (
    detect_env_vars,
    extract_env_var_names,
    format_env_var_for_display,
    replace_with_env_vars,
)
from ..core.files import (
    create_role_folder,
    update_env_files,
    update_playwright_config,
    update_setup_file,
)
from ..core.mutation import ADD_ROLE_MAX_TURNS, agent_orchestrator
from ..core.recorder import record_login_flow
from ..errors import QadError
from ..settings import RuntimeSettings

logger = logging.getLogger(__name__)


def storage_state_path(config: ProjectConfig, role_name: str) -> str:
    """ロールの storageState のプロジェクト相対パス。"""
    return (Path(config.authDir) / f"storageState.{role_name}.json").as_posix()


def login_command(
    role_name: str,
    refresh: bool = False,
    store: Optional[ConfigStore] = None,
    settings: Optional[RuntimeSettings] = None,
) -> None:
    """ロールのログインを記録する。

    Raises:
        ConfigNotFoundError: 設定ドキュメントが無い場合
        QadError: --refresh で未登録ロールを指定した場合
        RecordingError: codegen が失敗した場合
    """
    store = store or ConfigStore()
    settings = settings or RuntimeSettings()
    config = store.load()

    is_new_role = config.find_role(role_name) is None
    if refresh and is_new_role:
        raise QadError(
            f"ロール '{role_name}' が見つかりません。新規作成する場合は --refresh を外してください"
        )

    ui.heading(f"🔑 ロールのログイン: {role_name}")

    state_path = storage_state_path(config, role_name)
    (store.project_dir / config.authDir).mkdir(parents=True, exist_ok=True)

    if refresh:
        if ui.confirm("ログインフローを記録し直しますか?", default=True):
            record_login_flow(config.baseURL, state_path, store.project_dir)
        ui.success(f"✅ ロールの認証状態を更新しました: {role_name}")
        return

    login_flow = ""
    if ui.confirm("Playwright codegen でログインフローを記録しますか?", default=True):
        login_flow = record_login_flow(config.baseURL, state_path, store.project_dir)
    else:
        ui.warn("ログインの記録をスキップします。認証は手動で設定してください")

    register_new_role(role_name, login_flow, state_path, config, store, settings)


def register_new_role(
    role_name: str,
    login_flow: str,
    state_path: str,
    config: ProjectConfig,
    store: ConfigStore,
    settings: RuntimeSettings,
) -> Role:
    """記録済みのログインフローから新規ロールを登録する。"""
    project_dir = store.project_dir

    # 1. 認証情報の検出と環境変数化
    env_vars = detect_env_vars(login_flow, role_name)
    processed_flow = login_flow
    env_var_names: list[str] = []

    if env_vars:
        ui.warn("🔍 環境変数にできそうな値を検出しました:")
        for env_var in env_vars:
            ui.info(f"  {format_env_var_for_display(env_var)}")
        if ui.confirm("機密データを環境変数に置き換えますか?", default=True):
            processed_flow = replace_with_env_vars(login_flow, env_vars)
            env_var_names = extract_env_var_names(env_vars)
            try:
                update_env_files(
                    config,
                    env_var_names,
                    {v.name: v.value for v in env_vars},
                    project_dir,
                )
            except OSError as exc:
                ui.warn(f"⚠️  環境変数ファイルを更新できませんでした: {exc}")
    elif login_flow.strip():
        ui.muted("ログインフローに機密データは見つかりませんでした")
    else:
        ui.warn("ログインフローが記録されていないため、環境変数の検出をスキップします")

    # 2. ロールフォルダ
    use_folder = ui.confirm(
        "ロール専用のテストフォルダを作成しますか?（複数ロールの場合に推奨）",
        default=len(config.roles) > 0,
    )
    folder = f"{config.testDir}/{role_name}" if use_folder else None
    role = Role(
        name=role_name,
        storagePath=state_path,
        testMatch=[f"{folder}/**/*.{{test,spec}}.{{js,ts}}"] if folder else None,
        envVars=env_var_names or None,
        folder=folder,
    )
    if folder:
        try:
            create_role_folder(role, project_dir)
        except OSError as exc:
            ui.warn(f"⚠️  ロールフォルダを作成できませんでした: {exc}")

    # 3. 外部ファイル更新の確認
    add_to_playwright_config = ui.confirm("ロールを Playwright 設定に追加しますか?", default=True)

    update_setup = False
    setup_exists = (project_dir / config.setup.path).exists()
    if setup_exists and processed_flow:
        update_setup = ui.confirm(
            "コーディングエージェントでセットアップスクリプトにロールを追加しますか?", default=True
        )
    elif not setup_exists:
        ui.warn(
            f"セットアップスクリプトが見つかりません ({config.setup.path})。"
            "`qa-director init` で作成するか、手動で用意してください"
        )
    else:
        ui.warn("ログインフローが無いため、セットアップスクリプトの更新をスキップします")

    # 4. レジストリ登録（以降の手順の前提）
    store.add_role(role)
    ui.success(f'✅ ロール "{role_name}" を設定に追加しました')

    orchestrator = agent_orchestrator(ADD_ROLE_MAX_TURNS, project_dir, settings.agent_model)
    if update_setup and update_setup_file(config, role, processed_flow, orchestrator):
        ui.success(f'✅ セットアップスクリプトに "{role_name}" を追加しました')
    if add_to_playwright_config and update_playwright_config(config, role, orchestrator):
        ui.success(f'✅ Playwright 設定に "{role_name}" を追加しました')

    # 5. CI
    if config.githubActions.enabled and env_var_names:
        update_workflow_with_env_vars(config.githubActions.path, env_var_names, project_dir)
        try:
            create_secrets_info(env_var_names, project_dir)
        except OSError as exc:
            ui.warn(f"⚠️  secrets の一覧を作成できませんでした: {exc}")

    ui.success(f"✅ ロールを作成し、認証状態を保存しました: {role_name}")
    if env_var_names:
        ui.warn(f"\n{config.envDir} に環境変数を追加しました。次の作業を忘れずに:")
        ui.info(f"  1. {config.envDir} の値を確認する")
        ui.info("  2. GitHub Actions の secrets に登録する")
        for name in env_var_names:
            ui.info(f"  - {name}")
    if folder:
        ui.info(f"\n📁 ロール専用のテストフォルダ: {folder}")

    logger.info("ロールを登録しました: %s (env=%s)", role_name, env_var_names)
    return role
