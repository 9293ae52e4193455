"""
eject コマンド — qa-director のファイル・設定を取り除く

全体の eject:
  qa-director が作成したファイル（設定ドキュメント・環境変数ファイル・
  セットアップスクリプト・ワークフロー・ロールの認証状態とフォルダ・
  認証状態ディレクトリ）を一覧表示し、確認のうえ削除する。

ロール単位の eject (--role):
  ロールの認証状態とフォルダを削除し、レジストリから外す。
  Playwright 設定・セットアップスクリプトからの削除はコーディングエージェントに
  依頼し、環境変数ファイルとワークフローからロールの変数を取り除く。

削除に失敗したファイルは個別に報告し、残りの削除は続行する。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .. import ui
from ..ci.github_actions import remove_env_vars_from_workflow
from ..core.config import CONFIG_FILE, ConfigStore, ProjectConfig, Role
from ..core.files import (
    cleanup_empty_directories,
    detect_role_in_playwright_config,
    detect_role_in_setup_file,
    remove_env_vars,
    remove_path,
    remove_role_from_playwright_config,
    remove_role_from_setup,
)
from ..core.mutation import REMOVE_ROLE_MAX_TURNS, agent_orchestrator
from ..settings import RuntimeSettings

logger = logging.getLogger(__name__)


@dataclass
class FileToRemove:
    """削除候補。

    Attributes:
        path: プロジェクト相対パス
        description: 表示用の説明
        exists: 収集時点で存在したか
        is_directory: ディレクトリとして扱うか
    """

    path: str
    description: str
    exists: bool
    is_directory: bool = False


def _candidate(project_dir: Path, path: str, description: str, is_directory: bool = False) -> FileToRemove:
    return FileToRemove(path, description, (project_dir / path).exists(), is_directory)


def collect_role_files(role: Role, project_dir: Path | str = ".") -> list[FileToRemove]:
    """ロールの認証状態とロールフォルダを削除候補として集める。"""
    root = Path(project_dir)
    files = [_candidate(root, role.storagePath, f"{role.name} の認証状態")]
    if role.folder:
        files.append(_candidate(root, role.folder, f"{role.name} のテストフォルダ", True))
    return files


def collect_files_to_remove(config: ProjectConfig, project_dir: Path | str = ".") -> list[FileToRemove]:
    """全体の eject で削除する候補を集める。"""
    root = Path(project_dir)
    files = [
        _candidate(root, CONFIG_FILE, "qa-director の設定"),
        _candidate(root, config.envDir, "環境変数ファイル"),
        _candidate(root, f"{config.envDir}.example", "環境変数ファイルの例"),
        _candidate(root, config.setup.path, "認証セットアップスクリプト"),
    ]
    if config.githubActions.enabled and config.githubActions.path:
        files.append(_candidate(root, config.githubActions.path, "GitHub Actions ワークフロー"))
    for role in config.roles:
        files.extend(collect_role_files(role, root))
    files.append(_candidate(root, config.authDir, "認証状態ディレクトリ", True))
    return files


def display_removal_plan(files: list[FileToRemove]) -> None:
    existing = [f for f in files if f.exists]
    missing = [f for f in files if not f.exists]

    ui.warn("📋 削除するファイル:\n")
    if existing:
        ui.success("✅ 見つかったファイル:")
        for f in existing:
            icon = "📁" if f.is_directory else "📄"
            ui.info(f"  {icon} {f.path} - {f.description}")
    if missing:
        ui.muted("\n🔍 見つからないファイル（スキップ）:")
        for f in missing:
            icon = "📁" if f.is_directory else "📄"
            ui.muted(f"  {icon} {f.path} - {f.description}")
    ui.warn(f"\n合計: {len(existing)} 件のファイル・ディレクトリを削除します")


def remove_files(files: list[FileToRemove], project_dir: Path | str = ".") -> list[str]:
    """存在するファイルを削除する。失敗は個別に報告して続行する。

    Returns:
        削除できたパス
    """
    root = Path(project_dir)
    removed: list[str] = []
    ui.warn("\n🗑️  ファイルを削除しています...\n")
    for f in files:
        target = root / f.path
        if not f.exists or not target.exists():
            continue
        kind = "ディレクトリ" if target.is_dir() else "ファイル"
        try:
            remove_path(target)
        except OSError as exc:
            ui.error(f"❌ {f.path} を削除できませんでした: {exc}")
            continue
        ui.success(f"✅ {kind}を削除しました: {f.path}")
        removed.append(f.path)

    for name in cleanup_empty_directories(root):
        ui.success(f"✅ 空のディレクトリを削除しました: {name}")
    return removed


def eject_command(
    dry_run: bool = False,
    force: bool = False,
    role_name: Optional[str] = None,
    store: Optional[ConfigStore] = None,
    settings: Optional[RuntimeSettings] = None,
) -> None:
    """qa-director を取り除く。--role 指定時はそのロールだけを取り除く。"""
    store = store or ConfigStore()
    settings = settings or RuntimeSettings()

    if role_name:
        eject_role(role_name, dry_run, force, store, settings)
        return

    ui.heading("🚀 qa-director の eject")
    ui.muted("qa-director のファイルと設定をプロジェクトから削除します。\n")

    if not store.exists():
        ui.warn("✨ qa-director の設定がありません。プロジェクトは既にクリーンです")
        return
    config = store.load()

    files = collect_files_to_remove(config, store.project_dir)
    if not any(f.exists for f in files):
        ui.warn("✨ 削除する qa-director のファイルがありません。プロジェクトは既にクリーンです")
        return

    display_removal_plan(files)
    if dry_run:
        ui.info("\n🔍 ドライランのため、ファイルは削除していません")
        return
    if not force and not ui.confirm("これらのファイルを削除しますか?", default=False):
        ui.warn("❌ eject を中止しました")
        return

    remove_files(files, store.project_dir)

    ui.success("\n🎉 qa-director をプロジェクトから取り除きました!")
    ui.info("\n必要に応じて手動で次の作業を行ってください:")
    ui.info(f"- {config.playwrightConfig} から qa-director による変更を取り除く")
    ui.info("- 変更した GitHub Actions ワークフローを整理する")


def eject_role(
    role_name: str,
    dry_run: bool,
    force: bool,
    store: ConfigStore,
    settings: RuntimeSettings,
) -> None:
    """1 つのロールとその関連ファイルを取り除く。"""
    project_dir = store.project_dir
    ui.heading("🚀 qa-director のロール eject")
    ui.muted(f'ロール "{role_name}" と関連ファイルをプロジェクトから削除します。\n')

    if not store.exists():
        ui.warn("✨ qa-director の設定がありません。プロジェクトは既にクリーンです")
        return
    config = store.load()

    role = config.find_role(role_name)
    if role is None:
        ui.warn(f'⚠️  ロール "{role_name}" は設定に見つかりません')
        ui.info(f"登録済みのロール: {', '.join(config.role_names()) or 'なし'}")
        return

    ui.heading("🔍 ロールの使用箇所を確認しています...\n")
    in_playwright_config = detect_role_in_playwright_config(config, role_name, project_dir)
    in_setup_file = detect_role_in_setup_file(config, role_name, project_dir)
    if in_playwright_config:
        ui.warn(f'📋 ロール "{role_name}" が Playwright 設定 ({config.playwrightConfig}) にあります')
    if in_setup_file:
        ui.warn(f'🔐 ロール "{role_name}" がセットアップスクリプト ({config.setup.path}) にあります')

    files = [f for f in collect_role_files(role, project_dir) if f.exists]
    if not files and not in_playwright_config and not in_setup_file:
        ui.warn(f'✨ ロール "{role_name}" のファイル・設定は見つかりませんでした')
    else:
        if files:
            display_removal_plan(files)
        if in_playwright_config or in_setup_file:
            ui.warn("\n📝 更新する設定ファイル:")
            if in_playwright_config:
                ui.info(f"  📋 {config.playwrightConfig} - ロールのプロジェクトを削除")
            if in_setup_file:
                ui.info(f"  🔐 {config.setup.path} - セットアップからロールを削除")

    if dry_run:
        ui.info("\n🔍 ドライランのため、ファイルは削除していません")
        return
    if not force and not ui.confirm(
        f'ロール "{role_name}" とそのファイルを削除しますか?', default=False
    ):
        ui.warn("❌ ロールの eject を中止しました")
        return

    update_playwright_config = in_playwright_config and (
        force or ui.confirm(f'コーディングエージェントで Playwright 設定から "{role_name}" を削除しますか?', default=True)
    )
    update_setup_file = in_setup_file and (
        force or ui.confirm(f'コーディングエージェントでセットアップスクリプトから "{role_name}" を削除しますか?', default=True)
    )

    removed = remove_files(files, project_dir) if files else []

    store.remove_role(role_name)
    ui.success(f'✅ ロール "{role_name}" を設定から削除しました')

    orchestrator = agent_orchestrator(REMOVE_ROLE_MAX_TURNS, project_dir, settings.agent_model)
    if update_playwright_config:
        if remove_role_from_playwright_config(config, role_name, orchestrator):
            ui.success(f'✅ Playwright 設定から "{role_name}" を削除しました')
    elif in_playwright_config:
        ui.warn(f'⚠️  Playwright 設定は更新していません。"{role_name}" のプロジェクトを手動で削除してください')

    if update_setup_file:
        if remove_role_from_setup(config, role_name, orchestrator):
            ui.success(f'✅ セットアップスクリプトから "{role_name}" を削除しました')
    elif in_setup_file:
        ui.warn(f'⚠️  セットアップスクリプトは更新していません。"{role_name}" を手動で削除してください')

    env_vars = role.envVars or []
    if env_vars:
        for path in remove_env_vars(config, env_vars, project_dir):
            ui.success(f"✅ {path.name} からロールの環境変数を削除しました")
        if config.githubActions.enabled:
            remove_env_vars_from_workflow(config.githubActions.path, env_vars, project_dir)

    ui.success(f'\n🎉 ロール "{role_name}" を取り除きました!')
    summary = []
    if removed:
        summary.append(f"ロールのファイルを {len(removed)} 件削除")
    if update_playwright_config:
        summary.append("Playwright 設定を更新")
    if update_setup_file:
        summary.append("セットアップスクリプトを更新")
    if env_vars:
        summary.append("環境変数を整理")
    if summary:
        ui.info("\n📝 概要:")
        for item in summary:
            ui.info(f"  • {item}")
