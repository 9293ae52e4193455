"""
CLI エントリポイント — qa-director のサブコマンド定義

qa-director コマンドとして以下のサブコマンドを提供する:
  - init: プロジェクトの初期化
  - login: ロールのログインフロー記録と登録
  - generate: 自然言語からのテスト生成
  - eject: qa-director のファイル・設定の削除
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv

from . import ui
from .commands.eject import eject_command
from .commands.generate import generate_command
from .commands.init import InitOptions, init_command, validate_role_name
from .commands.login import login_command
from .core.config import ConfigStore
from .errors import QadError
from .logging_setup import configure_logging
from .settings import RuntimeSettings, load_settings_from_env

logger = logging.getLogger(__name__)

# プロジェクトの環境変数ファイル（ANTHROPIC_API_KEY・ロールの認証情報）
_DEFAULT_ENV_FILE = ".env.qa"

# ---------------------------------------------------------------------------
# Typer アプリ定義
# ---------------------------------------------------------------------------

app = typer.Typer(
    help=(
        "qa-director — AI による E2E テスト生成ツール\n\n"
        "基本の流れ:\n"
        "  1. qa-director init            プロジェクトを初期化\n"
        "  2. qa-director login user      ロールのログインを記録\n"
        '  3. qa-director generate --role user "テスト内容"  テストを生成\n\n'
        "詳しくは各コマンドに --help を付けてください。"
    ),
    no_args_is_help=True,
)


def _env_file_path() -> Path:
    """設定ドキュメントの envDir を優先し、無ければ既定の .env.qa を返す。"""
    store = ConfigStore()
    if store.exists():
        try:
            return Path(store.load().envDir)
        except QadError as exc:
            logger.debug("設定から envDir を取得できません: %s", exc)
    return Path(_DEFAULT_ENV_FILE)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="詳細ログを表示する"),
) -> None:
    """共通の初期化（環境変数ファイルの読み込み・ロギング設定）。"""
    env_file = _env_file_path()
    if env_file.exists():
        load_dotenv(env_file, override=False)

    settings = load_settings_from_env()
    configure_logging(settings.log_level, verbose)
    logger.debug("環境変数ファイル: %s (exists=%s)", env_file, env_file.exists())
    ctx.obj = settings


def _settings(ctx: typer.Context) -> RuntimeSettings:
    return ctx.obj if isinstance(ctx.obj, RuntimeSettings) else RuntimeSettings()


def _fail(exc: Exception) -> None:
    ui.error(f"❌ {exc}")
    raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# init コマンド
# ---------------------------------------------------------------------------

@app.command()
def init(
    ctx: typer.Context,
    playwright_config: Optional[str] = typer.Option(
        None, "--playwright-config", help="Playwright 設定ファイルのパス",
    ),
    test_dir: Optional[str] = typer.Option(None, "--test-dir", help="テストディレクトリ"),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="ベース URL"),
    auth_dir: Optional[str] = typer.Option(None, "--auth-dir", help="認証状態ディレクトリ"),
    env_dir: Optional[str] = typer.Option(None, "--env-dir", help="環境変数ファイル"),
    skip_github_actions: bool = typer.Option(
        False, "--skip-github-actions", help="GitHub Actions の設定をスキップする",
    ),
) -> None:
    """qa-director をプロジェクトに導入する。"""
    options = InitOptions(
        playwright_config=playwright_config,
        test_dir=test_dir,
        base_url=base_url,
        auth_dir=auth_dir,
        env_dir=env_dir,
        skip_github_actions=skip_github_actions,
    )
    try:
        init_command(options, settings=_settings(ctx))
    except QadError as exc:
        _fail(exc)


# ---------------------------------------------------------------------------
# login コマンド
# ---------------------------------------------------------------------------

@app.command()
def login(
    ctx: typer.Context,
    role: Optional[str] = typer.Argument(None, help="ロール名"),
    role_option: Optional[str] = typer.Option(None, "--role", "-r", help="ロール名"),
    refresh: bool = typer.Option(
        False, "--refresh", help="登録済みロールの認証状態だけを記録し直す",
    ),
) -> None:
    """ロールのログインフローを記録して登録する。"""
    role_name = role or role_option
    if not role_name:
        _fail(QadError("ロール名を指定してください（例: qa-director login user）"))
    problem = validate_role_name(role_name)
    if problem:
        _fail(QadError(problem))
    try:
        login_command(role_name, refresh=refresh, settings=_settings(ctx))
    except QadError as exc:
        _fail(exc)


# ---------------------------------------------------------------------------
# generate コマンド
# ---------------------------------------------------------------------------

@app.command()
def generate(
    ctx: typer.Context,
    description: Optional[str] = typer.Argument(None, help="生成するテストの内容"),
    role: Optional[str] = typer.Option(None, "--role", "-r", help="使用するロール"),
    debug: bool = typer.Option(False, "--debug", help="コーディングエージェントへのプロンプトを表示する"),
) -> None:
    """自然言語の説明から Playwright テストを生成する。"""
    try:
        generate_command(description, role, debug=debug, settings=_settings(ctx))
    except QadError as exc:
        _fail(exc)


# ---------------------------------------------------------------------------
# eject コマンド
# ---------------------------------------------------------------------------

@app.command()
def eject(
    ctx: typer.Context,
    dry_run: bool = typer.Option(False, "--dry-run", help="削除対象を表示するだけで削除しない"),
    force: bool = typer.Option(False, "--force", "-f", help="確認なしで削除する"),
    role: Optional[str] = typer.Option(None, "--role", "-r", help="指定ロールだけを取り除く"),
) -> None:
    """qa-director のファイルと設定を取り除く。"""
    try:
        eject_command(dry_run=dry_run, force=force, role_name=role, settings=_settings(ctx))
    except QadError as exc:
        _fail(exc)
