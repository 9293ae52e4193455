"""
プロジェクトファイル操作 — セットアップスクリプト・環境変数ファイル・ロールフォルダ

qa-director が生成・所有するファイル（セットアップスクリプトの雛形、
.env.qa とその .example、ロールフォルダの README）は直接読み書きする。
ユーザー所有の Playwright 設定やセットアップスクリプトへのロール追加・削除は
MutationOrchestrator に委譲し、失敗してもコマンドは続行する。

例外として、init 時の「セットアップ用プロジェクト」の挿入だけは
正規表現による決定的な書き換えで行う。
"""

from __future__ import annotations

import json
import logging
import re
import shutil
from pathlib import Path
from typing import Iterable, Mapping, Optional

from jinja2 import Environment, FileSystemLoader

from .. import ui
from ..ai.prompts import (
    add_to_playwright_config_prompt,
    create_role_addition_prompt,
    remove_role_from_playwright_config_prompt,
    remove_role_from_setup_prompt,
)
from .config import ProjectConfig, Role
from .mutation import MutationOrchestrator

logger = logging.getLogger(__name__)

_TEMPLATES_DIR = Path(__file__).parent.parent / "templates"

ENV_HEADER = "# QA Director Environment Variables\n"
API_KEY_PLACEHOLDER = "your_anthropic_api_key_here"
DEFAULT_TEST_MATCH = ["**/*.{test,spec}.{js,ts}"]

# eject 後に空なら削除するディレクトリ
CLEANUP_DIRS = ("tests", "playwright", ".github/workflows", ".github")

_SETUP_PROJECT_RE = re.compile(r"name:\s*['\"]([^'\"]*setup[^'\"]*)['\"]", re.IGNORECASE)
_PROJECTS_ARRAY_RE = re.compile(r"projects:\s*\[")


def render_template(name: str, **context: object) -> str:
    """qad/templates 配下の Jinja2 テンプレートをレンダリングする。"""
    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        keep_trailing_newline=True,
    )
    return env.get_template(name).render(**context)


def _placeholder(name: str) -> str:
    return f"your_{name.lower()}_here"


# ---------------------------------------------------------------------------
# セットアップスクリプト
# ---------------------------------------------------------------------------

def create_setup_file(config: ProjectConfig, project_dir: Path | str = ".") -> Path:
    """セットアップスクリプトの雛形を生成する。

    設定ドキュメントの baseURL / authDir / envDir を雛形に埋め込む。

    Returns:
        生成したファイルのパス
    """
    setup_path = Path(project_dir) / config.setup.path
    setup_path.parent.mkdir(parents=True, exist_ok=True)
    content = render_template(
        "setup.ts.j2",
        base_url=config.baseURL,
        auth_dir=config.authDir,
        env_dir=config.envDir,
    )
    setup_path.write_text(content, encoding="utf-8")
    logger.info("セットアップスクリプトを生成しました: %s", setup_path)
    return setup_path


def setup_project_block(setup_path: str, project_name: str = "setup") -> str:
    """Playwright 設定に挿入するセットアップ用プロジェクトのブロック。"""
    return f"{{\n  name: '{project_name}',\n  testMatch: '{setup_path}'\n}}"


def check_existing_setup_projects(config_path: Path | str) -> list[str]:
    """Playwright 設定内の、名前に "setup" を含むプロジェクト名を返す。"""
    try:
        content = Path(config_path).read_text(encoding="utf-8")
    except OSError:
        return []
    return _SETUP_PROJECT_RE.findall(content)


def _choose_setup_project_name(existing: list[str]) -> Optional[str]:
    """既存のセットアップ用プロジェクトがある場合の扱いを対話で決める。

    Returns:
        使用するプロジェクト名。スキップする場合は None。
    """
    ui.warn("🔍 既存のセットアップ用プロジェクトが見つかりました:")
    for name in existing:
        ui.info(f"  - {name}")

    add, replace, skip = (
        "別名でセットアップ用プロジェクトを追加する",
        "既存のセットアップ用プロジェクトを置き換える",
        "追加しない",
    )
    action = ui.choose("既存のセットアップ用プロジェクトをどうしますか?", [add, replace, skip])

    if action == skip:
        ui.warn("⏭️  セットアップ用プロジェクトの追加をスキップします")
        return None

    if action == add:
        def _validate(value: str) -> Optional[str]:
            if not value:
                return "プロジェクト名を入力してください"
            if value in existing:
                return "同じ名前のセットアップ用プロジェクトが既に存在します"
            return None

        return ui.ask("新しいセットアップ用プロジェクト名", default="qa-setup", validate=_validate)

    if len(existing) == 1:
        return existing[0]
    return ui.choose("置き換えるセットアップ用プロジェクトを選んでください", existing)


def update_playwright_config_with_setup(
    config: ProjectConfig,
    project_dir: Path | str = ".",
) -> ProjectConfig:
    """Playwright 設定の projects 配列にセットアップ用プロジェクトを挿入する。

    既存のセットアップ用プロジェクトがあれば、追加・置き換え・スキップを選ばせる。
    projects 配列が見つからない場合は手動で追加するブロックを表示する。

    Returns:
        setup.projectName を反映した設定（変更が無ければ引数のまま）
    """
    config_path = Path(project_dir) / config.playwrightConfig
    if not config_path.exists():
        ui.warn(
            f"⚠️  Playwright 設定が見つかりません ({config.playwrightConfig})。"
            "セットアップ用プロジェクトの追加をスキップします"
        )
        return config

    project_name = config.setup.projectName or "setup"
    existing = check_existing_setup_projects(config_path)
    if existing:
        chosen = _choose_setup_project_name(existing)
        if chosen is None:
            return config
        project_name = chosen

    block = setup_project_block(config.setup.path, project_name)
    try:
        content = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        ui.warn(f"⚠️  Playwright 設定を読み込めませんでした: {exc}")
        ui.info(f"💡 projects 配列に次を追加してください:\n   {block}")
        return config

    if not _PROJECTS_ARRAY_RE.search(content):
        ui.warn(f"⚠️  {config.playwrightConfig} に projects 配列が見つかりません")
        ui.info(f"📝 次のセットアップ用プロジェクトを手動で追加してください:\n   {block}")
        return config

    if project_name in existing:
        pattern = re.compile(r"\{[^}]*name:\s*['\"]" + re.escape(project_name) + r"['\"][^}]*\}")
        content = pattern.sub(lambda _: block, content)
        ui.success(f"✅ セットアップ用プロジェクト '{project_name}' を置き換えました")
    else:
        content = _PROJECTS_ARRAY_RE.sub(lambda _: f"projects: [\n    {block},", content, count=1)
        ui.success(f"✅ セットアップ用プロジェクト '{project_name}' を追加しました")

    config_path.write_text(content, encoding="utf-8")
    return config.model_copy(
        update={"setup": config.setup.model_copy(update={"projectName": project_name})}
    )


# ---------------------------------------------------------------------------
# 環境変数ファイル
# ---------------------------------------------------------------------------

def _env_paths(config: ProjectConfig, project_dir: Path | str) -> tuple[Path, Path]:
    env_path = Path(project_dir) / config.envDir
    return env_path, env_path.with_name(env_path.name + ".example")


def create_env_files(
    config: ProjectConfig,
    api_key: Optional[str] = None,
    project_dir: Path | str = ".",
) -> None:
    """環境変数ファイルとその .example を生成する。"""
    env_path, example_path = _env_paths(config, project_dir)
    env_path.parent.mkdir(parents=True, exist_ok=True)
    env_path.write_text(
        f"{ENV_HEADER}ANTHROPIC_API_KEY={api_key or API_KEY_PLACEHOLDER}\n", encoding="utf-8"
    )
    example_path.write_text(f"{ENV_HEADER}ANTHROPIC_API_KEY={API_KEY_PLACEHOLDER}\n", encoding="utf-8")
    logger.info("環境変数ファイルを生成しました: %s", env_path)


def _read_or_header(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError:
        return f"{ENV_HEADER}ANTHROPIC_API_KEY={API_KEY_PLACEHOLDER}\n"


def _env_keys(content: str) -> set[str]:
    """dotenv 形式の内容から定義済みのキー名を集める（コメント行は除く）。"""
    return {
        line.split("=", 1)[0].strip()
        for line in content.splitlines()
        if "=" in line and not line.lstrip().startswith("#")
    }


def update_env_files(
    config: ProjectConfig,
    names: Iterable[str],
    actual_values: Optional[Mapping[str, str]] = None,
    project_dir: Path | str = ".",
) -> None:
    """環境変数ファイルに変数を追記する。

    既にキーとして定義済みの変数は追記しない（既存行は書き換えない）。
    .example には常にプレースホルダ値を書く。
    """
    actual_values = actual_values or {}
    env_path, example_path = _env_paths(config, project_dir)
    env_content = _read_or_header(env_path)
    example_content = _read_or_header(example_path)
    env_keys = _env_keys(env_content)
    example_keys = _env_keys(example_content)

    for name in names:
        if not env_content.endswith("\n"):
            env_content += "\n"
        if not example_content.endswith("\n"):
            example_content += "\n"
        if name not in env_keys:
            env_content += f"{name}={actual_values.get(name) or _placeholder(name)}\n"
            env_keys.add(name)
        if name not in example_keys:
            example_content += f"{name}={_placeholder(name)}\n"
            example_keys.add(name)

    env_path.parent.mkdir(parents=True, exist_ok=True)
    env_path.write_text(env_content, encoding="utf-8")
    example_path.write_text(example_content, encoding="utf-8")


def remove_env_vars(
    config: ProjectConfig,
    names: Iterable[str],
    project_dir: Path | str = ".",
) -> list[Path]:
    """環境変数ファイルから "NAME=" で始まる行を取り除く。

    Returns:
        書き換えたファイルのパス
    """
    prefixes = tuple(f"{name}=" for name in names)
    if not prefixes:
        return []

    changed: list[Path] = []
    for path in _env_paths(config, project_dir):
        if not path.exists():
            continue
        try:
            lines = path.read_text(encoding="utf-8").split("\n")
            kept = [line for line in lines if not line.strip().startswith(prefixes)]
            if len(kept) != len(lines):
                path.write_text("\n".join(kept), encoding="utf-8")
                changed.append(path)
        except OSError as exc:
            ui.warn(f"⚠️  {path} を更新できませんでした: {exc}")
    return changed


# ---------------------------------------------------------------------------
# ロールフォルダ
# ---------------------------------------------------------------------------

def create_role_folder(role: Role, project_dir: Path | str = ".") -> Optional[Path]:
    """ロール専用テストフォルダと README を生成する。folder 未設定なら何もしない。"""
    if not role.folder:
        return None
    folder = Path(project_dir) / role.folder
    folder.mkdir(parents=True, exist_ok=True)
    (folder / "README.md").write_text(render_template("role_readme.md.j2", role=role), encoding="utf-8")
    return folder


# ---------------------------------------------------------------------------
# 外部ファイルへのロール追加・削除（オーケストレーター経由）
# ---------------------------------------------------------------------------

def playwright_project_hint(config: ProjectConfig, role: Role) -> str:
    """Playwright 設定に手動で追加するロールのプロジェクトブロック。"""
    setup_project = config.setup.projectName or "setup"
    test_match = json.dumps(role.testMatch or DEFAULT_TEST_MATCH)
    return (
        f'"{role.name}" ロールを {config.playwrightConfig} に手動で追加してください:\n'
        f"   {{\n"
        f"      name: '{role.name}',\n"
        f"      use: {{\n"
        f"        ...devices['Desktop Chrome'],\n"
        f"        storageState: '{role.storagePath}',\n"
        f"      }},\n"
        f"      testDir: '{role.folder or config.testDir}',\n"
        f"      testMatch: {test_match},\n"
        f"      dependencies: ['{setup_project}']\n"
        f"    }}"
    )


def update_setup_file(
    config: ProjectConfig,
    role: Role,
    login_flow: str,
    orchestrator: MutationOrchestrator,
) -> bool:
    """セットアップスクリプトにロールのログイン処理を追加する。"""
    return orchestrator.apply(
        config.setup.path,
        create_role_addition_prompt(login_flow, config.setup.path),
        f'"{role.name}" ロールを {config.setup.path} に手動で追加してください',
        label="セットアップスクリプト",
    )


def update_playwright_config(
    config: ProjectConfig,
    role: Role,
    orchestrator: MutationOrchestrator,
) -> bool:
    """Playwright 設定にロールのプロジェクトを追加する。"""
    return orchestrator.apply(
        config.playwrightConfig,
        add_to_playwright_config_prompt(
            config.playwrightConfig,
            role.name,
            role.storagePath,
            config.setup.projectName or "setup",
        ),
        playwright_project_hint(config, role),
        label="Playwright 設定",
    )


def remove_role_from_setup(
    config: ProjectConfig,
    role_name: str,
    orchestrator: MutationOrchestrator,
) -> bool:
    """セットアップスクリプトからロールを削除する。"""
    return orchestrator.apply(
        config.setup.path,
        remove_role_from_setup_prompt(role_name, config.setup.path),
        f'"{role_name}" ロールを {config.setup.path} から手動で削除してください',
        label="セットアップスクリプト",
    )


def remove_role_from_playwright_config(
    config: ProjectConfig,
    role_name: str,
    orchestrator: MutationOrchestrator,
) -> bool:
    """Playwright 設定からロールのプロジェクトを削除する。"""
    return orchestrator.apply(
        config.playwrightConfig,
        remove_role_from_playwright_config_prompt(role_name, config.playwrightConfig),
        f'"{role_name}" プロジェクトを {config.playwrightConfig} から手動で削除してください',
        label="Playwright 設定",
    )


# ---------------------------------------------------------------------------
# ロール使用箇所の検出
# ---------------------------------------------------------------------------

def _file_matches(path: Path, patterns: Iterable[re.Pattern[str]]) -> bool:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.debug("%s を読み込めません: %s", path, exc)
        return False
    return any(p.search(content) for p in patterns)


def detect_role_in_playwright_config(
    config: ProjectConfig,
    role_name: str,
    project_dir: Path | str = ".",
) -> bool:
    """Playwright 設定にロールのプロジェクト・storageState が現れるか。"""
    name = re.escape(role_name)
    return _file_matches(
        Path(project_dir) / config.playwrightConfig,
        (
            re.compile(rf"name:\s*['\"`]{name}['\"`]", re.IGNORECASE),
            re.compile(rf"storageState:\s*['\"`][^'\"`]*{name}[^'\"`]*['\"`]", re.IGNORECASE),
        ),
    )


def detect_role_in_setup_file(
    config: ProjectConfig,
    role_name: str,
    project_dir: Path | str = ".",
) -> bool:
    """セットアップスクリプトにロールのエントリが現れるか。"""
    name = re.escape(role_name)
    return _file_matches(
        Path(project_dir) / config.setup.path,
        (
            re.compile(rf"{name}\s*:\s*\{{", re.IGNORECASE),
            re.compile(rf"record\s+{name}\s+state", re.IGNORECASE),
        ),
    )


# ---------------------------------------------------------------------------
# 削除
# ---------------------------------------------------------------------------

def remove_path(path: Path) -> None:
    """ファイルまたはディレクトリを削除する。

    Raises:
        OSError: 削除に失敗した場合
    """
    if path.is_dir():
        shutil.rmtree(path)
    else:
        path.unlink()


def cleanup_empty_directories(
    project_dir: Path | str = ".",
    candidates: Iterable[str] = CLEANUP_DIRS,
) -> list[str]:
    """空になったディレクトリを削除し、削除したものを返す。"""
    removed: list[str] = []
    for name in candidates:
        directory = Path(project_dir) / name
        try:
            if directory.is_dir() and not any(directory.iterdir()):
                directory.rmdir()
                removed.append(name)
        except OSError as exc:
            logger.debug("%s を削除できません: %s", directory, exc)
    return removed
