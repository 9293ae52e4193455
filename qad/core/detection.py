"""
プロジェクト検出 — 既存の Playwright 構成を推定する

init の対話で既定値を提示するためのヘルパー群。
どの関数も読み取りに失敗した場合は None / 空リストを返し、例外は送出しない。
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_CONFIG_PATTERNS = (
    "playwright.config.ts",
    "playwright.config.js",
    "e2e/playwright.config.ts",
    "tests/playwright.config.ts",
    "**/playwright.config.ts",
    "**/playwright.config.js",
)

_AUTH_DIRS = (".auth", "playwright/.auth", "tests/.auth", "e2e/.auth")
_ENV_FILES = (".env.qa", ".env.test", ".env.e2e", ".env.local")
_SETUP_FILES = ("auth.setup.ts", "setup.ts", "global.setup.ts", "login.setup.ts")
_WORKFLOW_KEYWORDS = ("e2e", "playwright", "test")
_PLAYWRIGHT_PACKAGES = ("@playwright/test", "playwright")

_TEST_DIR_RE = re.compile(r"testDir:\s*['\"`]([^'\"`]+)['\"`]")
_BASE_URL_RE = re.compile(r"baseURL:\s*['\"`]([^'\"`]+)['\"`]")


def detect_playwright_config(project_dir: Path | str = ".") -> list[str]:
    """Playwright 設定ファイルの候補を返す（プロジェクト相対、重複なし、検出順）。"""
    root = Path(project_dir)
    found: list[str] = []
    for pattern in _CONFIG_PATTERNS:
        for hit in sorted(root.glob(pattern)):
            relative = hit.relative_to(root)
            if "node_modules" in relative.parts:
                continue
            name = relative.as_posix()
            if name not in found:
                found.append(name)
    return found


def _search_config(config_path: Path | str, pattern: re.Pattern[str]) -> Optional[str]:
    try:
        content = Path(config_path).read_text(encoding="utf-8")
    except OSError:
        return None
    match = pattern.search(content)
    return match.group(1) if match else None


def detect_test_dir(config_path: Path | str) -> Optional[str]:
    """Playwright 設定の testDir を返す。"""
    return _search_config(config_path, _TEST_DIR_RE)


def detect_base_url(config_path: Path | str) -> Optional[str]:
    """Playwright 設定の baseURL を返す。"""
    return _search_config(config_path, _BASE_URL_RE)


def detect_github_actions(project_dir: Path | str = ".") -> list[str]:
    """E2E テスト用と思われる GitHub Actions ワークフローのファイル名を返す。"""
    workflow_dir = Path(project_dir) / ".github" / "workflows"
    if not workflow_dir.is_dir():
        return []
    return sorted(
        p.name
        for p in workflow_dir.iterdir()
        if p.suffix in (".yml", ".yaml")
        and any(keyword in p.name for keyword in _WORKFLOW_KEYWORDS)
    )


def detect_auth_dir(project_dir: Path | str = ".") -> Optional[str]:
    """よく使われる認証状態ディレクトリのうち、存在する最初のものを返す。"""
    root = Path(project_dir)
    for candidate in _AUTH_DIRS:
        if (root / candidate).is_dir():
            return candidate
    return None


def detect_env_file(project_dir: Path | str = ".") -> Optional[str]:
    root = Path(project_dir)
    for candidate in _ENV_FILES:
        if (root / candidate).exists():
            return candidate
    return None


def detect_setup_file(test_dir: str, project_dir: Path | str = ".") -> Optional[str]:
    """テストディレクトリ内の既存セットアップスクリプトを返す（プロジェクト相対）。"""
    root = Path(project_dir)
    for name in _SETUP_FILES:
        candidate = Path(test_dir) / name
        if (root / candidate).exists():
            return candidate.as_posix()
    return None


def _read_package_json(project_dir: Path) -> Optional[dict]:
    try:
        return json.loads((project_dir / "package.json").read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.debug("package.json を読み込めません: %s", exc)
        return None


def _declared_packages(package_json: dict) -> set[str]:
    names: set[str] = set()
    for section in ("dependencies", "devDependencies"):
        deps = package_json.get(section)
        if isinstance(deps, dict):
            names.update(deps)
    return names


def is_playwright_project(project_dir: Path | str = ".") -> bool:
    """package.json に Playwright が宣言されているか、設定ファイルがあれば True。"""
    root = Path(project_dir)
    package_json = _read_package_json(root)
    if package_json is None:
        return False
    declared = _declared_packages(package_json)
    if any(name in declared for name in _PLAYWRIGHT_PACKAGES):
        return True
    return bool(detect_playwright_config(root))


def check_peer_dependencies(project_dir: Path | str = ".") -> list[str]:
    """不足しているピア依存パッケージ名を返す。"""
    package_json = _read_package_json(Path(project_dir)) or {}
    declared = _declared_packages(package_json)
    return [name for name in ("@playwright/test",) if name not in declared]
