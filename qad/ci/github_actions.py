"""
GitHub Actions ワークフロー連携

E2E テスト用ワークフローの生成と、ロールの環境変数（secrets 参照）の
追加・削除を行う。ワークフローは ruamel.yaml のラウンドトリップモードで
読み書きし、ユーザーが書いたコメントやキー順序を保つ。

CI 連携はすべて非致命的。失敗時は警告を表示して False を返す。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Optional

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .. import ui
from ..core.detection import detect_github_actions
from ..core.files import render_template

logger = logging.getLogger(__name__)

DEFAULT_WORKFLOW_PATH = ".github/workflows/qa-director.yml"
SECRETS_INFO_PATH = ".github/SECRETS.md"

_TEST_STEP_NAME = "Run Playwright tests"
_TEST_COMMAND = "playwright test"


def _secret_ref(name: str) -> str:
    return "${{ secrets.%s }}" % name


def workflow_template() -> dict[str, Any]:
    """新規ワークフローの雛形を返す。"""
    return {
        "name": "QA Director E2E Tests",
        "on": {
            "push": {"branches": ["main", "develop"]},
            "pull_request": {"branches": ["main", "develop"]},
        },
        "jobs": {
            "test": {
                "timeout-minutes": 60,
                "runs-on": "ubuntu-latest",
                "steps": [
                    {"uses": "actions/checkout@v4"},
                    {"uses": "actions/setup-node@v4", "with": {"node-version": "lts/*"}},
                    {"name": "Install dependencies", "run": "npm ci"},
                    {
                        "name": "Install Playwright Browsers",
                        "run": "npx playwright install --with-deps chromium",
                    },
                    {
                        "name": _TEST_STEP_NAME,
                        "run": "npx playwright test",
                        "env": {"ANTHROPIC_API_KEY": _secret_ref("ANTHROPIC_API_KEY")},
                    },
                    {
                        "uses": "actions/upload-artifact@v4",
                        "if": "always()",
                        "with": {
                            "name": "playwright-report",
                            "path": "playwright-report/",
                            "retention-days": 30,
                        },
                    },
                ],
            },
        },
    }


class WorkflowDocument:
    """ワークフロー YAML のラウンドトリップ読み書き。"""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._yaml = YAML()
        self._yaml.indent(mapping=2, sequence=4, offset=2)
        self._yaml.width = 4096
        self.data: Any = None

    def load(self) -> Any:
        with open(self.path, "r", encoding="utf-8") as f:
            self.data = self._yaml.load(f)
        return self.data

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            self._yaml.dump(self.data, f)

    def find_test_step(self) -> Optional[Any]:
        """test ジョブ内の Playwright 実行ステップを返す。"""
        jobs = self.data.get("jobs") if isinstance(self.data, dict) else None
        test_job = jobs.get("test") if isinstance(jobs, dict) else None
        if not isinstance(test_job, dict):
            return None
        for step in test_job.get("steps") or []:
            if not isinstance(step, dict):
                continue
            if step.get("name") == _TEST_STEP_NAME or _TEST_COMMAND in str(step.get("run", "")):
                return step
        return None


# ---------------------------------------------------------------------------
# 生成
# ---------------------------------------------------------------------------

def create_workflow_file(workflow_path: str, project_dir: Path | str = ".") -> Path:
    """ワークフローの雛形を書き出す。"""
    doc = WorkflowDocument(Path(project_dir) / workflow_path)
    doc.data = workflow_template()
    doc.save()
    ui.success(f"✅ GitHub Actions ワークフローを作成しました: {workflow_path}")
    return doc.path


def _validate_workflow_path(value: str) -> Optional[str]:
    if not value:
        return "ワークフローのパスを入力してください"
    if not value.endswith((".yml", ".yaml")):
        return "ワークフローファイルは .yml または .yaml で終わる必要があります"
    if ".github/workflows/" not in value:
        return "ワークフローは .github/workflows/ 配下に置く必要があります"
    return None


def setup_github_actions(project_dir: Path | str = ".") -> tuple[bool, str]:
    """既存ワークフローの利用・新規作成・無効化を対話で決める。

    Returns:
        (enabled, path)。無効化した場合は (False, "")。
    """
    existing = detect_github_actions(project_dir)
    if existing:
        ui.warn("🔍 既存の GitHub Actions ワークフローが見つかりました:")
        for name in existing:
            ui.info(f"  - {name}")
        if ui.confirm("既存のワークフローを使いますか?", default=True):
            selected = ui.choose("更新するワークフローを選んでください", existing)
            return True, f".github/workflows/{selected}"

    if ui.confirm("新しい GitHub Actions ワークフローを作成しますか?", default=True):
        workflow_path = ui.ask(
            "ワークフローのパス",
            default=DEFAULT_WORKFLOW_PATH,
            validate=_validate_workflow_path,
        )
        try:
            create_workflow_file(workflow_path, project_dir)
        except OSError as exc:
            ui.warn(f"⚠️  ワークフローを作成できませんでした: {exc}")
            return False, ""
        return True, workflow_path

    return False, ""


# ---------------------------------------------------------------------------
# 環境変数の追加・削除
# ---------------------------------------------------------------------------

def _load_test_step(workflow_path: Path) -> tuple[Optional[WorkflowDocument], Optional[Any]]:
    doc = WorkflowDocument(workflow_path)
    try:
        doc.load()
    except (OSError, YAMLError) as exc:
        ui.warn(f"⚠️  ワークフローを読み込めませんでした: {exc}")
        return None, None

    step = doc.find_test_step()
    if step is None:
        ui.warn("⚠️  ワークフローに Playwright のテストステップが見つかりません")
        return doc, None
    return doc, step


def update_workflow_with_env_vars(
    workflow_path: str,
    names: Iterable[str],
    project_dir: Path | str = ".",
) -> bool:
    """テストステップの env に secrets 参照を追加する。"""
    names = list(names)
    doc, step = _load_test_step(Path(project_dir) / workflow_path)
    if doc is None or step is None:
        return False

    if step.get("env") is None:
        step["env"] = {}
    for name in names:
        step["env"][name] = _secret_ref(name)

    try:
        doc.save()
    except OSError as exc:
        ui.warn(f"⚠️  ワークフローを更新できませんでした: {exc}")
        return False

    ui.success("✅ ワークフローに環境変数を追加しました")
    ui.warn("⚠️  GitHub リポジトリに次の secrets を登録してください:")
    for name in names:
        ui.info(f"  - {name}")
    return True


def remove_env_vars_from_workflow(
    workflow_path: str,
    names: Iterable[str],
    project_dir: Path | str = ".",
) -> bool:
    """テストステップの env から指定の環境変数を取り除く。"""
    path = Path(project_dir) / workflow_path
    if not path.exists():
        ui.muted(f"⚠️  ワークフローが見つかりません ({workflow_path})。更新をスキップします")
        return False

    doc, step = _load_test_step(path)
    if doc is None or step is None:
        return False

    env = step.get("env")
    if not isinstance(env, dict):
        return False
    removed = [name for name in names if name in env]
    if not removed:
        return False
    for name in removed:
        del env[name]

    try:
        doc.save()
    except OSError as exc:
        ui.warn(f"⚠️  ワークフローを更新できませんでした: {exc}")
        return False

    ui.success("✅ ワークフローからロールの環境変数を削除しました")
    return True


# ---------------------------------------------------------------------------
# 補助
# ---------------------------------------------------------------------------

def create_secrets_info(names: Iterable[str], project_dir: Path | str = ".") -> Optional[Path]:
    """登録が必要な secrets の一覧を .github/SECRETS.md に書き出す。"""
    names = list(names)
    if not names:
        return None
    path = Path(project_dir) / SECRETS_INFO_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_template("secrets.md.j2", env_vars=names), encoding="utf-8")
    ui.success(f"✅ secrets の一覧を作成しました: {SECRETS_INFO_PATH}")
    return path


def validate_workflow(workflow_path: str, project_dir: Path | str = ".") -> bool:
    """ワークフローに test ジョブと Playwright 実行ステップがあるか検証する。"""
    doc = WorkflowDocument(Path(project_dir) / workflow_path)
    try:
        data = doc.load()
    except (OSError, YAMLError) as exc:
        ui.error(f"❌ ワークフローの検証に失敗しました: {exc}")
        return False

    jobs = data.get("jobs") if isinstance(data, dict) else None
    if not isinstance(jobs, dict):
        ui.error("❌ ワークフローに jobs がありません")
        return False
    test_job = jobs.get("test")
    if not isinstance(test_job, dict):
        ui.error("❌ ワークフローに test ジョブがありません")
        return False
    steps = test_job.get("steps")
    if not steps:
        ui.error("❌ test ジョブに steps がありません")
        return False
    if not any(isinstance(s, dict) and _TEST_COMMAND in str(s.get("run", "")) for s in steps):
        ui.error("❌ ワークフローに Playwright のテストステップがありません")
        return False

    logger.info("ワークフローの検証に成功しました: %s", workflow_path)
    return True
