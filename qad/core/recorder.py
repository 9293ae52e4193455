"""
ログインフロー記録 — playwright codegen の起動

ブラウザでユーザーが行ったログイン操作を playwright codegen で記録し、
認証状態（storageState）を保存する。記録されたスクリプトは一時ファイル
経由で読み出し、環境変数検出に渡す。

codegen はフォアグラウンドで実行し、端末の入出力をそのまま引き継ぐ。
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from .. import ui
from ..errors import RecordingError

logger = logging.getLogger(__name__)

# 記録スクリプトの一時ファイル名（プロジェクトルート直下）
TEMP_SCRIPT_NAME = "temp-login.spec.ts"


def build_codegen_command(base_url: str, storage_state: Path, output: Path) -> list[str]:
    """playwright codegen のコマンドラインを組み立てる。"""
    return [
        "playwright", "codegen",
        "--target", "playwright-test",
        "--save-storage", str(storage_state),
        "--output", str(output),
        base_url,
    ]


def record_login_flow(
    base_url: str,
    storage_state_path: str,
    project_dir: Path | str = ".",
) -> str:
    """ログインフローを記録し、記録スクリプトの本文を返す。

    Args:
        base_url: 記録開始 URL
        storage_state_path: storageState の保存先（プロジェクト相対）
        project_dir: プロジェクトルート

    Returns:
        記録スクリプト本文。読み出せなかった場合は空文字。

    Raises:
        RecordingError: codegen が起動できない、または異常終了した場合
    """
    project_dir = Path(project_dir)
    storage_state = (project_dir / storage_state_path).resolve()
    storage_state.parent.mkdir(parents=True, exist_ok=True)
    temp_script = project_dir / TEMP_SCRIPT_NAME

    ui.warn("🌐 Playwright codegen を起動します...")
    ui.muted("ブラウザでログインを完了したら、ブラウザウィンドウを閉じてください。")

    cmd = build_codegen_command(base_url, storage_state, temp_script)
    logger.debug("codegen コマンド: %s", cmd)

    try:
        result = subprocess.run(cmd, cwd=project_dir)
    except FileNotFoundError as exc:
        raise RecordingError(
            "playwright コマンドが見つかりません。`playwright install` を実行してください"
        ) from exc

    if result.returncode != 0:
        raise RecordingError(f"codegen が終了コード {result.returncode} で終了しました")

    generated = ""
    try:
        generated = temp_script.read_text(encoding="utf-8")
        temp_script.unlink()
    except OSError as exc:
        logger.warning("記録スクリプトを読み出せませんでした: %s", exc)
        ui.warn("記録スクリプトを読み出せなかったため、環境変数の検出をスキップします")

    ui.success(f"✅ ログインを記録しました: {storage_state_path}")
    return generated
