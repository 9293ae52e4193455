"""
外部ファイル編集オーケストレーター

Playwright 設定・セットアップスクリプトなど、このツールが所有しない
ファイルの編集を「編集戦略」に委譲する。既定の戦略は AI コーディング
エージェントに自然言語の指示を渡すもの。

編集の失敗は呼び出し元のコマンドを中断させない。失敗時は警告と
手動で行うべき編集内容を表示し、False を返すだけとする。
成功時はエージェントの結果フラグを信頼し、ファイルの再解析は行わない。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol, Sequence, runtime_checkable

from .. import ui
from .agent import EDIT_TOOLS, AgentResult, run_coding_agent

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# 編集戦略 Protocol
# ---------------------------------------------------------------------------

@runtime_checkable
class MutationStrategy(Protocol):
    """外部ファイル編集戦略の抽象インターフェース。

    テスト時や決定的な編集が必要な場合に差し替える。
    """

    def apply(self, instruction: str, cwd: Path) -> AgentResult:
        """編集指示を実行し、結果を返す。"""
        ...


class AgentMutationStrategy:
    """コーディングエージェントに編集を委譲する既定の戦略。"""

    def __init__(
        self,
        max_turns: int = 5,
        allowed_tools: Sequence[str] = EDIT_TOOLS,
        permission_mode: str = "acceptEdits",
        model: Optional[str] = None,
    ) -> None:
        self.max_turns = max_turns
        self.allowed_tools = tuple(allowed_tools)
        self.permission_mode = permission_mode
        self.model = model

    def apply(self, instruction: str, cwd: Path) -> AgentResult:
        return run_coding_agent(
            instruction,
            max_turns=self.max_turns,
            allowed_tools=self.allowed_tools,
            permission_mode=self.permission_mode,
            cwd=cwd,
            model=self.model,
        )


# ---------------------------------------------------------------------------
# オーケストレーター本体
# ---------------------------------------------------------------------------

class MutationOrchestrator:
    """外部ファイルの編集をベストエフォートで実行する。"""

    def __init__(self, strategy: MutationStrategy, project_dir: Path | str = ".") -> None:
        """MutationOrchestrator を初期化する。

        Args:
            strategy: 編集戦略
            project_dir: プロジェクトルート（エージェントの作業ディレクトリ）
        """
        self.strategy = strategy
        self.project_dir = Path(project_dir)

    def apply(
        self,
        target: str,
        instruction: str,
        manual_hint: str,
        label: Optional[str] = None,
    ) -> bool:
        """対象ファイルに編集指示を適用する。

        Args:
            target: 対象ファイル（プロジェクト相対）
            instruction: 編集戦略に渡す自然言語の指示
            manual_hint: 失敗時にユーザーへ表示する手動編集の内容
            label: 表示用の対象名（省略時は target）

        Returns:
            編集に成功したら True。スキップ・失敗時は False（例外は送出しない）。
        """
        label = label or target
        if not (self.project_dir / target).exists():
            ui.warn(f"⚠️  {label}が見つかりません ({target})。更新をスキップします")
            return False

        try:
            result = self.strategy.apply(instruction, self.project_dir)
        except Exception as exc:
            logger.warning("%s の編集中に例外: %s", target, exc)
            result = AgentResult(success=False, error=str(exc))

        if result.success:
            logger.info("%s を更新しました", target)
            return True

        ui.warn(f"⚠️  {label}を自動で更新できませんでした: {result.error}")
        ui.info(f"📝 {manual_hint}")
        return False


# ロール追加・削除で与えるターン上限
ADD_ROLE_MAX_TURNS = 5
REMOVE_ROLE_MAX_TURNS = 3


def agent_orchestrator(
    max_turns: int,
    project_dir: Path | str = ".",
    model: Optional[str] = None,
) -> MutationOrchestrator:
    """コーディングエージェント戦略のオーケストレーターを生成する。"""
    return MutationOrchestrator(AgentMutationStrategy(max_turns=max_turns, model=model), project_dir)
