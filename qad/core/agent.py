"""
コーディングエージェント呼び出し — Claude Agent SDK のラッパー

自然言語の指示・作業ディレクトリ・ターン上限・編集可能ツールを渡して
エージェントを実行し、成否・コスト・所要時間・ターン数を AgentResult で返す。
ストリームで届くアシスタントのテキストは逐次ターミナルに表示する。

エージェント失敗時も例外は送出せず、success=False の結果を返す。
失敗を致命とするかは呼び出し側（コマンド層）が決める。
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence

import typer
from claude_agent_sdk import (
    AssistantMessage,
    ClaudeAgentOptions,
    ResultMessage,
    TextBlock,
    query,
)

from .. import ui
from ..errors import MissingApiKeyError

logger = logging.getLogger(__name__)

# エージェントにファイル編集を許可する既定ツール
EDIT_TOOLS: tuple[str, ...] = ("Write", "Edit", "Read")

_API_KEY_ENV = "ANTHROPIC_API_KEY"


# ---------------------------------------------------------------------------
# 結果データクラス
# ---------------------------------------------------------------------------

@dataclass
class AgentResult:
    """コーディングエージェントの実行結果。

    Attributes:
        success: 最終メッセージが成功を示したか
        duration_ms: 所要時間（ミリ秒）
        cost_usd: API コスト（USD）
        turns: 消費ターン数
        error: 失敗時のエラーメッセージ
        messages: 受信した全メッセージ
    """

    success: bool
    duration_ms: float = 0.0
    cost_usd: float = 0.0
    turns: int = 0
    error: Optional[str] = None
    messages: list[Any] = field(default_factory=list)


# ---------------------------------------------------------------------------
# API キー確認
# ---------------------------------------------------------------------------

def validate_api_key(value: str) -> Optional[str]:
    """Anthropic API キーの形式を検証し、問題があればエラーメッセージを返す。"""
    if not value:
        return "API キーを入力してください"
    if not value.startswith("sk-ant-"):
        return 'API キーは "sk-ant-" で始まる必要があります'
    return None


def ensure_api_key(interactive: bool = True) -> str:
    """ANTHROPIC_API_KEY を確認し、無ければ対話的に入力を求める。

    入力された値はこのプロセスの環境変数に設定する。

    Args:
        interactive: False の場合はプロンプトを出さずに失敗させる

    Returns:
        API キー

    Raises:
        MissingApiKeyError: キーが無く、入力も拒否された場合
    """
    api_key = os.environ.get(_API_KEY_ENV)
    if api_key:
        return api_key

    logger.warning("環境変数 %s が設定されていません", _API_KEY_ENV)
    if not interactive or not ui.confirm("Anthropic API キーを今入力しますか?", default=True):
        raise MissingApiKeyError()

    api_key = ui.ask("Anthropic API キー", validate=validate_api_key, secret=True)
    os.environ[_API_KEY_ENV] = api_key
    ui.success("API キーを設定しました")
    return api_key


# ---------------------------------------------------------------------------
# エージェント実行
# ---------------------------------------------------------------------------

def _last_assistant_text(messages: Sequence[Any]) -> str:
    """最後のアシスタントメッセージ先頭のテキストを返す。無ければ空文字。"""
    for message in reversed(messages):
        if isinstance(message, AssistantMessage):
            first = message.content[0] if message.content else None
            if isinstance(first, TextBlock):
                return first.text
            return ""
    return ""


def _failure_from_result(last: Any, messages: list[Any], max_turns: int) -> AgentResult:
    """成功以外で終わったストリームから失敗結果を組み立てる。"""
    error_message = "コーディングエージェントの実行に失敗しました"
    if isinstance(last, ResultMessage):
        if last.subtype == "error_max_turns":
            error_message = f"最大ターン数 ({max_turns}) に達しましたが完了しませんでした"
        elif last.subtype == "error_during_execution":
            error_message = "実行中にエラーが発生しました"

    detail = _last_assistant_text(messages)
    if detail:
        error_message += f": {detail[:200]}..."

    if isinstance(last, ResultMessage):
        return AgentResult(
            success=False,
            duration_ms=last.duration_ms,
            cost_usd=last.total_cost_usd or 0.0,
            turns=last.num_turns,
            error=error_message,
            messages=messages,
        )
    return AgentResult(success=False, error=error_message, messages=messages)


async def call_coding_agent(
    prompt: str,
    max_turns: int = 10,
    allowed_tools: Optional[Sequence[str]] = None,
    disallowed_tools: Optional[Sequence[str]] = None,
    permission_mode: str = "default",
    cwd: Optional[Path | str] = None,
    model: Optional[str] = None,
    fallback_model: Optional[str] = None,
) -> AgentResult:
    """コーディングエージェントを実行し、結果を返す。

    Args:
        prompt: エージェントへの指示
        max_turns: 最大ターン数
        allowed_tools: 許可するツール名
        disallowed_tools: 禁止するツール名
        permission_mode: 権限モード（default / acceptEdits / bypassPermissions / plan）
        cwd: 作業ディレクトリ（省略時はカレント）
        model: 使用モデル
        fallback_model: フォールバックモデル

    Returns:
        実行結果。例外は送出しない。
    """
    working_dir = Path(cwd or os.getcwd()).resolve()
    if not working_dir.exists():
        return AgentResult(success=False, error=f"作業ディレクトリが存在しません: {working_dir}")

    logger.debug("作業ディレクトリ: %s", working_dir)

    option_kwargs: dict[str, Any] = {
        "max_turns": max_turns,
        "permission_mode": permission_mode,
        "cwd": str(working_dir),
    }
    if allowed_tools:
        option_kwargs["allowed_tools"] = list(allowed_tools)
    if disallowed_tools:
        option_kwargs["disallowed_tools"] = list(disallowed_tools)
    if model:
        option_kwargs["model"] = model
    if fallback_model:
        option_kwargs["fallback_model"] = fallback_model

    messages: list[Any] = []
    try:
        async for message in query(prompt=prompt, options=ClaudeAgentOptions(**option_kwargs)):
            messages.append(message)
            if isinstance(message, AssistantMessage) and message.content:
                first = message.content[0]
                if isinstance(first, TextBlock):
                    typer.secho(first.text, fg=typer.colors.CYAN, nl=False)
    except Exception as exc:
        logger.warning("コーディングエージェント呼び出しで例外: %s", exc)
        return AgentResult(success=False, error=str(exc) or type(exc).__name__, messages=messages)

    last = messages[-1] if messages else None
    if isinstance(last, ResultMessage) and last.subtype == "success":
        logger.info("コーディングエージェント完了: turns=%s", last.num_turns)
        return AgentResult(
            success=True,
            duration_ms=last.duration_ms,
            cost_usd=last.total_cost_usd or 0.0,
            turns=last.num_turns,
            messages=messages,
        )

    return _failure_from_result(last, messages, max_turns)


def run_coding_agent(prompt: str, **kwargs: Any) -> AgentResult:
    """call_coding_agent() の同期版。"""
    return asyncio.run(call_coding_agent(prompt, **kwargs))
