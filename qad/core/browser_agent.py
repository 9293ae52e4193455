"""
ブラウザエージェント — Playwright MCP を使った自然言語タスクの実行

自然言語のテスト内容を Claude Agent SDK に渡し、Playwright MCP サーバー
経由で実ブラウザを操作させる。ツール呼び出し・結果・アシスタントの
テキストを記録（トランスクリプト）として蓄積し、後段のテストコード生成に渡す。

ロールの storageState を MCP サーバーに渡すことで、ログイン済みの状態から
タスクを開始する。
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import typer
from claude_agent_sdk import (
    AssistantMessage,
    ClaudeAgentOptions,
    ResultMessage,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    UserMessage,
    query,
)

from ..ai.prompts import BROWSER_AGENT_PROMPT
from ..settings import RuntimeSettings

logger = logging.getLogger(__name__)

# トランスクリプトに含めないツール結果（画像のみで情報量が無い）
_SKIPPED_RESULT_TOOLS = {"browser_take_screenshot"}


@dataclass
class BrowserAgentResult:
    """ブラウザエージェントの実行結果。

    Attributes:
        success: 実行が完了したか
        output: トランスクリプト（ツール呼び出し・結果・テキスト）
        error: 失敗時のエラーメッセージ
    """

    success: bool
    output: str = ""
    error: Optional[str] = None


def build_mcp_servers(
    storage_state_path: Optional[str] = None,
    headless: bool = False,
) -> dict[str, Any]:
    """Playwright MCP サーバーの起動設定を組み立てる。"""
    args = ["@playwright/mcp@latest", "--isolated"]
    if storage_state_path:
        args.append(f"--storage-state={storage_state_path}")
    if headless:
        args.append("--headless")
    return {"playwright": {"command": "npx", "args": args}}


def _short_tool_name(name: str) -> str:
    """mcp__playwright__browser_click → browser_click"""
    return name.rsplit("__", 1)[-1]


def _stringify_result(content: Any) -> str:
    """ツール結果の content を文字列に変換する。"""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = [
            item.get("text", "")
            for item in content
            if isinstance(item, dict) and item.get("type") == "text"
        ]
        if texts:
            return "\n".join(texts)
    return json.dumps(content, ensure_ascii=False, indent=2, default=str)


class TranscriptBuilder:
    """エージェントのメッセージストリームからトランスクリプトを組み立てる。"""

    def __init__(self) -> None:
        self._parts: list[str] = []
        self._tool_names: dict[str, str] = {}

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def feed(self, message: Any) -> None:
        """メッセージ 1 件を取り込む。"""
        if isinstance(message, AssistantMessage):
            for block in message.content:
                if isinstance(block, TextBlock):
                    typer.echo(block.text, nl=False)
                    self._parts.append(block.text)
                elif isinstance(block, ToolUseBlock):
                    tool_name = _short_tool_name(block.name)
                    self._tool_names[block.id] = tool_name
                    typer.secho(f"\n🔧   Tool: {tool_name}", fg=typer.colors.BLUE)
                    self._parts.append(f"Tool Call: {tool_name}\n")
                    if block.input:
                        arguments = json.dumps(block.input, ensure_ascii=False, indent=2)
                        self._parts.append(f"Arguments: {arguments}\n")
        elif isinstance(message, UserMessage) and isinstance(message.content, list):
            for block in message.content:
                if not isinstance(block, ToolResultBlock):
                    continue
                if self._tool_names.get(block.tool_use_id) in _SKIPPED_RESULT_TOOLS:
                    continue
                if block.content:
                    self._parts.append(f"Tool Result: {_stringify_result(block.content)}\n")


async def call_browser_agent(
    task: str,
    storage_state_path: Optional[str] = None,
    base_url: Optional[str] = None,
    settings: Optional[RuntimeSettings] = None,
) -> BrowserAgentResult:
    """ブラウザエージェントでタスクを実行する。

    Args:
        task: 自然言語のテスト内容
        storage_state_path: ロールの storageState パス
        base_url: 開始 URL（指定時はタスク末尾に追記）
        settings: 実行時設定（ヘッドレス・最大ターン数）

    Returns:
        実行結果。例外は送出しない。
    """
    settings = settings or RuntimeSettings()
    full_task = f"{task}. Start at {base_url}" if base_url else task

    options = ClaudeAgentOptions(
        system_prompt=BROWSER_AGENT_PROMPT,
        max_turns=settings.browser_max_turns,
        allowed_tools=["mcp__playwright__*"],
        permission_mode="bypassPermissions",
        mcp_servers=build_mcp_servers(storage_state_path, settings.browser_headless),
    )

    transcript = TranscriptBuilder()
    last: Any = None
    try:
        async for message in query(prompt=full_task, options=options):
            transcript.feed(message)
            last = message
    except Exception as exc:
        logger.warning("ブラウザエージェントで例外: %s", exc)
        return BrowserAgentResult(success=False, error=str(exc) or type(exc).__name__)

    if isinstance(last, ResultMessage) and last.is_error:
        return BrowserAgentResult(
            success=False,
            output=transcript.text,
            error=f"ブラウザエージェントが異常終了しました ({last.subtype})",
        )

    logger.info("ブラウザエージェント完了: %d 文字", len(transcript.text))
    return BrowserAgentResult(success=True, output=transcript.text)


def run_browser_agent(
    task: str,
    storage_state_path: Optional[str] = None,
    base_url: Optional[str] = None,
    settings: Optional[RuntimeSettings] = None,
) -> BrowserAgentResult:
    """call_browser_agent() の同期版。"""
    return asyncio.run(call_browser_agent(task, storage_state_path, base_url, settings))
