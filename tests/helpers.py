"""
テスト用ヘルパー — サンプルデータ・エージェント SDK の代役・Hypothesis ストラテジー
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

from hypothesis import strategies as st

from qad.core.agent import AgentResult
from qad.core.env_detection import DEFAULT_RULES, EnvVar

# ---------------------------------------------------------------------------
# 記録スクリプトのサンプル
# ---------------------------------------------------------------------------

RECORDED_LOGIN = """\
import { test, expect } from '@playwright/test';

test('test', async ({ page }) => {
  await page.goto('http://localhost:3000/login');
  await page.getByRole('textbox', { name: 'Email' }).click();
  await page.getByRole('textbox', { name: 'Email' }).fill('alice@acme.io');
  await page.getByRole('textbox', { name: 'Password' }).click();
  await page.getByRole('textbox', { name: 'Password' }).fill('S3cure!pw');
  await page.getByRole('button', { name: 'Sign in' }).click();
});
"""

PLAYWRIGHT_CONFIG = """\
import { defineConfig, devices } from '@playwright/test';

export default defineConfig({
  testDir: './e2e',
  use: {
    baseURL: 'http://localhost:5173',
  },
  projects: [
    {
      name: 'chromium',
      use: { ...devices['Desktop Chrome'] },
    },
  ],
});
"""

class RecordingStrategy:
    """呼び出しを記録するだけの編集戦略。"""

    def __init__(self, result: AgentResult | None = None, error: Exception | None = None) -> None:
        self.result = result or AgentResult(success=True)
        self.error = error
        self.calls: list[tuple[str, Path]] = []

    def apply(self, instruction: str, cwd: Path) -> AgentResult:
        self.calls.append((instruction, cwd))
        if self.error is not None:
            raise self.error
        return self.result

def make_result_message(subtype: str = "success", is_error: bool = False, **overrides: Any) -> MagicMock:
    """claude_agent_sdk.ResultMessage の代役を作る。"""
    from claude_agent_sdk import ResultMessage

    message = MagicMock(spec=ResultMessage)
    message.subtype = subtype
    message.is_error = is_error
    message.duration_ms = overrides.get("duration_ms", 1500)
    message.total_cost_usd = overrides.get("total_cost_usd", 0.0123)
    message.num_turns = overrides.get("num_turns", 3)
    return message

def fake_query(*messages: Any):
    """claude_agent_sdk.query の代役（渡したメッセージを順に流す）。"""
    calls: list[dict[str, Any]] = []

    async def _query(*, prompt: str, options: Any):
        calls.append({"prompt": prompt, "options": options})
        for message in messages:
            yield message

    _query.calls = calls  # type: ignore[attr-defined]
    return _query

def make_text_message(text: str) -> MagicMock:
    """テキストブロック 1 つだけの AssistantMessage の代役。"""
    from claude_agent_sdk import AssistantMessage, TextBlock

    block = MagicMock(spec=TextBlock)
    block.text = text
    message = MagicMock(spec=AssistantMessage)
    message.content = [block]
    return message

# ---------------------------------------------------------------------------
# Hypothesis ストラテジー
# ---------------------------------------------------------------------------

# ロール名: 英字で始まり、英数字・ハイフン・アンダースコア
role_names = st.from_regex(r"\A[a-zA-Z][a-zA-Z0-9_-]{0,15}\Z")

# 記録スクリプトに現れうる「本物らしい」メールアドレス
_local_part = st.from_regex(r"\A[a-z]{3,8}\Z").filter(
    lambda s: not any(token in s for token in DEFAULT_RULES.placeholder_tokens)
)
realistic_emails = st.builds(lambda local, n: f"{local}{n}@corp.io", _local_part, st.integers(0, 999))

# 名前・値が衝突しやすい EnvVar の列（候補を少数に絞る）
colliding_env_vars = st.lists(
    st.builds(
        EnvVar,
        name=st.sampled_from(["QA_USER_EMAIL", "QA_USER_PASSWORD", "QA_ADMIN_EMAIL"]),
        value=st.sampled_from(["a@corp.io", "b@corp.io", "S3cure!pw"]),
        kind=st.sampled_from(["email", "password"]),
    ),
    max_size=8,
)
