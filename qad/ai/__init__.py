"""
AI プロンプトモジュール

エージェントに渡す指示文を組み立てる。

- BROWSER_AGENT_PROMPT: ブラウザエージェントのシステムプロンプト
- create_code_generation_prompt: テストコード生成の指示
- add_to_playwright_config_prompt / create_role_addition_prompt: ロール追加の指示
- remove_role_from_*_prompt: ロール削除の指示
"""

from .prompts import (  # noqa: F401
    BROWSER_AGENT_PROMPT,
    add_to_playwright_config_prompt,
    create_code_generation_prompt,
    create_role_addition_prompt,
    remove_role_from_playwright_config_prompt,
    remove_role_from_setup_prompt,
)

__all__ = [
    "BROWSER_AGENT_PROMPT",
    "add_to_playwright_config_prompt",
    "create_code_generation_prompt",
    "create_role_addition_prompt",
    "remove_role_from_playwright_config_prompt",
    "remove_role_from_setup_prompt",
]
