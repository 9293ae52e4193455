"""
プロンプトテンプレート — ブラウザエージェント・コーディングエージェント向け

エージェントへの指示文はすべて英語で組み立てる（生成コードのコメントや
変数名が英語で揃うようにするため）。
"""

from __future__ import annotations

from typing import Optional

# ---------------------------------------------------------------------------
# ブラウザエージェント
# ---------------------------------------------------------------------------

BROWSER_AGENT_PROMPT = """\
You are an efficient QA tester that can run manual e2e tests on a website given \
high level instructions. Test only what the user asks for and nothing else.

Extra Rules:
- Do the bare minimum needed to confirm the test passes, unless the user asks for specifics
- Stop and report to the user if the direct test the user asks for does not pass. \
Do not try to get around the issue.
- On the other hand, if you run into minor popups, try your best to get around them and continue the test
- Another agent will be writing a generalizable test that will be integrated into the E2E tests \
in the codebase, so make sure to use the most general, stable, and reliable selectors and actions
- Take lots of screenshots and snapshots to understand the current state of the page and the test flow
- Wait for elements to be visible before interacting with them
"""


# ---------------------------------------------------------------------------
# テストコード生成
# ---------------------------------------------------------------------------

def create_code_generation_prompt(
    browser_agent_output: str,
    user_query: str,
    role: Optional[str] = None,
) -> str:
    """ブラウザエージェントの記録からテストコードを生成させるプロンプト。"""
    role_block = f"\n<role>\n{role}\n</role>\n" if role else ""
    return f"""
You are a Software Development Engineer in Test and an expert in Playwright.

Based on the tool calls and results of the Playwright browser agent, generate an optimal \
and stable Playwright test file and add it to the codebase in the relevant folder.

<user_query>
{user_query}
</user_query>

<browser_agent_output>
{browser_agent_output}
</browser_agent_output>
{role_block}
<rules>
- Generate clean, maintainable test code following Playwright best practices
- Use stable selectors and reliable waiting strategies
- Don't overtest unnecessary functionality. In other words, use as little "expect" statements as possible.
- Make sure the locators are very specific and don't resolve to multiple elements. \
If they do, use first() to get the first element.
- Follow the existing code style and patterns in the repository
- The test should accomplish the original user intent: {user_query}
</rules>
"""


# ---------------------------------------------------------------------------
# 外部ファイル編集（ロール追加・削除）
# ---------------------------------------------------------------------------

def add_to_playwright_config_prompt(
    config_path: str,
    role_name: str,
    storage_path: str,
    setup_project_name: str = "setup",
) -> str:
    """Playwright 設定にロールのプロジェクトを追加させるプロンプト。"""
    return f"""
The user has just created a new role in their Playwright E2E tests and needs you to add it \
to the Playwright config file.

<role>
{role_name}
</role>

<storage_state>
{storage_path}
</storage_state>

<config_path>
{config_path}
</config_path>

<setup_project_name>
{setup_project_name}
</setup_project_name>

<instructions>
Add a new project configuration for the "{role_name}" role to the Playwright config file. \
The project should:
1. Use chromium browser only
2. Include the appropriate storage state path
3. Set proper test match patterns if role has specific folder
4. Include dependencies: ['{setup_project_name}'] to ensure the setup project runs first
5. Follow the existing project structure and naming conventions
</instructions>
"""


def create_role_addition_prompt(login_flow: str, setup_path: Optional[str] = None) -> str:
    """セットアップスクリプトにロールのログイン処理を追加させるプロンプト。"""
    setup_block = f"<setup_path>\n{setup_path}\n</setup_path>\n" if setup_path else ""
    return f"""
The user has just completed a login flow on a website and needs you to add a new role \
to their Playwright E2E tests setup file:

{setup_block}
<login_flow>
{login_flow}
</login_flow>

<instructions>
Add the new role to the setup file following existing patterns, create a login function that \
replicates the recorded flow, configure with correct storage state path, follow code conventions, \
and handle environment variables properly.
</instructions>

<rules>
- Follow existing role patterns in the setup file
- Create robust login function with proper timing handling
- Use stable selectors from recorded flow
- Include proper error handling
</rules>
"""


def remove_role_from_setup_prompt(role_name: str, setup_path: str) -> str:
    """セットアップスクリプトからロールを削除させるプロンプト。"""
    return f"""Please remove the "{role_name}" role from the authentication setup file.

The setup file is located at: {setup_path}

Instructions:
1. Remove the "{role_name}" entry from the roleSetups dictionary
2. Keep all other roles intact
3. Ensure the remaining setup code is valid TypeScript
4. Do not remove any imports or shared configuration

Please update the file to remove only the specified role while maintaining the structure \
and functionality for other roles."""


def remove_role_from_playwright_config_prompt(role_name: str, config_path: str) -> str:
    """Playwright 設定からロールのプロジェクトを削除させるプロンプト。"""
    return f"""Please remove the "{role_name}" role project from the Playwright configuration file.

The config file is located at: {config_path}

Instructions:
1. Remove the project configuration for "{role_name}" from the projects array
2. Keep all other project configurations intact
3. Ensure the remaining configuration is valid TypeScript/JavaScript
4. Do not remove any shared configuration or imports

The project configuration to remove typically looks like:
{{
  name: '{role_name}',
  use: {{ /* ... */ }},
  storageState: '/* path containing {role_name} */',
  testDir: '/* ... */',
  testMatch: [/* ... */],
  dependencies: [/* ... */]
}}

Please update the file to remove only the specified role project while maintaining all \
other configurations."""
