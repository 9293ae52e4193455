"""
実行時設定 — 環境変数からのツール設定読み込み

プロジェクト設定ドキュメント（qa-director.yaml）とは別に、
ツール自体の挙動を環境変数で制御する。

環境変数一覧:
  QAD_LOG_LEVEL         : ログレベル（debug/info/warning/error, デフォルト: warning）
  QAD_AGENT_MODEL       : コーディングエージェントのモデル上書き（デフォルト: 未指定）
  QAD_BROWSER_HEADLESS  : ブラウザエージェントをヘッドレスで実行（true/false, デフォルト: false）
  QAD_BROWSER_MAX_TURNS : ブラウザエージェントの最大ターン数（デフォルト: 50）
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# 環境変数キー定数
# ---------------------------------------------------------------------------

_ENV_LOG_LEVEL = "QAD_LOG_LEVEL"
_ENV_AGENT_MODEL = "QAD_AGENT_MODEL"
_ENV_BROWSER_HEADLESS = "QAD_BROWSER_HEADLESS"
_ENV_BROWSER_MAX_TURNS = "QAD_BROWSER_MAX_TURNS"

_LOG_LEVELS = ("debug", "info", "warning", "error")


# ---------------------------------------------------------------------------
# 設定データクラス
# ---------------------------------------------------------------------------

@dataclass
class RuntimeSettings:
    """qa-director の実行時設定。

    Attributes:
        log_level: ログレベル名
        agent_model: コーディングエージェントのモデル名（None で SDK 既定）
        browser_headless: ブラウザエージェントをヘッドレスで起動するか
        browser_max_turns: ブラウザエージェントの最大ターン数
    """

    log_level: str = "warning"
    agent_model: Optional[str] = None
    browser_headless: bool = False
    browser_max_turns: int = 50


def _parse_bool(value: str) -> bool:
    """文字列を bool に変換する。"true", "1", "yes" → True。"""
    return value.lower() in ("true", "1", "yes")


def load_settings_from_env() -> RuntimeSettings:
    """環境変数から RuntimeSettings を生成する。

    設定されていない、または不正な値の環境変数はデフォルト値を使用する。

    Returns:
        環境変数から読み込んだ設定
    """
    settings = RuntimeSettings()

    if _ENV_LOG_LEVEL in os.environ:
        val = os.environ[_ENV_LOG_LEVEL].lower()
        if val in _LOG_LEVELS:
            settings.log_level = val
        else:
            logger.warning("QAD_LOG_LEVEL の値が不正です: %s", os.environ[_ENV_LOG_LEVEL])

    if os.environ.get(_ENV_AGENT_MODEL):
        settings.agent_model = os.environ[_ENV_AGENT_MODEL]

    if _ENV_BROWSER_HEADLESS in os.environ:
        settings.browser_headless = _parse_bool(os.environ[_ENV_BROWSER_HEADLESS])

    if _ENV_BROWSER_MAX_TURNS in os.environ:
        try:
            settings.browser_max_turns = int(os.environ[_ENV_BROWSER_MAX_TURNS])
        except ValueError:
            logger.warning(
                "QAD_BROWSER_MAX_TURNS の値が不正です: %s",
                os.environ[_ENV_BROWSER_MAX_TURNS],
            )

    logger.debug("実行時設定を読み込みました: %s", settings)
    return settings
