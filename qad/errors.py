"""
例外定義 — qa-director 全体で共有するエラー階層

コマンド層はこれらを捕捉し、赤字メッセージと終了コード 1 に変換する。
"""

from __future__ import annotations


class QadError(Exception):
    """qa-director の全例外の基底クラス。"""


class ConfigNotFoundError(QadError):
    """設定ドキュメント（qa-director.yaml）が存在しない場合の例外。"""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(
            f"qa-director の設定が見つかりません: {path}\n"
            "先に `qa-director init` を実行してください。"
        )


class ConfigInvalidError(QadError):
    """設定ドキュメントの YAML 構文またはスキーマが不正な場合の例外。"""


class MissingApiKeyError(QadError):
    """ANTHROPIC_API_KEY が設定されておらず、入力も拒否された場合の例外。"""

    def __init__(self) -> None:
        super().__init__("環境変数 ANTHROPIC_API_KEY が設定されていません")


class AgentError(QadError):
    """AI エージェント（コーディング / ブラウザ）の主処理が失敗した場合の例外。"""


class RecordingError(QadError):
    """playwright codegen によるログイン記録が失敗した場合の例外。"""
