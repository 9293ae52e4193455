"""
環境変数検出 — 記録スクリプト中の認証情報の検出と環境変数参照への置換

playwright codegen が出力したログインフロー（TypeScript）を走査し、
メール/ユーザー名・パスワード欄への fill で入力されたリテラル値を検出する。
検出した値には決定的に環境変数名を割り当て、スクリプト中の引用符付き
リテラルを process.env.<NAME> 参照に置き換える。

処理の流れ:
  1. find_credentials(): フィールド名パターンに一致する fill 値を抽出
  2. generate_env_var_name(): ロール名と admin 判定から環境変数名を決定
  3. deduplicate_env_vars(): 名前または値が既出のものを除外（先勝ち）
  4. replace_with_env_vars(): 引用符付きリテラルを環境変数参照に置換

ヒューリスティックは取りこぼし寄り（誤検出より未検出を優先）。
placeholder トークンに "admin" / "user" を含むため、それらを含む値は
正規の認証情報であっても検出しない。
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Literal, Optional, Sequence

logger = logging.getLogger(__name__)

CredentialKind = Literal["email", "password"]


# ---------------------------------------------------------------------------
# データ型
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DetectedCredential:
    """記録スクリプトから検出された認証情報 1 件（永続化しない）。

    Attributes:
        field_context: 入力欄のアクセシブルネーム（例: "Email"）
        literal_value: fill に渡されたリテラル値
        kind: 認証情報の種別
    """

    field_context: str
    literal_value: str
    kind: CredentialKind


@dataclass(frozen=True)
class EnvVar:
    """検出値から導出した環境変数。

    Attributes:
        name: 環境変数名（例: QA_USER_EMAIL）
        value: 置換対象のリテラル値
        kind: 認証情報の種別
    """

    name: str
    value: str
    kind: CredentialKind


# ---------------------------------------------------------------------------
# 検出ルール（差し替え可能）
# ---------------------------------------------------------------------------

_DEFAULT_SELECTOR_PATTERNS: tuple[str, ...] = (
    r"^#[a-zA-Z]",            # ID セレクタ
    r"^\.[a-zA-Z]",           # クラスセレクタ
    r"^\[.*\]$",              # 属性セレクタ
    r"^[a-zA-Z][a-zA-Z0-9]*$",  # 要素名（素の識別子）
    r"(?i)data-testid",
    r"(?i)data-cy",
    r"(?i)class=",
    r"(?i)id=",
)

_DEFAULT_PLACEHOLDER_TOKENS: tuple[str, ...] = (
    "test", "demo", "sample", "example", "placeholder",
    "lorem", "ipsum", "john", "jane", "doe",
    "admin", "user", "guest", "test123", "password123",
)


@dataclass(frozen=True)
class DetectionRules:
    """検出に使うキーワード・除外リスト。

    Attributes:
        email_keywords: メール/ユーザー名欄と判定するフィールド名の部分文字列（大文字小文字区別）
        password_keywords: パスワード欄と判定するフィールド名の部分文字列
        placeholder_tokens: 値（小文字化）に含まれていたら除外するトークン
        selector_patterns: 値がセレクタらしいと判定する正規表現
    """

    email_keywords: tuple[str, ...] = ("Email", "email", "Username", "username", "User", "user")
    password_keywords: tuple[str, ...] = ("Password", "password")
    placeholder_tokens: tuple[str, ...] = _DEFAULT_PLACEHOLDER_TOKENS
    selector_patterns: tuple[str, ...] = _DEFAULT_SELECTOR_PATTERNS
    _compiled_selectors: tuple[re.Pattern, ...] = field(
        init=False, repr=False, compare=False, default=(),
    )

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "_compiled_selectors",
            tuple(re.compile(p) for p in self.selector_patterns),
        )

    def fill_patterns(self) -> list[tuple[re.Pattern, CredentialKind]]:
        """種別ごとの検出用正規表現を（email, password の順で）返す。"""
        return [
            (_build_fill_pattern(self.email_keywords), "email"),
            (_build_fill_pattern(self.password_keywords), "password"),
        ]


DEFAULT_RULES = DetectionRules()


def _build_fill_pattern(keywords: Sequence[str]) -> re.Pattern:
    """getByRole('textbox', { name: '...keyword...' }) ... .fill('value') の正規表現を構築する。

    フィールド名は部分一致。fill までは改行をまたいで最短一致する。
    """
    alternation = "|".join(re.escape(k) for k in keywords)
    return re.compile(
        r"\.getByRole\(['\"`]textbox['\"`],\s*\{\s*name:\s*['\"`]"
        r"([^'\"`]*(?:" + alternation + r")[^'\"`]*)"
        r"['\"`]\s*\}\)[\s\S]*?\.fill\(['\"`]([^'\"`]+)['\"`]\)"
    )


# ---------------------------------------------------------------------------
# 値のヒューリスティック
# ---------------------------------------------------------------------------

def is_likely_selector(value: str, rules: DetectionRules = DEFAULT_RULES) -> bool:
    """値がセレクタ文字列らしいか判定する。"""
    return any(p.search(value) for p in rules._compiled_selectors)


def is_common_test_data(value: str, rules: DetectionRules = DEFAULT_RULES) -> bool:
    """値がありがちなダミーデータ（test, demo, admin 等）を含むか判定する。"""
    lower_value = value.lower()
    return any(token in lower_value for token in rules.placeholder_tokens)


# ---------------------------------------------------------------------------
# 検出・命名・重複排除・置換
# ---------------------------------------------------------------------------

def find_credentials(
    code: str,
    rules: DetectionRules = DEFAULT_RULES,
) -> list[DetectedCredential]:
    """記録スクリプトから認証情報らしき fill 値を抽出する。

    email 系 → password 系の順に走査し、種別内ではソース順を保つ。
    セレクタらしい値・ダミーデータらしい値は除外する。
    一致が無い場合は空リストを返す（エラーではない）。

    Args:
        code: 記録スクリプト全文
        rules: 検出ルール

    Returns:
        検出結果のリスト
    """
    found: list[DetectedCredential] = []
    for pattern, kind in rules.fill_patterns():
        for match in pattern.finditer(code):
            field_context, value = match.group(1), match.group(2)
            if is_likely_selector(value, rules) or is_common_test_data(value, rules):
                logger.debug("除外: field=%s kind=%s", field_context, kind)
                continue
            found.append(DetectedCredential(field_context, value, kind))
    return found


def generate_env_var_name(
    value: str,
    kind: str,
    field_context: Optional[str] = None,
    role_name: Optional[str] = None,
) -> str:
    """検出値から環境変数名を決定的に導出する。

    フィールド名または値に "admin"（大文字小文字無視）を含む場合は
    ロール名に関わらず QA_ADMIN_* に固定する。

    Raises:
        ValueError: email / password 以外の種別が渡された場合
    """
    role_prefix = role_name.upper() if role_name else "USER"
    if kind not in ("email", "password"):
        raise ValueError(f"未対応の認証情報種別です: {kind!r}")

    is_admin = "admin" in (field_context or "").lower() or "admin" in value.lower()
    prefix = "ADMIN" if is_admin else role_prefix
    return f"QA_{prefix}_{kind.upper()}"


def deduplicate_env_vars(env_vars: Sequence[EnvVar]) -> list[EnvVar]:
    """名前または値が既出の環境変数を除外する（先勝ち）。"""
    seen_names: set[str] = set()
    seen_values: set[str] = set()
    unique: list[EnvVar] = []

    for env_var in env_vars:
        if env_var.name in seen_names or env_var.value in seen_values:
            continue
        seen_names.add(env_var.name)
        seen_values.add(env_var.value)
        unique.append(env_var)

    return unique


def detect_env_vars(
    code: str,
    role_name: Optional[str] = None,
    rules: DetectionRules = DEFAULT_RULES,
) -> list[EnvVar]:
    """記録スクリプトから環境変数候補を検出する（検出 → 命名 → 重複排除）。"""
    env_vars = [
        EnvVar(
            name=generate_env_var_name(c.literal_value, c.kind, c.field_context, role_name),
            value=c.literal_value,
            kind=c.kind,
        )
        for c in find_credentials(code, rules)
    ]
    result = deduplicate_env_vars(env_vars)
    logger.info("環境変数候補を検出しました: %d 件", len(result))
    return result


def replace_with_env_vars(code: str, env_vars: Sequence[EnvVar]) -> str:
    """引用符付きのリテラル値を process.env.<NAME> 参照に置換する。

    開き引用符と同じ引用符で閉じている箇所のみを対象とし、全出現を置換する。
    """
    processed = code
    for env_var in env_vars:
        pattern = re.compile(r"(['\"`])" + re.escape(env_var.value) + r"\1")
        reference = f"process.env.{env_var.name}"
        processed = pattern.sub(lambda _m, ref=reference: ref, processed)
    return processed


# ---------------------------------------------------------------------------
# 表示・検証ヘルパー
# ---------------------------------------------------------------------------

def extract_env_var_names(env_vars: Sequence[EnvVar]) -> list[str]:
    """環境変数名の一覧を返す。"""
    return [env_var.name for env_var in env_vars]


def format_env_var_for_display(env_var: EnvVar) -> str:
    """確認表示用の 1 行を返す。パスワードはマスクし、長いメールは省略する。"""
    icon = {"email": "📧", "password": "🔒"}.get(env_var.kind, "•")

    if env_var.kind == "password":
        shown = "*" * min(len(env_var.value), 8)
    elif len(env_var.value) > 20:
        shown = env_var.value[:20] + "..."
    else:
        shown = env_var.value

    return f"{icon} {env_var.name}: {shown}"


def validate_env_vars(env_vars: Sequence[EnvVar]) -> tuple[list[EnvVar], list[EnvVar]]:
    """名前・値・種別がすべて揃っているかで (valid, invalid) に分ける。"""
    valid: list[EnvVar] = []
    invalid: list[EnvVar] = []
    for env_var in env_vars:
        if env_var.name and env_var.value and env_var.kind:
            valid.append(env_var)
        else:
            invalid.append(env_var)
    return valid, invalid
