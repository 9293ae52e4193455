"""
対話プロンプトと色付き出力のヘルパー

typer.confirm / typer.prompt を薄くラップし、コマンド本体から
入出力の詳細を隠す。テストでは CliRunner の input で駆動する。
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence

import typer

# 入力値検証関数: エラーメッセージを返すか、問題なければ None を返す
Validator = Callable[[str], Optional[str]]


# ---------------------------------------------------------------------------
# 出力
# ---------------------------------------------------------------------------

def info(message: str) -> None:
    """通常メッセージ（シアン）を出力する。"""
    typer.secho(message, fg=typer.colors.CYAN)


def heading(message: str) -> None:
    """見出しメッセージ（青）を出力する。"""
    typer.secho(message, fg=typer.colors.BLUE)


def success(message: str) -> None:
    """成功メッセージ（緑）を出力する。"""
    typer.secho(message, fg=typer.colors.GREEN)


def warn(message: str) -> None:
    """警告メッセージ（黄）を出力する。"""
    typer.secho(message, fg=typer.colors.YELLOW)


def error(message: str) -> None:
    """エラーメッセージ（赤）を標準エラーに出力する。"""
    typer.secho(message, fg=typer.colors.RED, err=True)


def muted(message: str) -> None:
    """補足メッセージ（グレー）を出力する。"""
    typer.secho(message, fg=typer.colors.BRIGHT_BLACK)


# ---------------------------------------------------------------------------
# 入力
# ---------------------------------------------------------------------------

def confirm(message: str, default: bool = True) -> bool:
    """Yes/No の確認プロンプトを表示する。"""
    return typer.confirm(message, default=default)


def ask(
    message: str,
    default: Optional[str] = None,
    validate: Optional[Validator] = None,
    secret: bool = False,
) -> str:
    """テキスト入力プロンプトを表示する。

    validate がエラーメッセージを返す間は再入力を求める。

    Args:
        message: プロンプト文言
        default: 既定値（Enter のみで採用）
        validate: 入力値検証関数
        secret: True の場合は入力を表示しない

    Returns:
        入力された文字列（前後の空白を除去済み）
    """
    while True:
        value = typer.prompt(
            message,
            default=default,
            hide_input=secret,
            show_default=not secret,
        )
        value = str(value).strip()
        problem = validate(value) if validate else None
        if problem is None:
            return value
        error(problem)


def choose(message: str, choices: Sequence[str], default: int = 1) -> str:
    """番号付きの選択肢から1つを選ばせる。

    Args:
        message: プロンプト文言
        choices: 選択肢（表示文字列 = 戻り値）
        default: 既定の番号（1 始まり）

    Returns:
        選ばれた選択肢
    """
    if not choices:
        raise ValueError("選択肢が空です")

    typer.echo(message)
    for i, choice in enumerate(choices, start=1):
        typer.echo(f"  {i}) {choice}")

    def _validate(raw: str) -> Optional[str]:
        if raw.isdigit() and 1 <= int(raw) <= len(choices):
            return None
        return f"1 から {len(choices)} の番号を入力してください"

    picked = ask("番号", default=str(default), validate=_validate)
    return choices[int(picked) - 1]


def strip_dot_slash(value: str) -> str:
    """先頭の "./" を取り除いたプロジェクト相対パスを返す。"""
    return value[2:] if value.startswith("./") else value
