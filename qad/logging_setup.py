"""
ロギング設定

各モジュールは logging.getLogger(__name__) でロガーを取得する。
CLI 起動時に configure_logging() を一度だけ呼び出し、qad ロガーの
ハンドラとレベルを設定する。ユーザー向けの出力は typer.echo で行い、
ロガーは診断情報専用とする。
"""

from __future__ import annotations

import logging

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_FORMAT = "%(levelname)s %(name)s: %(message)s"


def configure_logging(level_name: str = "warning", verbose: bool = False) -> None:
    """qad パッケージのロガーを設定する。

    Args:
        level_name: ログレベル名（QAD_LOG_LEVEL 由来）
        verbose: True の場合はレベル名に関わらず DEBUG にする
    """
    level = logging.DEBUG if verbose else _LEVELS.get(level_name, logging.WARNING)

    root = logging.getLogger("qad")
    root.setLevel(level)

    # 二重登録を避ける（テストで複数回 invoke される場合）
    if not any(getattr(h, "_qad_handler", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._qad_handler = True  # type: ignore[attr-defined]
        root.addHandler(handler)
