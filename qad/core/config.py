"""
プロジェクト設定ストア — qa-director.yaml の読み書きとロールレジストリ

設定ドキュメントは常に丸ごと読み込み、丸ごと書き戻す（部分更新なし）。
ruamel.yaml で YAML を扱い、Pydantic v2 モデルでスキーマ検証する。

ロールレジストリの操作:
  - add_role: 同名ロールを除去してから末尾に追加（upsert、後勝ち）
  - remove_role: 同名ロールを除去（存在しなくてもエラーにしない）

どちらも設定ドキュメントが無い場合は ConfigNotFoundError を送出する。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from ..errors import ConfigInvalidError, ConfigNotFoundError

logger = logging.getLogger(__name__)

# 設定ドキュメントのファイル名（プロジェクトルート直下）
CONFIG_FILE = "qa-director.yaml"

# ロール名として許可するパターン
ROLE_NAME_PATTERN = r"^[a-zA-Z][a-zA-Z0-9_-]*$"


# ---------------------------------------------------------------------------
# スキーマ定義
# ---------------------------------------------------------------------------

class Role(BaseModel):
    """認証ロール。

    名前がキーであり、設定ドキュメント内で一意。
    更新は常に丸ごと置き換えで行う。
    """

    name: str = Field(..., description="ロール名（一意キー）")
    storagePath: str = Field(..., description="storageState JSON のプロジェクト相対パス")
    testMatch: Optional[list[str]] = Field(default=None, description="ロール専用テストの glob")
    envVars: Optional[list[str]] = Field(default=None, description="ロールに紐づく環境変数名")
    folder: Optional[str] = Field(default=None, description="ロール専用テストフォルダ")


class GithubActionsSettings(BaseModel):
    """GitHub Actions ワークフロー連携の設定。"""

    enabled: bool = False
    path: str = ".github/workflows/qa-director.yml"


class SetupSettings(BaseModel):
    """認証セットアップスクリプトの設定。"""

    path: str = "tests/auth.setup.ts"
    enabled: bool = True
    projectName: Optional[str] = None


class ProjectConfig(BaseModel):
    """プロジェクト設定ドキュメントの集約ルート。

    パス系フィールドはすべてプロジェクト相対。roles の name は一意。
    """

    baseURL: str
    testDir: str
    roles: list[Role] = Field(default_factory=list)
    authDir: str
    githubActions: GithubActionsSettings = Field(default_factory=GithubActionsSettings)
    setup: SetupSettings = Field(default_factory=SetupSettings)
    envDir: str
    playwrightConfig: str

    @field_validator("roles")
    @classmethod
    def _unique_role_names(cls, roles: list[Role]) -> list[Role]:
        seen: set[str] = set()
        for role in roles:
            if role.name in seen:
                raise ValueError(f"ロール名が重複しています: {role.name}")
            seen.add(role.name)
        return roles

    def role_names(self) -> list[str]:
        """登録済みロール名の一覧を返す。"""
        return [r.name for r in self.roles]

    def find_role(self, name: str) -> Optional[Role]:
        """名前でロールを検索する。見つからなければ None。"""
        for role in self.roles:
            if role.name == name:
                return role
        return None


def default_config() -> ProjectConfig:
    """init の既定値を持つ ProjectConfig を生成する。"""
    return ProjectConfig(
        baseURL="http://localhost:3000",
        testDir="tests",
        roles=[],
        authDir="playwright/.auth",
        githubActions=GithubActionsSettings(),
        setup=SetupSettings(path="tests/auth.setup.ts", enabled=True, projectName="setup"),
        envDir=".env.qa",
        playwrightConfig="playwright.config.ts",
    )


# ---------------------------------------------------------------------------
# ConfigStore 本体
# ---------------------------------------------------------------------------

class ConfigStore:
    """qa-director.yaml の単一オーナーハンドル。

    1 回のコマンド実行中はこのインスタンスを明示的に受け渡す。
    ロックは行わない（最後に保存したものが勝つ）。
    """

    def __init__(self, project_dir: Path | str = ".") -> None:
        """ConfigStore を初期化する。

        Args:
            project_dir: プロジェクトルートディレクトリ
        """
        self.project_dir = Path(project_dir)
        self._yaml = YAML()
        self._yaml.default_flow_style = False
        self._yaml.indent(mapping=2, sequence=4, offset=2)

    @property
    def path(self) -> Path:
        """設定ドキュメントの絶対パス。"""
        return self.project_dir / CONFIG_FILE

    def exists(self) -> bool:
        """設定ドキュメントが存在するか。"""
        return self.path.exists()

    # ----- load / save -----

    def load(self) -> ProjectConfig:
        """設定ドキュメントを読み込み、検証済みの ProjectConfig を返す。

        Raises:
            ConfigNotFoundError: ファイルが存在しない場合
            ConfigInvalidError: YAML 構文エラーまたはスキーマ検証エラーの場合
        """
        if not self.exists():
            raise ConfigNotFoundError(CONFIG_FILE)

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = self._yaml.load(f)
        except YAMLError as e:
            line_info = ""
            if getattr(e, "problem_mark", None) is not None:
                mark = e.problem_mark
                line_info = f" (行 {mark.line + 1}, 列 {mark.column + 1})"
            raise ConfigInvalidError(f"{CONFIG_FILE} の YAML 構文エラー{line_info}: {e}") from e

        if data is None:
            raise ConfigInvalidError(f"{CONFIG_FILE} が空です")

        try:
            config = ProjectConfig(**_to_plain(data))
        except (ValidationError, TypeError) as e:
            raise ConfigInvalidError(f"{CONFIG_FILE} のスキーマ検証エラー: {e}") from e

        logger.debug("設定を読み込みました: roles=%s", config.role_names())
        return config

    def save(self, config: ProjectConfig) -> None:
        """ProjectConfig を設定ドキュメントに丸ごと書き出す。

        未設定（None）の任意項目はキーごと省略する。
        """
        data = config.model_dump(exclude_none=True)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("# qa-director プロジェクト設定\n")
            self._yaml.dump(data, f)
        logger.info("設定を保存しました: %s", self.path)

    def update(self, **changes: Any) -> ProjectConfig:
        """トップレベル項目を上書きして保存し、更新後の設定を返す。"""
        current = self.load()
        updated = current.model_copy(update=changes)
        self.save(updated)
        return updated

    # ----- ロールレジストリ -----

    def add_role(self, role: Role) -> ProjectConfig:
        """ロールを追加する（同名ロールは置き換え）。

        Raises:
            ConfigNotFoundError: 設定ドキュメントが無い場合
        """
        config = self.load()
        config.roles = [r for r in config.roles if r.name != role.name]
        config.roles.append(role)
        self.save(config)
        logger.info("ロールを登録しました: %s", role.name)
        return config

    def remove_role(self, role_name: str) -> ProjectConfig:
        """ロールを削除する。存在しないロール名は何もしない。

        Raises:
            ConfigNotFoundError: 設定ドキュメントが無い場合
        """
        config = self.load()
        config.roles = [r for r in config.roles if r.name != role_name]
        self.save(config)
        logger.info("ロールを削除しました: %s", role_name)
        return config

    def get_roles(self) -> list[Role]:
        """登録済みロールの一覧を返す。設定が無ければ空リスト。"""
        if not self.exists():
            return []
        return self.load().roles

    def get_role(self, role_name: str) -> Optional[Role]:
        """名前でロールを取得する。設定が無い、または未登録なら None。"""
        if not self.exists():
            return None
        return self.load().find_role(role_name)


def _to_plain(data: object) -> Any:
    """ruamel.yaml の CommentedMap/CommentedSeq を通常の dict/list に再帰変換する。"""
    if isinstance(data, dict):
        return {str(key): _to_plain(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_to_plain(item) for item in data]
    return data
