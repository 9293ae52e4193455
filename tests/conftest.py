"""
テスト共通フィクスチャ

実際のブラウザ起動・codegen・Claude API 呼び出しは行わない。
データ生成器と SDK の代役は tests/helpers.py にある。
"""

from __future__ import annotations

from pathlib import Path

import pytest

from qad.core.config import ConfigStore, ProjectConfig, Role, default_config

from tests.helpers import RecordingStrategy


# ---------------------------------------------------------------------------
# pytest フィクスチャ
# ---------------------------------------------------------------------------

@pytest.fixture
def project_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """カレントディレクトリを一時ディレクトリに切り替えたプロジェクトルート。"""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    return tmp_path


@pytest.fixture
def store(project_dir: Path) -> ConfigStore:
    """既定値で初期化済みの ConfigStore。"""
    config_store = ConfigStore(project_dir)
    config_store.save(default_config())
    return config_store


@pytest.fixture
def sample_config() -> ProjectConfig:
    return default_config()


@pytest.fixture
def user_role() -> Role:
    return Role(
        name="user",
        storagePath="playwright/.auth/storageState.user.json",
        envVars=["QA_USER_EMAIL", "QA_USER_PASSWORD"],
    )


@pytest.fixture
def recording_strategy() -> RecordingStrategy:
    return RecordingStrategy()

