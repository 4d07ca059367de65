"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

import pytest

from bulk_scraper.config import ConfigLocator, ConfigRepository, GlobalConfig, OutputConfig


@pytest.fixture(scope="session", autouse=True)
def isolated_home(tmp_path_factory: pytest.TempPathFactory) -> Iterable[Path]:
    """Keep logs and config files of the whole session out of the project tree."""

    home = tmp_path_factory.mktemp("bulk_scraper_home")
    with pytest.MonkeyPatch.context() as patch:
        patch.setenv("BULK_SCRAPER_HOME", str(home))
        yield home


@pytest.fixture
def temp_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("BULK_SCRAPER_HOME", str(tmp_path))
    return tmp_path


@pytest.fixture
def temp_config_repository(temp_home: Path) -> ConfigRepository:
    return ConfigRepository(ConfigLocator(project_root=temp_home))


@pytest.fixture
def sample_global_config(tmp_path: Path) -> GlobalConfig:
    return GlobalConfig(
        output=OutputConfig(format="json", outputs_dir=tmp_path / "outputs"),
        enable_progress_bar=False,
    )
