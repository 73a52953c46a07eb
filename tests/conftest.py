from typing import List

import pytest

from form_scraper.config import AppConfig


@pytest.fixture()
def app_config(tmp_path) -> AppConfig:
    config = AppConfig(output_dir=str(tmp_path / "out"), log_dir=None)
    config.extend.poll_interval = 0.01
    config.extend.max_attempts = 5
    return config


@pytest.fixture()
def delays() -> List[float]:
    """Pass ``delays.append`` as the sleep function to record waits instead of sleeping."""
    return []
