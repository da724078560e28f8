"""Pytest configuration and fixtures for SaleWatch tests."""

from __future__ import annotations

import json
import tempfile
from pathlib import Path
from typing import Any, Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from salewatch.config import Settings
from salewatch.database.models import Base
from salewatch.database.repository import WatchRepository
from salewatch.listings.models import Listing


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_db_path(temp_dir: Path) -> Path:
    """Get a temporary database path."""
    return temp_dir / "test.db"


@pytest.fixture
def test_engine(test_db_path: Path):
    """Create a test database engine."""
    engine = create_engine(f"sqlite:///{test_db_path}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def test_session(test_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(bind=test_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def repository(test_session: Session) -> WatchRepository:
    """Create a repository on the test database."""
    return WatchRepository(test_session)


@pytest.fixture
def test_settings(temp_dir: Path) -> Settings:
    """Create test settings with temporary paths."""
    return Settings(
        database={"path": str(temp_dir / "test.db")},
        reddit={
            "token_file": str(temp_dir / "token.json"),
            "username": "watcher",
            "password": "hunter2",
            "client_id": "client",
            "client_secret": "secret",
            "wait_time_secs": 5,
        },
        discord={
            "enabled": True,
            "webhook_url": "https://discord.com/api/webhooks/123/abc",
            "sending_interval_secs": 1,
        },
        pipeline={"channel_capacity": 2},
        logging={"level": "DEBUG"},
    )


def make_listing(**overrides: Any) -> Listing:
    """Build a listing with sensible defaults."""
    data = {
        "id": "abc123",
        "created_utc": 1700000000.0,
        "ups": 1,
        "downs": 0,
        "link_flair_text": None,
        "title": "[GPU] ASUS TUF RTX 4070 Ti 12GB $799.99",
        "url": "https://www.newegg.com/p/N82E16814126603",
    }
    data.update(overrides)
    return Listing.model_validate(data)


@pytest.fixture
def sample_rules() -> list[dict[str, Any]]:
    """Rule definitions as they appear in a rule file."""
    return [
        {
            "name": "Cheap 4070",
            "product_type_pattern": "GPU",
            "description_pattern": '"4070" && !"laptop"',
            "price_max": 600,
        },
        {
            "name": "Any GPU",
            "product_type_pattern": "GPU",
        },
        {
            "name": "Big SSD",
            "product_type_pattern": "SSD || NVME",
            "description_pattern": "2TB || 4TB",
            "price_min": 50,
            "price_max": 200,
            "link_flair_pattern": '!"expired"',
        },
    ]


@pytest.fixture
def sample_rules_file(temp_dir: Path, sample_rules: list[dict[str, Any]]) -> Path:
    """Write the sample rules to a JSON file."""
    path = temp_dir / "rules.json"
    path.write_text(json.dumps(sample_rules))
    return path


@pytest.fixture
def sample_config_yaml(temp_dir: Path, sample_rules_file: Path) -> Path:
    """Create a sample config.yaml file for testing."""
    config_content = """
reddit:
  username: "${{SALEWATCH_TEST_USER}}"
  password: secret
  subreddit: buildapcsales
  wait_time_secs: 10

discord:
  enabled: false
  sending_interval_secs: 30

database:
  path: "{db_path}"

pipeline:
  channel_capacity: 8

logging:
  level: DEBUG

rules_file: {rules_file}

rules:
  - name: Inline CPU
    product_type_pattern: CPU
"""
    config_path = temp_dir / "config.yaml"
    config_path.write_text(
        config_content.format(
            db_path=temp_dir / "test.db",
            rules_file=sample_rules_file.name,
        )
    )
    return config_path


@pytest.fixture
def listing_factory():
    """Factory building listings from keyword overrides."""
    return make_listing
