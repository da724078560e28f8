"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from salewatch.config import (
    LoggingConfig,
    PipelineConfig,
    RedditConfig,
    Settings,
    expand_env_vars,
    load_settings,
)
from salewatch.matcher.rules import RuleError


def test_defaults():
    settings = Settings()

    assert settings.reddit.subreddit == "buildapcsales"
    assert settings.reddit.wait_time_secs == 5
    assert settings.discord.enabled is False
    assert settings.discord.sending_interval_secs == 10
    assert settings.twilio.enabled is False
    assert settings.pipeline.channel_capacity == 32
    assert settings.rules_file is None
    assert len(settings.load_rule_set()) == 0


def test_load_from_yaml(sample_config_yaml: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SALEWATCH_TEST_USER", "deal_hunter")

    settings = load_settings(sample_config_yaml)

    assert settings.reddit.username == "deal_hunter"
    assert settings.reddit.wait_time_secs == 10
    assert settings.discord.sending_interval_secs == 30
    assert settings.pipeline.channel_capacity == 8
    assert settings.logging.level == "DEBUG"
    assert settings.database.path.is_absolute()


def test_rules_file_resolved_next_to_config(sample_config_yaml: Path):
    settings = load_settings(sample_config_yaml)

    assert settings.rules_file == sample_config_yaml.parent / "rules.json"
    names = [rule.name for rule in settings.load_rule_set()]
    assert names == ["Cheap 4070", "Any GPU", "Big SSD", "Inline CPU"]


def test_missing_config_file_uses_defaults(temp_dir: Path):
    settings = load_settings(temp_dir / "missing.yaml")
    assert settings.reddit.subreddit == "buildapcsales"


def test_env_overrides(monkeypatch: pytest.MonkeyPatch, temp_dir: Path):
    monkeypatch.setenv("SALEWATCH_REDDIT__SUBREDDIT", "hardwareswap")
    monkeypatch.setenv("SALEWATCH_PIPELINE__CHANNEL_CAPACITY", "4")

    settings = load_settings(temp_dir / "missing.yaml")

    assert settings.reddit.subreddit == "hardwareswap"
    assert settings.pipeline.channel_capacity == 4


def test_invalid_inline_rule():
    settings = Settings(rules=[{"price_min": "cheap"}])
    with pytest.raises(RuleError, match="rule #1"):
        settings.load_rule_set()


def test_expand_env_vars(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("HOOK", "https://discord.com/api/webhooks/1/x")
    monkeypatch.delenv("UNSET_VAR", raising=False)

    expanded = expand_env_vars(
        {"discord": {"webhook_url": "${HOOK}"}, "list": ["${UNSET_VAR}", 3]}
    )

    assert expanded == {
        "discord": {"webhook_url": "https://discord.com/api/webhooks/1/x"},
        "list": ["", 3],
    }


@pytest.mark.parametrize(
    "model,kwargs",
    [
        (RedditConfig, {"wait_time_secs": 0}),
        (RedditConfig, {"page_size": 101}),
        (PipelineConfig, {"channel_capacity": 0}),
        (LoggingConfig, {"level": "LOUD"}),
    ],
)
def test_validation(model, kwargs):
    with pytest.raises(ValidationError):
        model(**kwargs)


def test_log_level_is_normalised():
    assert LoggingConfig(level="debug").level == "DEBUG"
