"""Tests for configuration and logging setup."""

import json
import logging
import os
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from tubefeed.config import Settings, get_settings
from tubefeed.logging import JsonFormatter


def test_settings_defaults():
    """Test that settings use sensible defaults."""
    with patch.dict(os.environ, {}, clear=True):
        settings = Settings(_env_file=None)

        assert settings.data_dir == Path("./data")
        assert settings.feed_concurrency == 4
        assert settings.feed_response_cache_ttl_seconds == 1.0
        assert settings.feed_fetch_timeout_seconds == 15.0
        assert settings.handle_fetch_timeout_seconds == 10.0
        assert settings.avatar_fetch_timeout_seconds == 1.5
        assert settings.channel_feed_ttl_seconds == 300
        assert settings.feed_cache_backend == "memory"
        assert settings.redis_url == "redis://localhost:6379/0"
        assert settings.env == "dev"


def test_settings_env_override():
    """Test that environment variables override defaults."""
    with patch.dict(
        os.environ,
        {
            "TF_DATA_DIR": "/var/lib/tubefeed",
            "TF_FEED_CONCURRENCY": "8",
            "TF_FEED_CACHE_BACKEND": "redis",
            "TF_ENV": "prod",
        },
        clear=True,
    ):
        settings = Settings(_env_file=None)

        assert settings.data_dir == Path("/var/lib/tubefeed")
        assert settings.subscription_lists_file == Path("/var/lib/tubefeed/subscription-lists.json")
        assert settings.feed_concurrency == 8
        assert settings.feed_cache_backend == "redis"
        assert settings.env == "prod"


@pytest.mark.parametrize(
    "name, value",
    [
        ("TF_FEED_CONCURRENCY", "0"),
        ("TF_FEED_CONCURRENCY", "17"),
        ("TF_FEED_CACHE_BACKEND", "memcached"),
        ("TF_ENV", "staging"),
    ],
)
def test_settings_validation_error(name, value):
    """Test that out-of-range values are rejected."""
    with patch.dict(os.environ, {name: value}, clear=True):
        with pytest.raises(ValidationError):
            Settings(_env_file=None)


def test_get_settings_singleton():
    """Test that get_settings returns the same instance."""
    with patch.dict(os.environ, {}, clear=True):
        # Clear the singleton
        import tubefeed.config

        tubefeed.config._settings = None

        settings1 = get_settings()
        settings2 = get_settings()

        assert settings1 is settings2
        tubefeed.config._settings = None


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord(
        name="tubefeed.feed.aggregator",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg="Failed to fetch %s",
        args=("UC123",),
        exc_info=None,
    )
    record.channel_id = "UC123"
    record.status = 404

    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "WARNING"
    assert payload["msg"] == "Failed to fetch UC123"
    assert payload["logger"] == "tubefeed.feed.aggregator"
    assert payload["channel_id"] == "UC123"
    assert payload["status"] == 404
    assert "session_id" not in payload
    assert "time" in payload
