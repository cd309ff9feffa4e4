from __future__ import annotations

import os
from unittest.mock import patch

from auditor.config import Settings


def test_env_overrides_defaults():
    env = {
        "OPENROUTER_API_KEY": "sk-or-env",
        "EXTRACTION_MODEL": "openai/gpt-4.1-mini",
        "RATE_LIMIT_RETRY_DELAY_MS": "1500",
    }
    with patch.dict(os.environ, env, clear=False):
        config = Settings(_env_file=None)

    assert config.openrouter_api_key == "sk-or-env"
    assert config.extraction_model == "openai/gpt-4.1-mini"
    assert config.rate_limit_retry_delay_s == 1.5


def test_missing_key_does_not_fail_at_load():
    with patch.dict(os.environ, {"OPENROUTER_API_KEY": ""}, clear=False):
        config = Settings(_env_file=None)

    assert config.openrouter_api_key == ""
    assert config.default_model == "google/gemini-2.5-flash"


def test_cors_origins_are_split():
    config = Settings(_env_file=None, cors_origins="http://a.test, http://b.test")

    assert config.cors_origin_list == ["http://a.test", "http://b.test"]


def test_negative_delay_is_clamped():
    assert Settings(_env_file=None, rate_limit_retry_delay_ms=-5).rate_limit_retry_delay_s == 0
