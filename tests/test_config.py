from datetime import timedelta

import pytest

from kvstats.config import ConfigurationError, DetectionLimits, StatsConfig, Thresholds, load_config

ENV_VARS = (
    "KVSTATS_ENABLED",
    "KVSTATS_SAMPLE_RATE",
    "KVSTATS_SLOW_QUERY_MS",
    "KVSTATS_HIGH_READ_UNITS",
    "KVSTATS_HIGH_WRITE_UNITS",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    # setenv before delenv so teardown also removes values loaded from .env files
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


def test_defaults():
    config = StatsConfig()

    assert config.enabled is True
    assert config.sample_rate == 1.0
    assert config.thresholds == Thresholds(slow_query_ms=1000, high_read_units=100, high_write_units=100)
    assert config.limits.hot_partition_share == 0.10
    assert config.limits.unused_index_age == timedelta(days=7)
    assert config.limits.large_item_bytes == 100 * 1024
    assert config.limits.very_large_item_bytes == 300 * 1024


@pytest.mark.parametrize("rate", [-0.1, 1.01, float("nan"), "0.5", True])
def test_invalid_sample_rate_is_rejected(rate):
    with pytest.raises(ConfigurationError):
        StatsConfig(sample_rate=rate)


@pytest.mark.parametrize("rate", [0, 0.0, 0.25, 1])
def test_boundary_sample_rates_are_accepted(rate):
    assert StatsConfig(sample_rate=rate).sample_rate == rate


def test_limits_are_overridable():
    limits = DetectionLimits(hot_partition_share=0.25, batch_window=timedelta(milliseconds=500))

    assert limits.hot_partition_share == 0.25
    assert limits.batch_window == timedelta(milliseconds=500)
    assert limits.read_batch_size == 100


def test_load_config_from_environment(clean_env, tmp_path):
    clean_env.setenv("KVSTATS_SAMPLE_RATE", "0.25")
    clean_env.setenv("KVSTATS_ENABLED", "false")
    clean_env.setenv("KVSTATS_HIGH_READ_UNITS", "50")

    config = load_config(dotenv_path=str(tmp_path / "missing.env"))

    assert config.sample_rate == 0.25
    assert config.enabled is False
    assert config.thresholds.high_read_units == 50
    assert config.thresholds.slow_query_ms == 1000


def test_load_config_from_dotenv_file(clean_env, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("KVSTATS_SLOW_QUERY_MS=250\nKVSTATS_HIGH_WRITE_UNITS=40\n")

    config = load_config(dotenv_path=str(env_file))

    assert config.thresholds.slow_query_ms == 250
    assert config.thresholds.high_write_units == 40
    assert config.sample_rate == 1.0


def test_load_config_rejects_bad_values(clean_env, tmp_path):
    clean_env.setenv("KVSTATS_SAMPLE_RATE", "lots")
    with pytest.raises(ConfigurationError):
        load_config(dotenv_path=str(tmp_path / "missing.env"))

    clean_env.setenv("KVSTATS_SAMPLE_RATE", "2")
    with pytest.raises(ConfigurationError):
        load_config(dotenv_path=str(tmp_path / "missing.env"))

    clean_env.setenv("KVSTATS_SAMPLE_RATE", "1")
    clean_env.setenv("KVSTATS_ENABLED", "maybe")
    with pytest.raises(ConfigurationError):
        load_config(dotenv_path=str(tmp_path / "missing.env"))
