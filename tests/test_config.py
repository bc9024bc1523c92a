import dataclasses

import pytest

from wsveil.config import TunnelConfig
from wsveil.exceptions import ConfigError
from wsveil.models.enums import LogLevel


def test_defaults():
    config = TunnelConfig()
    assert config.LISTEN_PORT == 8080
    assert config.DEST_PORT == 22
    assert config.PACKETS_TO_SKIP == 0
    assert config.CONNECT_TIMEOUT == 15.0
    assert config.PROBE_TIMEOUT == 10.0
    assert config.KEEPALIVE_SECONDS == 60


def test_from_env_reads_deployment_variables():
    config = TunnelConfig.from_env(
        {
            "DHOST": "vps.example.net",
            "DPORT": "2222",
            "PORT": "80",
            "PACKSKIP": "3",
            "LOG_LEVEL": "DEBUG",
        }
    )
    assert config.DEST_HOST == "vps.example.net"
    assert config.DEST_PORT == 2222
    assert config.LISTEN_PORT == 80
    assert config.PACKETS_TO_SKIP == 3
    assert config.LOG_LEVEL == LogLevel.DEBUG
    assert config.get_backend_address() == "vps.example.net:2222"


def test_from_env_empty_values_fall_back_to_defaults():
    config = TunnelConfig.from_env({"DHOST": "", "PORT": "", "PACKSKIP": ""})
    assert config == TunnelConfig()


def test_from_env_rejects_non_integer():
    with pytest.raises(ConfigError, match="PACKSKIP"):
        TunnelConfig.from_env({"PACKSKIP": "two"})


def test_from_env_rejects_unknown_log_level():
    with pytest.raises(ConfigError):
        TunnelConfig.from_env({"LOG_LEVEL": "chatty"})


@pytest.mark.parametrize(
    "overrides",
    [
        {"DEST_HOST": ""},
        {"DEST_PORT": 0},
        {"DEST_PORT": 70000},
        {"LISTEN_PORT": -1},
        {"PACKETS_TO_SKIP": -1},
        {"BUFFER_SIZE": 0},
        {"CONNECT_TIMEOUT": 0},
    ],
)
def test_validate_rejects_bad_values(overrides):
    with pytest.raises(ConfigError):
        TunnelConfig(**overrides).validate()


def test_validate_returns_config():
    config = TunnelConfig(LISTEN_PORT=0)
    assert config.validate() is config


def test_config_is_immutable():
    config = TunnelConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        config.PACKETS_TO_SKIP = 5
