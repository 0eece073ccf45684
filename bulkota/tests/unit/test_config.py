from __future__ import annotations

import pytest

from bulkota.config import BulkInstallConfig, ServerConfig


def test_server_defaults() -> None:
    config = ServerConfig()

    assert config.host is None
    assert config.bind_address == "0.0.0.0"
    assert config.scheme == "https"
    assert config.max_bind_attempts == 10
    assert not config.tls_enabled


def test_server_from_env() -> None:
    config = ServerConfig.from_env(
        {
            "BULKOTA_HOST": " 192.168.1.9 ",
            "BULKOTA_SCHEME": "HTTP",
            "BULKOTA_SSL_CERTFILE": "cert.pem",
            "BULKOTA_SSL_KEYFILE": "key.pem",
            "BULKOTA_BIND_ADDRESS": "",
        }
    )

    assert config.host == "192.168.1.9"
    assert config.scheme == "http"
    assert config.bind_address == "0.0.0.0"
    assert config.tls_enabled


def test_bulk_from_env_reads_method() -> None:
    assert BulkInstallConfig.from_env({"BULKOTA_SERVER_METHOD": "Webpage"}).server_method == "webpage"
    assert BulkInstallConfig.from_env({}).server_method == "direct"


def test_bulk_rejects_unknown_method() -> None:
    with pytest.raises(ValueError):
        BulkInstallConfig(server_method="carrier-pigeon")  # type: ignore[arg-type]
