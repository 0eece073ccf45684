"""Install server tests against a real uvicorn listener on localhost."""

from __future__ import annotations

import plistlib
import socket
import time
from pathlib import Path

import pytest
import requests

from bulkota.adapters.install_server import PORT_RANGE, InstallServer
from bulkota.config import ServerConfig
from bulkota.domain.entities import AppPackage
from bulkota.domain.errors import BindFailure
from bulkota.domain.installer_status import InstallerStatus, Outcome, StatusCell

LOCAL = ServerConfig(host="127.0.0.1", bind_address="127.0.0.1", scheme="http")


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        probe.bind(("127.0.0.1", 0))
        return probe.getsockname()[1]


@pytest.fixture()
def occupied_port():
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", 0))
    blocker.listen(1)
    yield blocker.getsockname()[1]
    blocker.close()


def test_default_port_is_in_range() -> None:
    with InstallServer.start(LOCAL) as server:
        assert PORT_RANGE[0] <= server.port < PORT_RANGE[1]
        assert server.running
    assert not server.running


def test_bind_retries_after_collision(occupied_port: int) -> None:
    free = _free_port()
    choices = iter([occupied_port, free])

    with InstallServer.start(LOCAL, port_chooser=lambda: next(choices)) as server:
        assert server.port == free
        assert server.install_link("X").endswith(f"127.0.0.1:{free}/X.plist")


def test_bind_failure_after_exhausting_attempts(occupied_port: int) -> None:
    config = ServerConfig(host="127.0.0.1", bind_address="127.0.0.1", scheme="http", max_bind_attempts=3)

    with pytest.raises(BindFailure) as excinfo:
        InstallServer.start(config, port_chooser=lambda: occupied_port)

    assert excinfo.value.code == "BIND_FAILED"
    assert "after 3 attempts" in excinfo.value.message


def test_shutdown_is_idempotent_and_releases_port() -> None:
    server = InstallServer.start(LOCAL)
    port = server.port

    server.shutdown()
    server.shutdown()

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        probe.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        probe.bind(("127.0.0.1", port))


def test_manifest_and_payload_over_http(tmp_path: Path) -> None:
    payload = b"PK" + bytes(range(256)) * 300
    ipa = tmp_path / "demo.ipa"
    ipa.write_bytes(payload)
    status = StatusCell("Demo")
    app = AppPackage(uuid="lib-1", name="Demo", version="3.1", bundle_identifier="com.example.demo")

    with InstallServer.start(LOCAL) as server:
        assert server.register("abc", ipa, status, app)
        assert not server.register("abc", ipa, StatusCell("Other"), app)
        status.set(InstallerStatus.ready())

        manifest_response = requests.get(server.manifest_url("abc"), timeout=5)
        assert manifest_response.status_code == 200
        manifest = plistlib.loads(manifest_response.content)
        asset_url = manifest["items"][0]["assets"][0]["url"]
        assert asset_url == f"http://127.0.0.1:{server.port}/abc.ipa"

        payload_response = requests.get(asset_url, timeout=5)
        assert payload_response.status_code == 200
        assert payload_response.content == payload

        assert _wait_for(lambda: status.value.is_terminal)
        assert status.value == InstallerStatus.completed(Outcome.SUCCESS)

        missing = requests.get(f"http://127.0.0.1:{server.port}/nope.plist", timeout=5)
        assert missing.status_code == 404


def test_client_disconnect_mid_payload_marks_failure(tmp_path: Path) -> None:
    ipa = tmp_path / "large.ipa"
    with ipa.open("wb") as handle:
        handle.truncate(64 * 1024 * 1024)
    status = StatusCell("Large")
    app = AppPackage(uuid="lib-2", name="Large", version="1.0", bundle_identifier="com.example.large")

    with InstallServer.start(LOCAL) as server:
        server.register("big", ipa, status, app)
        status.set(InstallerStatus.ready())

        with socket.create_connection(("127.0.0.1", server.port), timeout=5) as client:
            client.sendall(b"GET /big.ipa HTTP/1.1\r\nHost: 127.0.0.1\r\n\r\n")
            assert client.recv(4096)

        assert _wait_for(lambda: status.value.is_terminal, timeout=10)
        assert status.value == InstallerStatus.completed(Outcome.FAILURE, "Transfer interrupted")
