from __future__ import annotations

import pytest

from bulkota.app import main as cli


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("BULKOTA_HOST", "BULKOTA_SCHEME", "BULKOTA_SERVER_METHOD", "BULKOTA_BIND_ADDRESS"):
        monkeypatch.delenv(name, raising=False)


def test_install_flags_build_configs() -> None:
    args = cli._parse_args(
        [
            "install",
            "a.ipa",
            "b.app",
            "--host",
            "10.1.1.1",
            "--http",
            "--display-images",
            "--method",
            "webpage",
            "--delay",
            "-3",
        ]
    )

    server = cli._server_config(args)
    bulk = cli._bulk_config(args)

    assert args.apps == ["a.ipa", "b.app"]
    assert server.host == "10.1.1.1"
    assert server.scheme == "http"
    assert server.include_display_images
    assert bulk.server_method == "webpage"
    assert bulk.inter_trigger_delay_s == 0.0


def test_install_requires_apps() -> None:
    with pytest.raises(SystemExit):
        cli._parse_args(["install"])


def test_unreadable_app_exits_with_code_2(tmp_path, capsys) -> None:
    missing = tmp_path / "missing.ipa"

    code = cli.main(["install", str(missing)])

    assert code == 2
    assert "App not found" in capsys.readouterr().err
