# bulkota/app/main.py
"""Command-line entry point: install local ``.ipa``/``.app`` files over OTA."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import tempfile
from typing import List, Optional, Sequence

from ..adapters.install_server import InstallServer
from ..adapters.ipa_packager import IpaPackager, read_app_metadata
from ..adapters.uri_opener import BrowserUriOpener, PrintingUriOpener
from ..config import SERVER_METHODS, BulkInstallConfig, ServerConfig
from ..domain.entities import AppPackage, BulkRun
from ..domain.ports import UseCaseError
from ..usecases.bulk_install import BulkInstall
from ..utils.logging import apply_verbosity, configure_root, level_name

log = logging.getLogger(__name__)


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse CLI args for the bulk installer."""
    parser = argparse.ArgumentParser(prog="bulkota", description="Install apps on a device over the local network.")
    sub = parser.add_subparsers(dest="command", required=True)

    install = sub.add_parser("install", help="Serve and trigger installs for one or more apps.")
    install.add_argument("apps", nargs="+", help=".ipa files or .app bundle directories")
    install.add_argument("--host", default=None, help="address devices use to reach this machine")
    install.add_argument("--bind", default=None, help="interface to listen on")
    install.add_argument("--method", choices=SERVER_METHODS, default=None)
    install.add_argument("--certfile", default=None)
    install.add_argument("--keyfile", default=None)
    install.add_argument("--http", action="store_true", help="write http:// links (local testing only)")
    install.add_argument("--display-images", action="store_true")
    install.add_argument("--delay", type=float, default=2.5, help="seconds between install triggers")
    install.add_argument("--poll-interval", type=float, default=1.0)
    install.add_argument("--open", action="store_true", help="open links with the system handler")
    install.add_argument("--json", action="store_true", help="print the final run snapshot as JSON")
    install.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def _server_config(args: argparse.Namespace) -> ServerConfig:
    config = ServerConfig.from_env()
    if args.host:
        config.host = args.host
    if args.bind:
        config.bind_address = args.bind
    if args.certfile:
        config.ssl_certfile = args.certfile
    if args.keyfile:
        config.ssl_keyfile = args.keyfile
    if args.http:
        config.scheme = "http"
    config.include_display_images = bool(args.display_images)
    return config


def _bulk_config(args: argparse.Namespace) -> BulkInstallConfig:
    config = BulkInstallConfig.from_env()
    config.inter_trigger_delay_s = max(0.0, args.delay)
    config.poll_interval_s = max(0.05, args.poll_interval)
    if args.method:
        config.server_method = args.method
    return config


def _load_apps(paths: Sequence[str]) -> List[AppPackage]:
    return [read_app_metadata(path) for path in paths]


def _run_install(args: argparse.Namespace) -> int:
    try:
        apps = _load_apps(args.apps)
    except UseCaseError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return 2

    server_config = _server_config(args)
    opener = BrowserUriOpener() if args.open else PrintingUriOpener()
    with tempfile.TemporaryDirectory(prefix="bulkota-") as staging:
        installer = BulkInstall(
            server_factory=lambda: InstallServer.start(server_config),
            packager=IpaPackager(staging),
            opener=opener,
            config=_bulk_config(args),
        )
        run = BulkRun.for_apps(apps)
        with installer:
            try:
                asyncio.run(installer.execute(run))
            except KeyboardInterrupt:
                log.warning("Interrupted; stopping install server")

    if args.json:
        print(json.dumps(run.to_dict(), indent=2))
    else:
        for entry in run.log:
            print(entry)

    if run.finished and all(cell.value.succeeded for cell in run.statuses):
        return 0
    return 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entrypoint for ``bulkota``."""
    args = _parse_args(argv)
    configure_root()
    level = apply_verbosity(args.verbose)
    log.debug("Log level %s", level_name(level))
    if args.command == "install":
        return _run_install(args)
    return 2


if __name__ == "__main__":
    sys.exit(main())
