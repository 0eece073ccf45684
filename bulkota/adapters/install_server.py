"""Ephemeral OTA install server bound to a random local port.

The server owns one ``PackageRegistry`` and serves the FastAPI app from
``bulkota.adapters.install_routes`` with uvicorn on a daemon thread. The
listening socket is bound here, before uvicorn starts, so a port collision is
detected and retried with a new random port instead of surfacing later.

Call context:
    - Created lazily by ``bulkota.usecases.bulk_install.BulkInstall``.
    - Request handling runs on the uvicorn thread; ``register`` and the link
      helpers are called from the orchestrator.
"""

from __future__ import annotations

import logging
import random
import socket
import threading
import time
from pathlib import Path
from typing import Callable, Optional

import uvicorn

from bulkota.adapters.install_routes import create_app
from bulkota.config import ServerConfig
from bulkota.domain.entities import AppPackage, PackageId
from bulkota.domain.errors import BindFailure
from bulkota.domain.installer_status import StatusCell
from bulkota.domain.manifest import InstallLinks
from bulkota.domain.package_registry import PackageRegistry, RegisteredPackage

PORT_RANGE = (4000, 8000)  # half-open

PortChooser = Callable[[], int]


def choose_port() -> int:
    """Pick a pseudo-random port from ``PORT_RANGE``."""
    return random.randrange(*PORT_RANGE)


def resolve_local_ipv4() -> str:
    """Return the primary local IPv4 used for outbound LAN traffic."""
    probe = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        probe.connect(("8.8.8.8", 80))
        return probe.getsockname()[0]
    except OSError:
        return "127.0.0.1"
    finally:
        probe.close()


class InstallServer:
    """Serve manifests and packages for every registered install id."""

    def __init__(
        self,
        config: Optional[ServerConfig] = None,
        *,
        registry: Optional[PackageRegistry] = None,
        port_chooser: PortChooser = choose_port,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config or ServerConfig()
        self.registry = registry or PackageRegistry()
        self.links: Optional[InstallLinks] = None
        self.log = logger or logging.getLogger(__name__)
        self._port_chooser = port_chooser
        self._socket: Optional[socket.socket] = None
        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._needs_shutdown = False

    @classmethod
    def start(
        cls,
        config: Optional[ServerConfig] = None,
        **kwargs,
    ) -> "InstallServer":
        """Create a server, bind it, and wait until it accepts connections."""
        server = cls(config, **kwargs)
        server.serve()
        return server

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    def serve(self) -> None:
        """Bind a port and start the uvicorn thread.

        Raises:
            BindFailure: No free port within ``max_bind_attempts`` or the
                server did not come up within ``startup_timeout_s``.
        """
        if self._needs_shutdown:
            raise RuntimeError("Install server already running.")

        sock = self._bind()
        port = sock.getsockname()[1]
        host = self.config.host or resolve_local_ipv4()
        self.links = InstallLinks(host=host, port=port, scheme=self.config.scheme)

        app = create_app(
            self.registry,
            self.links,
            chunk_size=self.config.chunk_size,
            include_display_images=self.config.include_display_images,
        )
        uv_config = uvicorn.Config(
            app,
            log_level="warning",
            lifespan="off",
            loop="asyncio",
            ssl_certfile=self.config.ssl_certfile if self.config.tls_enabled else None,
            ssl_keyfile=self.config.ssl_keyfile if self.config.tls_enabled else None,
        )
        server = uvicorn.Server(uv_config)
        thread = threading.Thread(
            target=server.run,
            kwargs={"sockets": [sock]},
            name=f"install-server-{port}",
            daemon=True,
        )
        self._socket = sock
        self._server = server
        self._thread = thread
        self._needs_shutdown = True
        thread.start()

        deadline = time.monotonic() + self.config.startup_timeout_s
        while not server.started:
            if not thread.is_alive() or time.monotonic() >= deadline:
                self.shutdown()
                raise BindFailure(f"Install server on port {port} did not start.")
            time.sleep(0.02)
        self.log.info("Install server listening on %s", self.links.base_url)

    def _bind(self) -> socket.socket:
        attempts = max(1, int(self.config.max_bind_attempts))
        last_error: Optional[OSError] = None
        for attempt in range(1, attempts + 1):
            port = self._port_chooser()
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
                sock.bind((self.config.bind_address, port))
            except OSError as exc:
                sock.close()
                last_error = exc
                self.log.info(
                    "Port %d unavailable (attempt %d/%d): %s", port, attempt, attempts, exc
                )
                continue
            return sock
        raise BindFailure(
            f"No free port in {PORT_RANGE[0]}-{PORT_RANGE[1] - 1} after {attempts} attempts"
            + (f": {last_error}" if last_error else "")
        )

    def shutdown(self) -> None:
        """Stop serving and release the port. Safe to call repeatedly."""
        with self._lock:
            if not self._needs_shutdown:
                return
            self._needs_shutdown = False
            server, thread, sock = self._server, self._thread, self._socket
            self._server = self._thread = self._socket = None

        if server is not None:
            server.should_exit = True
        if thread is not None and thread.is_alive():
            thread.join(timeout=5)
        if sock is not None:
            sock.close()
        self.log.info("Install server stopped")

    @property
    def running(self) -> bool:
        return self._needs_shutdown

    def __enter__(self) -> "InstallServer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    # ------------------------------------------------------------------ #
    # Registration and links
    # ------------------------------------------------------------------ #
    def _require_links(self) -> InstallLinks:
        if self.links is None:
            raise RuntimeError("Install server is not bound yet.")
        return self.links

    @property
    def port(self) -> int:
        return self._require_links().port

    @property
    def host(self) -> str:
        return self._require_links().host

    def register(
        self,
        package_id: PackageId,
        package_location: Path,
        status: StatusCell,
        app: AppPackage,
    ) -> bool:
        """Make ``package_location`` installable under ``package_id``.

        Returns False (and changes nothing) if the id is already registered.
        """
        added = self.registry.register(
            RegisteredPackage(
                package_id=package_id,
                package_location=Path(package_location),
                app=app,
                status=status,
            )
        )
        if not added:
            self.log.debug("Install id %s already registered; ignoring", package_id)
        return added

    def install_link(self, package_id: PackageId) -> str:
        return self._require_links().install_link(package_id)

    def install_page_url(self, package_id: PackageId) -> str:
        return self._require_links().install_page_url(package_id)

    def manifest_url(self, package_id: PackageId) -> str:
        return self._require_links().manifest_url(package_id)


__all__ = ["InstallServer", "PORT_RANGE", "choose_port", "resolve_local_ipv4"]
