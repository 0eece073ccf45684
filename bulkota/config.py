"""Explicit configuration values for the install server and bulk runs.

Both dataclasses are constructed once by the caller (CLI, UI, tests) and
passed into constructors. ``from_env`` helpers read ``BULKOTA_*`` variables
so deployments can override defaults without code changes.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal, Mapping, Optional

ServerMethod = Literal["direct", "webpage"]
SERVER_METHODS = ("direct", "webpage")


def _env_text(env: Mapping[str, str], name: str) -> Optional[str]:
    value = env.get(name)
    if value is None:
        return None
    text = value.strip()
    return text or None


@dataclass
class ServerConfig:
    """Install server settings.

    Attributes:
        host: Address embedded in manifests and links; ``None`` resolves the
            primary LAN IPv4 at start.
        bind_address: Interface the listening socket binds to.
        scheme: URL scheme written into links. Device installers require
            ``https``; ``http`` is only useful for local testing.
        ssl_certfile: PEM certificate served by uvicorn when TLS is enabled.
        ssl_keyfile: Private key matching ``ssl_certfile``.
        max_bind_attempts: Random ports tried before giving up.
        startup_timeout_s: Seconds to wait for the serving thread to start.
        chunk_size: Bytes read per payload chunk.
        include_display_images: Reference the fixed PNG assets in manifests.
    """

    host: Optional[str] = None
    bind_address: str = "0.0.0.0"
    scheme: str = "https"
    ssl_certfile: Optional[str] = None
    ssl_keyfile: Optional[str] = None
    max_bind_attempts: int = 10
    startup_timeout_s: float = 5.0
    chunk_size: int = 64 * 1024
    include_display_images: bool = False

    @property
    def tls_enabled(self) -> bool:
        return bool(self.ssl_certfile and self.ssl_keyfile)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        source = os.environ if env is None else env
        config = cls()
        config.host = _env_text(source, "BULKOTA_HOST")
        config.bind_address = _env_text(source, "BULKOTA_BIND_ADDRESS") or config.bind_address
        scheme = _env_text(source, "BULKOTA_SCHEME")
        if scheme:
            config.scheme = scheme.lower()
        config.ssl_certfile = _env_text(source, "BULKOTA_SSL_CERTFILE")
        config.ssl_keyfile = _env_text(source, "BULKOTA_SSL_KEYFILE")
        return config


@dataclass
class BulkInstallConfig:
    """Timing and trigger settings for one bulk install run.

    Attributes:
        inter_trigger_delay_s: Pause after each install trigger so the device
            prompt can settle before the next one.
        poll_interval_s: Completion poll interval.
        server_method: ``direct`` opens the device-install URI; ``webpage``
            opens the server's install page, which redirects to it.
    """

    inter_trigger_delay_s: float = 2.5
    poll_interval_s: float = 1.0
    server_method: ServerMethod = "direct"

    def __post_init__(self) -> None:
        if self.server_method not in SERVER_METHODS:
            raise ValueError(f"Unknown server method: {self.server_method!r}")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "BulkInstallConfig":
        source = os.environ if env is None else env
        method = (_env_text(source, "BULKOTA_SERVER_METHOD") or "direct").lower()
        return cls(server_method=method)  # type: ignore[arg-type]


__all__ = ["BulkInstallConfig", "SERVER_METHODS", "ServerConfig", "ServerMethod"]
