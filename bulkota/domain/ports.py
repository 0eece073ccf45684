from __future__ import annotations
from pathlib import Path
from typing import Any, Optional, Protocol

from .entities import AppPackage, PackageId, SignResult
from .installer_status import StatusCell


# ---- Error model ----
class UseCaseError(Exception):
    """Base class for use case level errors (user-presentable)."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


# ---- Ports (Hexagonal boundaries) ----
class SignerPort(Protocol):
    """External code-signing engine.
    Produces a new library package id for the signed copy, or an error.
    """

    async def sign(
        self,
        app: AppPackage,
        *,
        options: Any,
        icon: Optional[bytes],
        certificate: Any,
    ) -> SignResult: ...


class LibraryPort(Protocol):
    """Lookup of stored apps (for example the signed copy produced by a signer)."""

    def find(self, package_id: PackageId) -> Optional[AppPackage]: ...


class PackagerPort(Protocol):
    """Turns an app into a deployable package file."""

    async def package(self, app: AppPackage) -> Path: ...


class UriOpenerPort(Protocol):
    """OS-level "open URI" action that triggers the device installer."""

    def open(self, uri: str) -> bool: ...


class InstallServerPort(Protocol):
    """Subset of the install server used by the orchestrator."""

    @property
    def port(self) -> int: ...
    def register(
        self,
        package_id: PackageId,
        package_location: Path,
        status: StatusCell,
        app: AppPackage,
    ) -> bool: ...
    def install_link(self, package_id: PackageId) -> str: ...
    def install_page_url(self, package_id: PackageId) -> str: ...
    def shutdown(self) -> None: ...
