from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .entities import AppPackage, PackageId
from .installer_status import InstallerStatus, StatusCell


@dataclass(frozen=True)
class RegisteredPackage:
    """Installable package served by one install server instance."""

    package_id: PackageId
    package_location: Path
    app: AppPackage
    status: StatusCell


class PackageRegistry:
    """
    Thread-safe mapping from install id to ``RegisteredPackage``.

    Entries are inserted by the orchestrator and looked up by server request
    handlers. An id is never overwritten or removed; the registry lives and
    dies with its server.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: Dict[PackageId, RegisteredPackage] = {}

    def register(self, package: RegisteredPackage) -> bool:
        """Insert ``package``; return False if its id is already taken."""
        with self._lock:
            if package.package_id in self._entries:
                return False
            self._entries[package.package_id] = package
            return True

    def get(self, package_id: PackageId) -> Optional[RegisteredPackage]:
        with self._lock:
            return self._entries.get(package_id)

    def ids(self) -> List[PackageId]:
        with self._lock:
            return list(self._entries.keys())

    def snapshot(self) -> Dict[PackageId, InstallerStatus]:
        with self._lock:
            entries = list(self._entries.values())
        return {entry.package_id: entry.status.value for entry in entries}

    def __contains__(self, package_id: object) -> bool:
        with self._lock:
            return package_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["PackageRegistry", "RegisteredPackage"]
