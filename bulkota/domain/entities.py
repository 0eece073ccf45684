"""Domain entities shared by the install server and the bulk orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .installer_status import StatusCell

PackageId = str


@dataclass(frozen=True)
class AppPackage:
    """Reference to one application and the metadata its manifest needs.

    Attributes:
        uuid: Library identifier of the app (not the install id).
        name: Display title shown by the device installer.
        version: Bundle version string.
        bundle_identifier: Reverse-DNS bundle id.
        path: Source ``.ipa`` file or ``.app`` bundle directory.
    """

    uuid: str
    name: Optional[str] = None
    version: Optional[str] = None
    bundle_identifier: Optional[str] = None
    path: Optional[Path] = None

    @property
    def display_name(self) -> str:
        return self.name or "App"


@dataclass
class SigningContext:
    """Per-package signing inputs for a sign-and-install run."""

    options: Dict[str, Any] = field(default_factory=dict)
    icons: Dict[str, Optional[bytes]] = field(default_factory=dict)
    certificate: Any = None
    default_options: Any = None

    def options_for(self, uuid: str) -> Any:
        return self.options.get(uuid, self.default_options)

    def icon_for(self, uuid: str) -> Optional[bytes]:
        return self.icons.get(uuid)


@dataclass(frozen=True)
class SignResult:
    """Outcome of one signing call: a new package id or an error text."""

    package_id: Optional[PackageId] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, package_id: PackageId) -> "SignResult":
        return cls(package_id=package_id)

    @classmethod
    def failure(cls, error: str) -> "SignResult":
        return cls(error=str(error))

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.package_id)


@dataclass(frozen=True)
class RunLogEntry:
    """One timestamped line of a bulk run log."""

    at: datetime
    message: str

    def __str__(self) -> str:
        return f"[{self.at.strftime('%H:%M:%S')}] {self.message}"


@dataclass
class BulkRun:
    """State of one bulk install run, read by progress displays."""

    packages: List[AppPackage]
    statuses: List[StatusCell]
    log: List[RunLogEntry] = field(default_factory=list)
    finished: bool = False
    aborted: bool = False
    cancelled: bool = False
    current: Optional[str] = None

    @classmethod
    def for_apps(cls, apps: Sequence[AppPackage]) -> "BulkRun":
        packages = list(apps)
        return cls(
            packages=packages,
            statuses=[StatusCell(app.display_name) for app in packages],
        )

    def append_log(self, message: str) -> RunLogEntry:
        entry = RunLogEntry(at=datetime.now(timezone.utc), message=message)
        self.log.append(entry)
        return entry

    @property
    def messages(self) -> List[str]:
        return [entry.message for entry in self.log]

    def all_terminal(self) -> bool:
        return all(cell.value.is_terminal for cell in self.statuses)

    def mark_finished(self) -> None:
        if self.finished:
            raise RuntimeError("Bulk run already finished.")
        self.finished = True

    def to_dict(self) -> Dict[str, object]:
        """Serialize a snapshot for JSON output."""
        return {
            "finished": self.finished,
            "aborted": self.aborted,
            "cancelled": self.cancelled,
            "current": self.current,
            "packages": [
                {
                    "uuid": app.uuid,
                    "name": app.display_name,
                    "status": cell.value.to_dict(),
                }
                for app, cell in zip(self.packages, self.statuses)
            ],
            "log": [str(entry) for entry in self.log],
        }


__all__ = [
    "AppPackage",
    "BulkRun",
    "PackageId",
    "RunLogEntry",
    "SignResult",
    "SigningContext",
]
