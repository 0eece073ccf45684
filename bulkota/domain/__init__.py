"""Domain package exports for install status, registry and run entities."""

from .entities import (
    AppPackage,
    BulkRun,
    PackageId,
    RunLogEntry,
    SignResult,
    SigningContext,
)
from .errors import (
    BindFailure,
    PackagingFailure,
    SigningFailure,
    StreamingFailure,
    UnknownPackage,
)
from .installer_status import InstallerStatus, Outcome, Phase, StatusCell
from .manifest import InstallLinks, build_manifest
from .package_registry import PackageRegistry, RegisteredPackage
from .ports import UseCaseError

__all__ = [
    "AppPackage",
    "BindFailure",
    "BulkRun",
    "InstallLinks",
    "InstallerStatus",
    "Outcome",
    "PackageId",
    "PackageRegistry",
    "PackagingFailure",
    "Phase",
    "RegisteredPackage",
    "RunLogEntry",
    "SignResult",
    "SigningContext",
    "SigningFailure",
    "StatusCell",
    "StreamingFailure",
    "UnknownPackage",
    "UseCaseError",
    "build_manifest",
]
