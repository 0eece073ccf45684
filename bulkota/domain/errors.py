"""Domain-level error types shared by the install server and orchestrator.

Each error carries a stable ``code`` so callers and logs can tell failure
kinds apart without inspecting transport-specific exceptions.
"""

from __future__ import annotations

from .ports import UseCaseError


class BindFailure(UseCaseError):
    """The install server could not bind a listening port."""

    def __init__(self, message: str) -> None:
        super().__init__("BIND_FAILED", message)


class UnknownPackage(UseCaseError):
    """A request named an install id that is not registered."""

    def __init__(self, package_id: str) -> None:
        super().__init__("UNKNOWN_PACKAGE", f"Unknown package id: {package_id}")
        self.package_id = package_id


class SigningFailure(UseCaseError):
    def __init__(self, message: str) -> None:
        super().__init__("SIGNING_FAILED", message)


class PackagingFailure(UseCaseError):
    def __init__(self, message: str) -> None:
        super().__init__("PACKAGING_FAILED", message)


class StreamingFailure(UseCaseError):
    """Payload transfer ended early; recorded as ``completed(failure)``."""

    def __init__(self, message: str) -> None:
        super().__init__("STREAMING_FAILED", message)


__all__ = [
    "BindFailure",
    "PackagingFailure",
    "SigningFailure",
    "StreamingFailure",
    "UnknownPackage",
]
