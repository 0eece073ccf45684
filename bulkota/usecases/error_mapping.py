"""Translate collaborator errors into user-facing UseCaseError instances."""

from __future__ import annotations


from typing import Optional

from bulkota.domain.ports import UseCaseError


def map_failure(
    exc: BaseException,
    *,
    default_code: str,
    default_message: Optional[str] = None,
) -> UseCaseError:
    """Map signer/packager exceptions to stable UseCaseError codes.

    Args:
        exc: Exception raised by an external collaborator.
        default_code: Code used when the exception carries none.
        default_message: Message used when the exception has no text.

    Returns:
        UseCaseError: ``exc`` itself if already typed, otherwise a wrapper.
    """
    if isinstance(exc, UseCaseError):
        return exc
    if isinstance(exc, FileNotFoundError):
        target = exc.filename or str(exc)
        return UseCaseError("IO_ERROR", _compose_error_message("File not found", str(target)))
    if isinstance(exc, PermissionError):
        return UseCaseError("IO_ERROR", _compose_error_message("Permission denied", exc.filename))
    if isinstance(exc, OSError):
        return UseCaseError("IO_ERROR", _compose_error_message("I/O error", exc.strerror or str(exc)))

    message = str(exc) or default_message or "Unexpected error."
    return UseCaseError(default_code, message)


def _compose_error_message(base: str, hint: Optional[str]) -> str:
    """Compose a user-facing error message with optional hint text."""
    hint_text = (hint or "").strip()
    if hint_text:
        return f"{base}: {hint_text}"
    if base.endswith("."):
        return base
    return f"{base}."


__all__ = ["map_failure"]
