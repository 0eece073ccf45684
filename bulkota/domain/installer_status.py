"""Per-package install status values and their transition rules.

``InstallerStatus`` is an immutable value; ``StatusCell`` is the single owning
handle that the orchestrator and the install server both write to. The server
mutates a cell from its own event-loop thread while the orchestrator polls it,
so every read and transition goes through the cell lock.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional


class Phase(str, Enum):
    """Lifecycle phase of one installable package."""

    IDLE = "idle"
    READY = "ready"
    SENDING_MANIFEST = "sendingManifest"
    SENDING_PAYLOAD = "sendingPayload"
    COMPLETED = "completed"
    BROKEN = "broken"


class Outcome(str, Enum):
    """Result attached to a ``completed`` status."""

    SUCCESS = "success"
    FAILURE = "failure"


TERMINAL_PHASES: FrozenSet[Phase] = frozenset({Phase.COMPLETED, Phase.BROKEN})

_ALLOWED: Dict[Phase, FrozenSet[Phase]] = {
    Phase.IDLE: frozenset(
        {Phase.READY, Phase.BROKEN, Phase.SENDING_MANIFEST, Phase.SENDING_PAYLOAD}
    ),
    Phase.READY: frozenset({Phase.BROKEN, Phase.SENDING_MANIFEST, Phase.SENDING_PAYLOAD}),
    # devices re-fetch the manifest before asking for the payload
    Phase.SENDING_MANIFEST: frozenset({Phase.SENDING_MANIFEST, Phase.SENDING_PAYLOAD}),
    Phase.SENDING_PAYLOAD: frozenset({Phase.COMPLETED}),
    Phase.COMPLETED: frozenset(),
    Phase.BROKEN: frozenset(),
}

_LABELS: Dict[Phase, str] = {
    Phase.IDLE: "Waiting",
    Phase.READY: "Ready",
    Phase.SENDING_MANIFEST: "Sending manifest",
    Phase.SENDING_PAYLOAD: "Sending payload",
}


@dataclass(frozen=True)
class InstallerStatus:
    """Tagged status value; ``outcome`` is only set for ``completed``."""

    phase: Phase
    outcome: Optional[Outcome] = None
    error: Optional[str] = None

    @classmethod
    def idle(cls) -> "InstallerStatus":
        return cls(Phase.IDLE)

    @classmethod
    def ready(cls) -> "InstallerStatus":
        return cls(Phase.READY)

    @classmethod
    def sending_manifest(cls) -> "InstallerStatus":
        return cls(Phase.SENDING_MANIFEST)

    @classmethod
    def sending_payload(cls) -> "InstallerStatus":
        return cls(Phase.SENDING_PAYLOAD)

    @classmethod
    def completed(cls, outcome: Outcome, error: Optional[str] = None) -> "InstallerStatus":
        return cls(Phase.COMPLETED, outcome=outcome, error=error)

    @classmethod
    def broken(cls, error: str) -> "InstallerStatus":
        return cls(Phase.BROKEN, error=str(error))

    @property
    def is_terminal(self) -> bool:
        """Return whether no further transition can happen."""
        return self.phase in TERMINAL_PHASES

    @property
    def succeeded(self) -> bool:
        return self.phase is Phase.COMPLETED and self.outcome is Outcome.SUCCESS

    @property
    def label(self) -> str:
        """Short human-readable text for progress displays and run logs."""
        if self.phase is Phase.COMPLETED:
            if self.outcome is Outcome.SUCCESS:
                return "Completed"
            return f"Failed: {self.error}" if self.error else "Failed"
        if self.phase is Phase.BROKEN:
            return f"Broken: {self.error}" if self.error else "Broken"
        return _LABELS[self.phase]

    def can_transition_to(self, target: "InstallerStatus") -> bool:
        return target.phase in _ALLOWED[self.phase]

    def to_dict(self) -> Dict[str, Optional[str]]:
        payload: Dict[str, Optional[str]] = {"phase": self.phase.value}
        if self.outcome is not None:
            payload["outcome"] = self.outcome.value
        if self.error:
            payload["error"] = self.error
        return payload


class StatusCell:
    """Owning, lock-guarded handle to one package's ``InstallerStatus``."""

    def __init__(self, name: str = "", initial: Optional[InstallerStatus] = None) -> None:
        self.name = name
        self._value = initial or InstallerStatus.idle()
        self._lock = threading.Lock()
        self._log = logging.getLogger(__name__)

    @property
    def value(self) -> InstallerStatus:
        with self._lock:
            return self._value

    def set(self, new: InstallerStatus) -> bool:
        """Apply ``new`` if the transition is allowed.

        Rejected transitions leave the current value in place and are logged
        as anomalies. Returns whether the value changed.
        """
        with self._lock:
            current = self._value
            if not current.can_transition_to(new):
                self._log.warning(
                    "Ignoring status change %s -> %s for %s",
                    current.phase.value,
                    new.phase.value,
                    self.name or "<unnamed>",
                )
                return False
            self._value = new
        self._log.debug("Status for %s is now %s", self.name or "<unnamed>", new.label)
        return True

    def __repr__(self) -> str:
        return f"StatusCell({self.name!r}, {self.value!r})"


__all__ = [
    "InstallerStatus",
    "Outcome",
    "Phase",
    "StatusCell",
    "TERMINAL_PHASES",
]
