"""``UriOpenerPort`` implementations used to trigger device installs."""

from __future__ import annotations

import logging
import sys
import webbrowser
from typing import Callable, List, Optional, TextIO


class BrowserUriOpener:
    """Hand the URI to the platform's default handler."""

    def __init__(self) -> None:
        self._log = logging.getLogger(__name__)

    def open(self, uri: str) -> bool:
        try:
            opened = webbrowser.open(uri)
        except webbrowser.Error as exc:
            self._log.warning("Could not open %s: %s", uri, exc)
            return False
        if not opened:
            self._log.warning("No handler accepted %s", uri)
        return opened


class PrintingUriOpener:
    """Print the URI so an operator can open it on the device."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream

    def open(self, uri: str) -> bool:
        stream = self._stream or sys.stdout
        print(f"Open on device: {uri}", file=stream, flush=True)
        return True


class RecordingUriOpener:
    """Keep opened URIs in order; optionally forward each to a callback."""

    def __init__(self, on_open: Optional[Callable[[str], None]] = None, *, result: bool = True) -> None:
        self.opened: List[str] = []
        self._on_open = on_open
        self._result = result

    def open(self, uri: str) -> bool:
        self.opened.append(uri)
        if self._on_open is not None:
            self._on_open(uri)
        return self._result


__all__ = ["BrowserUriOpener", "PrintingUriOpener", "RecordingUriOpener"]
