"""Use case for signing, packaging and installing many apps over one server.

Packages are handled strictly one after another: optional signing, packaging,
registration with the shared install server, then the install trigger. The
trigger only *starts* a device install; completion is driven by the server
when the device finishes downloading the payload, and is observed here by
polling every package's status cell.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Sequence, Set

from bulkota.config import BulkInstallConfig
from bulkota.domain.entities import AppPackage, BulkRun, SigningContext
from bulkota.domain.errors import BindFailure, SigningFailure
from bulkota.domain.installer_status import InstallerStatus, Phase, StatusCell
from bulkota.domain.ports import (
    InstallServerPort,
    LibraryPort,
    PackagerPort,
    SignerPort,
    UriOpenerPort,
    UseCaseError,
)
from bulkota.usecases.error_mapping import map_failure

SleepFn = Callable[[float], Awaitable[None]]
ServerFactory = Callable[[], InstallServerPort]


def _new_install_id() -> str:
    return uuid.uuid4().hex


@dataclass
class BulkInstall:
    """Use-case callable that drives N packages through one install server.

    The install server is created lazily on the first run and kept until
    ``close()``; devices may still fetch manifests or payloads after the
    driver loop has finished or been cancelled.
    """

    server_factory: ServerFactory
    packager: PackagerPort
    opener: UriOpenerPort
    signer: Optional[SignerPort] = None
    library: Optional[LibraryPort] = None
    config: BulkInstallConfig = field(default_factory=BulkInstallConfig)
    sleep: SleepFn = asyncio.sleep
    id_factory: Callable[[], str] = _new_install_id

    def __post_init__(self) -> None:
        self._log = logging.getLogger(__name__)
        self._server: Optional[InstallServerPort] = None
        self._cancel = threading.Event()

    async def __call__(
        self,
        apps: Sequence[AppPackage],
        *,
        signing: Optional[SigningContext] = None,
    ) -> BulkRun:
        return await self.execute(BulkRun.for_apps(apps), signing=signing)

    async def execute(
        self,
        run: BulkRun,
        *,
        signing: Optional[SigningContext] = None,
    ) -> BulkRun:
        """Process every package of ``run`` and wait for terminal statuses.

        ``run`` is mutated in place so observers can follow its log and
        statuses while this coroutine is suspended.
        """
        if signing is not None and self.signer is None:
            raise UseCaseError("SIGNER_MISSING", "Signing requested but no signer is configured.")

        self._cancel.clear()
        if signing is not None:
            self._note(run, "Starting batch signing & installation...")
        else:
            self._note(run, "Starting batch installation...")

        try:
            server = await asyncio.to_thread(self._ensure_server)
        except BindFailure as exc:
            self._note(run, f"Critical Error: Failed to start server: {exc.message}", logging.ERROR)
            run.aborted = True
            return run
        self._note(run, f"Installation server started on port {server.port}")

        try:
            if not await self._drive(server, run, signing):
                self._note_cancelled(run)
                return run
            self._note(run, "All operations sent. Waiting for transfers to complete...")
            if not await self._wait_for_completion(run):
                self._note_cancelled(run)
                return run
        except asyncio.CancelledError:
            run.current = None
            self._note_cancelled(run)
            raise

        self._note(run, "All operations completed.")
        run.mark_finished()
        return run

    # ------------------------------------------------------------------ #
    # Driver loop
    # ------------------------------------------------------------------ #
    async def _drive(
        self,
        server: InstallServerPort,
        run: BulkRun,
        signing: Optional[SigningContext],
    ) -> bool:
        last = len(run.packages) - 1
        for index, (app, cell) in enumerate(zip(run.packages, run.statuses)):
            if self._cancel.is_set():
                run.current = None
                return False
            run.current = app.uuid
            triggered = await self._process(server, app, cell, run, signing)
            # a broken package never raised a device prompt, so nothing to wait for
            if triggered and index < last:
                await self.sleep(self.config.inter_trigger_delay_s)
        run.current = None
        return True

    async def _process(
        self,
        server: InstallServerPort,
        app: AppPackage,
        cell: StatusCell,
        run: BulkRun,
        signing: Optional[SigningContext],
    ) -> bool:
        """Sign, package, register and trigger one app; False if it broke."""
        try:
            target = await self._sign(app, signing, run) if signing is not None else app
        except SigningFailure as exc:
            self._note(run, f"Error signing {app.display_name}: {exc.message}", logging.ERROR)
            cell.set(InstallerStatus.broken(exc.message))
            return False

        name = target.display_name
        self._note(run, f"Preparing {name}...")
        try:
            location = await self.packager.package(target)
        except Exception as exc:
            failure = map_failure(
                exc,
                default_code="PACKAGING_FAILED",
                default_message="Packaging failed.",
            )
            self._note(run, f"Error installing {name}: {failure.message}", logging.ERROR)
            cell.set(InstallerStatus.broken(failure.message))
            return False
        self._note(run, f"Archived {name}.")

        package_id = self.id_factory()
        if not server.register(package_id, location, cell, target):
            message = f"Install id {package_id} is already registered."
            self._note(run, f"Error installing {name}: {message}", logging.ERROR)
            cell.set(InstallerStatus.broken(message))
            return False

        cell.set(InstallerStatus.ready())
        if self.config.server_method == "webpage":
            uri = server.install_page_url(package_id)
        else:
            uri = server.install_link(package_id)

        self._note(run, f"Requesting install for {name}...")
        try:
            opened = self.opener.open(uri)
        except Exception as exc:
            self._log.warning("Opening %s failed: %s", uri, exc)
            opened = False
        if not opened:
            self._note(run, f"Failed to open install link for {name}", logging.ERROR)
            cell.set(InstallerStatus.broken("Install link could not be opened."))
            return False
        return True

    async def _sign(
        self,
        app: AppPackage,
        signing: SigningContext,
        run: BulkRun,
    ) -> AppPackage:
        signer = self.signer
        if signer is None:
            raise UseCaseError("SIGNER_MISSING", "Signing requested but no signer is configured.")
        self._note(run, f"Signing {app.display_name}...")
        try:
            result = await signer.sign(
                app,
                options=signing.options_for(app.uuid),
                icon=signing.icon_for(app.uuid),
                certificate=signing.certificate,
            )
        except Exception as exc:
            mapped = map_failure(exc, default_code="SIGNING_FAILED", default_message="Signing failed.")
            raise SigningFailure(mapped.message) from exc
        if not result.ok:
            raise SigningFailure(result.error or "Signer returned no package id.")

        self._note(run, f"Signed {app.display_name} successfully.")
        if self.library is None:
            return dataclasses.replace(app, uuid=result.package_id)
        signed = self.library.find(result.package_id)
        if signed is None:
            raise SigningFailure("Could not find signed app in library.")
        return signed

    # ------------------------------------------------------------------ #
    # Completion wait
    # ------------------------------------------------------------------ #
    async def _wait_for_completion(self, run: BulkRun) -> bool:
        reported: Set[int] = set()
        while True:
            self._report_completions(run, reported)
            if run.all_terminal():
                return True
            if self._cancel.is_set():
                return False
            await self.sleep(self.config.poll_interval_s)

    def _report_completions(self, run: BulkRun, reported: Set[int]) -> None:
        for index, (app, cell) in enumerate(zip(run.packages, run.statuses)):
            if index in reported:
                continue
            status = cell.value
            if status.phase is not Phase.COMPLETED:
                continue
            reported.add(index)
            if status.succeeded:
                self._note(run, f"Installed {app.display_name}.")
            else:
                reason = status.error or "unknown error"
                self._note(run, f"Transfer failed for {app.display_name}: {reason}", logging.WARNING)

    # ------------------------------------------------------------------ #
    # Session handling
    # ------------------------------------------------------------------ #
    def _ensure_server(self) -> InstallServerPort:
        if self._server is None:
            self._server = self.server_factory()
        return self._server

    @property
    def server(self) -> Optional[InstallServerPort]:
        return self._server

    def cancel(self) -> None:
        """Stop future triggers and the completion wait of the current run. Thread-safe."""
        self._cancel.set()

    def close(self) -> None:
        """End the session: shut the install server down if one was started."""
        server, self._server = self._server, None
        if server is not None:
            server.shutdown()

    def __enter__(self) -> "BulkInstall":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _note(self, run: BulkRun, message: str, level: int = logging.INFO) -> None:
        run.append_log(message)
        self._log.log(level, message)

    def _note_cancelled(self, run: BulkRun) -> None:
        run.cancelled = True
        pending = [
            f"{app.display_name} ({cell.value.label})"
            for app, cell in zip(run.packages, run.statuses)
            if not cell.value.is_terminal
        ]
        if pending:
            self._note(run, "Cancelled; not finished: " + ", ".join(pending), logging.WARNING)
        else:
            self._note(run, "Cancelled.")


__all__ = ["BulkInstall", "ServerFactory", "SleepFn"]
