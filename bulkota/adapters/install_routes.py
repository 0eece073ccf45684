"""FastAPI application implementing the OTA install wire protocol.

A single catch-all GET route answers, in order of specificity:

- the two reserved display-image paths (fixed PNG bytes),
- ``/install/{id}``: HTML page redirecting to the device-install URI,
- ``/{id}.plist``: manifest document (status -> ``sendingManifest``),
- ``/{id}.ipa``: chunked package stream (status -> ``sendingPayload`` ->
  ``completed``).

Everything else is a 404 without any status change.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import AsyncIterator, BinaryIO, Optional

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import HTMLResponse, StreamingResponse
from starlette.concurrency import run_in_threadpool

from bulkota.adapters.display_images import DISPLAY_IMAGE_LARGE, DISPLAY_IMAGE_SMALL
from bulkota.domain.errors import StreamingFailure, UnknownPackage
from bulkota.domain.installer_status import InstallerStatus, Outcome
from bulkota.domain.manifest import (
    DISPLAY_IMAGE_LARGE_PATH,
    DISPLAY_IMAGE_SMALL_PATH,
    INSTALL_PAGE_PREFIX,
    MANIFEST_EXTENSION,
    PAYLOAD_EXTENSION,
    InstallLinks,
    build_manifest,
    install_page_html,
)
from bulkota.domain.package_registry import PackageRegistry, RegisteredPackage

log = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024
_STATIC_IMAGES = {
    DISPLAY_IMAGE_SMALL_PATH: DISPLAY_IMAGE_SMALL,
    DISPLAY_IMAGE_LARGE_PATH: DISPLAY_IMAGE_LARGE,
}


def open_payload(path: Path) -> BinaryIO:
    """Open a package file for streaming."""
    return path.open("rb")


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail="Not found")


async def _stream_payload(entry: RegisteredPackage, chunk_size: int) -> AsyncIterator[bytes]:
    # Reaching the end of the file is the only success path; disconnects
    # surface here as GeneratorExit/CancelledError and keep the default error.
    error: Optional[str] = "Transfer interrupted"
    try:
        handle = await run_in_threadpool(open_payload, entry.package_location)
        try:
            while True:
                chunk = await run_in_threadpool(handle.read, chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            handle.close()
        error = None
    except OSError as exc:
        error = StreamingFailure(f"Reading {entry.package_location.name} failed: {exc}").message
        log.warning("Payload transfer for %s failed: %s", entry.package_id, exc)
    finally:
        if error is None:
            entry.status.set(InstallerStatus.completed(Outcome.SUCCESS))
            log.info("Payload for %s sent", entry.package_id)
        else:
            entry.status.set(InstallerStatus.completed(Outcome.FAILURE, error))
            log.info("Payload for %s not delivered: %s", entry.package_id, error)


def create_app(
    registry: PackageRegistry,
    links: InstallLinks,
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    include_display_images: bool = False,
) -> FastAPI:
    """Build the install server application for one bound address.

    Args:
        registry: Packages this server may hand out.
        links: Host/port the server is reachable at; embedded in manifests.
        chunk_size: Bytes per streamed payload chunk.
        include_display_images: Reference display images in manifests.
    """
    app = FastAPI(
        title="OTA Install Server",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    def _lookup(package_id: str) -> RegisteredPackage:
        entry = registry.get(package_id)
        if entry is None:
            raise HTTPException(status_code=404, detail=UnknownPackage(package_id).message)
        return entry

    def _serve_manifest(entry: RegisteredPackage) -> Response:
        entry.status.set(InstallerStatus.sending_manifest())
        body = build_manifest(
            entry.app,
            entry.package_id,
            links,
            include_display_images=include_display_images,
        )
        return Response(content=body, media_type="text/xml")

    def _serve_payload(entry: RegisteredPackage) -> Response:
        entry.status.set(InstallerStatus.sending_payload())
        try:
            size = entry.package_location.stat().st_size
        except OSError as exc:
            failure = StreamingFailure(f"Payload unavailable: {exc}")
            log.warning("Payload for %s unavailable: %s", entry.package_id, exc)
            entry.status.set(InstallerStatus.completed(Outcome.FAILURE, failure.message))
            raise _not_found() from exc
        return StreamingResponse(
            _stream_payload(entry, chunk_size),
            media_type="application/octet-stream",
            headers={"Content-Length": str(size)},
        )

    @app.get("/{path:path}")
    async def serve(path: str, request: Request) -> Response:
        url_path = request.url.path

        image = _STATIC_IMAGES.get(url_path)
        if image is not None:
            return Response(content=image, media_type="image/png")

        components = [part for part in url_path.split("/") if part]
        if len(components) == 2 and components[0] == INSTALL_PAGE_PREFIX:
            entry = _lookup(components[1])
            page = install_page_html(links.install_link(entry.package_id))
            return HTMLResponse(page)

        if len(components) != 1:
            log.debug("No route for %s", url_path)
            raise _not_found()

        package_id, dot, extension = components[0].rpartition(".")
        if not dot or extension not in (MANIFEST_EXTENSION, PAYLOAD_EXTENSION):
            log.debug("No route for %s", url_path)
            raise _not_found()

        entry = _lookup(package_id)
        if extension == MANIFEST_EXTENSION:
            return _serve_manifest(entry)
        return _serve_payload(entry)

    return app


__all__ = ["DEFAULT_CHUNK_SIZE", "create_app", "open_payload"]
