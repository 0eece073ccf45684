"""Packager and metadata reader for ``.ipa`` archives and ``.app`` bundles.

``IpaPackager`` implements ``PackagerPort``: an ``.ipa`` is served as-is
after a ZIP sanity check; an ``.app`` directory is zipped into a fresh
``Payload/<name>.app`` archive in the staging directory.
``read_app_metadata`` builds an ``AppPackage`` from the bundle's Info.plist.
"""

from __future__ import annotations

import asyncio
import logging
import plistlib
import uuid
import zipfile
from pathlib import Path, PurePosixPath
from typing import Any, Dict, Optional

from bulkota.domain.entities import AppPackage
from bulkota.domain.errors import PackagingFailure

log = logging.getLogger(__name__)


def _find_info_plist(names: list[str]) -> Optional[str]:
    """Return the archive member of the top-level app's Info.plist."""
    for name in sorted(names, key=len):
        parts = PurePosixPath(name).parts
        if (
            len(parts) == 3
            and parts[0] == "Payload"
            and parts[1].endswith(".app")
            and parts[2] == "Info.plist"
        ):
            return name
    return None


def _load_info(source: Path) -> Dict[str, Any]:
    if source.is_dir():
        info_path = source / "Info.plist"
        if not info_path.is_file():
            raise PackagingFailure(f"No Info.plist in {source.name}")
        data = info_path.read_bytes()
    else:
        if not zipfile.is_zipfile(source):
            raise PackagingFailure(f"{source.name} is not a valid .ipa archive")
        with zipfile.ZipFile(source) as archive:
            member = _find_info_plist(archive.namelist())
            if member is None:
                raise PackagingFailure(f"No Payload/*.app/Info.plist in {source.name}")
            data = archive.read(member)
    try:
        info = plistlib.loads(data)
    except (plistlib.InvalidFileException, ValueError) as exc:
        raise PackagingFailure(f"Unreadable Info.plist in {source.name}: {exc}") from exc
    if not isinstance(info, dict):
        raise PackagingFailure(f"Unexpected Info.plist layout in {source.name}")
    return info


def read_app_metadata(path: str | Path) -> AppPackage:
    """Build an ``AppPackage`` from an ``.ipa`` file or ``.app`` directory.

    Raises:
        PackagingFailure: The path is missing or holds no readable Info.plist.
    """
    source = Path(path).expanduser()
    if not source.exists():
        raise PackagingFailure(f"App not found: {source}")
    info = _load_info(source)
    name = info.get("CFBundleDisplayName") or info.get("CFBundleName") or source.stem
    version = info.get("CFBundleShortVersionString") or info.get("CFBundleVersion")
    return AppPackage(
        uuid=uuid.uuid4().hex,
        name=str(name),
        version=str(version) if version is not None else None,
        bundle_identifier=info.get("CFBundleIdentifier"),
        path=source,
    )


def _zip_app_bundle(bundle: Path, target: Path) -> None:
    with zipfile.ZipFile(target, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        root = PurePosixPath("Payload") / bundle.name
        for item in sorted(bundle.rglob("*")):
            if item.is_file():
                arcname = root / item.relative_to(bundle).as_posix()
                archive.write(item, arcname=str(arcname))


class IpaPackager:
    """Produce a deployable ``.ipa`` for an ``AppPackage``."""

    def __init__(self, staging_dir: str | Path) -> None:
        self.staging_dir = Path(staging_dir)

    async def package(self, app: AppPackage) -> Path:
        return await asyncio.to_thread(self.build, app)

    def build(self, app: AppPackage) -> Path:
        if app.path is None:
            raise PackagingFailure(f"{app.display_name} has no source path")
        source = Path(app.path)
        if not source.exists():
            raise PackagingFailure(f"Source for {app.display_name} not found: {source}")

        if source.is_dir():
            if source.suffix != ".app":
                raise PackagingFailure(f"{source.name} is not an .app bundle")
            self.staging_dir.mkdir(parents=True, exist_ok=True)
            target = self.staging_dir / f"{app.uuid}.ipa"
            _zip_app_bundle(source, target)
            log.info("Archived %s to %s", source.name, target)
            return target

        if source.suffix.lower() != ".ipa" or not zipfile.is_zipfile(source):
            raise PackagingFailure(f"{source.name} is not a valid .ipa archive")
        return source


__all__ = ["IpaPackager", "read_app_metadata"]
