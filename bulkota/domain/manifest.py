"""URLs, device deep links and OTA manifest documents for one server address.

Everything here is pure: an ``InstallLinks`` value is built once the install
server has bound its port, and every link or manifest it produces embeds that
exact host and port.
"""

from __future__ import annotations

import plistlib
from dataclasses import dataclass
from typing import Any, Dict, List

from .entities import AppPackage, PackageId

DISPLAY_IMAGE_SMALL_PATH = "/display-image-small.png"
DISPLAY_IMAGE_LARGE_PATH = "/display-image-large.png"
INSTALL_PAGE_PREFIX = "install"
MANIFEST_EXTENSION = "plist"
PAYLOAD_EXTENSION = "ipa"


@dataclass(frozen=True)
class InstallLinks:
    """Link builder bound to the server's public host and port."""

    host: str
    port: int
    scheme: str = "https"

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.port}"

    def manifest_url(self, package_id: PackageId) -> str:
        return f"{self.base_url}/{package_id}.{MANIFEST_EXTENSION}"

    def payload_url(self, package_id: PackageId) -> str:
        return f"{self.base_url}/{package_id}.{PAYLOAD_EXTENSION}"

    def install_page_url(self, package_id: PackageId) -> str:
        return f"{self.base_url}/{INSTALL_PAGE_PREFIX}/{package_id}"

    def install_link(self, package_id: PackageId) -> str:
        """Device-install URI that makes the OS installer fetch the manifest."""
        return f"itms-services://?action=download-manifest&url={self.manifest_url(package_id)}"

    def display_image_urls(self) -> Dict[str, str]:
        return {
            "display-image": f"{self.base_url}{DISPLAY_IMAGE_SMALL_PATH}",
            "full-size-image": f"{self.base_url}{DISPLAY_IMAGE_LARGE_PATH}",
        }


def build_manifest(
    app: AppPackage,
    package_id: PackageId,
    links: InstallLinks,
    *,
    include_display_images: bool = False,
) -> bytes:
    """Render the XML property list the device installer downloads.

    Args:
        app: Source of the ``metadata`` block.
        package_id: Install id; selects the payload URL.
        links: Address of the serving instance.
        include_display_images: Add ``display-image``/``full-size-image``
            assets pointing at the server's fixed PNG paths.

    Returns:
        UTF-8 encoded XML plist bytes.
    """
    assets: List[Dict[str, Any]] = [
        {"kind": "software-package", "url": links.payload_url(package_id)},
    ]
    if include_display_images:
        for kind, url in links.display_image_urls().items():
            assets.append({"kind": kind, "needs-shine": False, "url": url})

    manifest = {
        "items": [
            {
                "assets": assets,
                "metadata": {
                    "bundle-identifier": app.bundle_identifier or "",
                    "bundle-version": app.version or "",
                    "kind": "software",
                    "title": app.display_name,
                },
            }
        ]
    }
    return plistlib.dumps(manifest, fmt=plistlib.FMT_XML)


def install_page_html(install_link: str) -> str:
    """Minimal page that sends the browser on to the device-install URI."""
    return (
        '<html style="background-color: black;">\n'
        f'<script type="text/javascript">window.location="{install_link}"</script>\n'
        "</html>\n"
    )


__all__ = [
    "DISPLAY_IMAGE_LARGE_PATH",
    "DISPLAY_IMAGE_SMALL_PATH",
    "InstallLinks",
    "build_manifest",
    "install_page_html",
]
