from __future__ import annotations

import plistlib

from bulkota.domain.entities import AppPackage
from bulkota.domain.manifest import InstallLinks, build_manifest, install_page_html

APP = AppPackage(
    uuid="lib-1",
    name="Demo",
    version="1.2.3",
    bundle_identifier="com.example.demo",
)


def test_links_embed_host_and_port() -> None:
    links = InstallLinks(host="192.168.1.20", port=4711)

    assert links.manifest_url("X") == "https://192.168.1.20:4711/X.plist"
    assert links.payload_url("X") == "https://192.168.1.20:4711/X.ipa"
    assert links.install_page_url("X") == "https://192.168.1.20:4711/install/X"
    assert links.install_link("X") == (
        "itms-services://?action=download-manifest&url=https://192.168.1.20:4711/X.plist"
    )


def test_manifest_has_required_structure() -> None:
    links = InstallLinks(host="10.0.0.5", port=5000)

    manifest = plistlib.loads(build_manifest(APP, "X", links))

    (item,) = manifest["items"]
    assert item["assets"] == [
        {"kind": "software-package", "url": "https://10.0.0.5:5000/X.ipa"},
    ]
    assert item["metadata"] == {
        "bundle-identifier": "com.example.demo",
        "bundle-version": "1.2.3",
        "kind": "software",
        "title": "Demo",
    }


def test_manifest_can_reference_display_images() -> None:
    links = InstallLinks(host="10.0.0.5", port=5000)

    manifest = plistlib.loads(build_manifest(APP, "X", links, include_display_images=True))

    kinds = {asset["kind"]: asset["url"] for asset in manifest["items"][0]["assets"]}
    assert kinds["software-package"] == "https://10.0.0.5:5000/X.ipa"
    assert kinds["display-image"] == "https://10.0.0.5:5000/display-image-small.png"
    assert kinds["full-size-image"] == "https://10.0.0.5:5000/display-image-large.png"


def test_install_page_redirects_to_link() -> None:
    link = InstallLinks(host="h", port=4000).install_link("X")

    page = install_page_html(link)

    assert f'window.location="{link}"' in page
