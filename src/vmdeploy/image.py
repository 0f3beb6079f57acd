"""Cloud image lookup, download and inspection."""

import logging
import posixpath
import re
from urllib.parse import urlparse

from vmdeploy.exceptions import ImageNotFoundError, InvalidImageError
from vmdeploy.models import DeployRequest, ImageOrigin, ResolvedImage
from vmdeploy.runner import CommandRunner

logger = logging.getLogger(__name__)

IMAGE_TYPE_RE = re.compile(r"QEMU|QCOW|boot sector|DOS/MBR|raw|data", re.IGNORECASE)

# Storage backends that only accept raw volumes
RAW_ONLY_STORAGES = {"local-lvm"}


def url_basename(url: str) -> str:
    """Last path component of a URL, ignoring query strings."""
    return posixpath.basename(urlparse(url).path.rstrip("/"))


def strip_image_suffix(basename: str) -> str:
    """Drop a trailing ``.img`` and then ``.qcow2`` from an image file name."""
    for suffix in (".img", ".qcow2"):
        if basename.endswith(suffix):
            basename = basename[: -len(suffix)]
    return basename


class ImageManager:
    """Resolves the image to import on the host that runs qm."""

    def __init__(self, runner: CommandRunner, image_dir: str) -> None:
        self.runner = runner
        self.image_dir = image_dir

    def ensure_image_dir(self) -> None:
        if not self.runner.is_dir(self.image_dir):
            print(f"[+] Creating image directory: {self.image_dir}")
            self.runner.makedirs(self.image_dir)

    def resolve(self, request: DeployRequest) -> ResolvedImage:
        """Pick an existing image or download one; see resolve_url and resolve_file."""
        if request.image_url:
            return self.resolve_url(request.image_url)
        return self.resolve_file(request.image_file or "")

    def resolve_url(self, url: str) -> ResolvedImage:
        """
        Reuse a previously converted or downloaded copy of url if present.

        ``<stem>.img.raw`` is preferred over the original file name, so images
        converted in place by an earlier run are not downloaded again.
        """
        basename = url_basename(url)
        if not basename:
            raise ImageNotFoundError(f"Cannot determine image file name from URL: {url}")

        raw_file = posixpath.join(self.image_dir, f"{strip_image_suffix(basename)}.img.raw")
        img_file = posixpath.join(self.image_dir, basename)

        if self.runner.is_file(raw_file):
            print(f"[✓] Found existing RAW image: {raw_file}")
            return ResolvedImage(raw_file, ImageOrigin.EXISTING_RAW)
        if self.runner.is_file(img_file):
            print(f"[✓] Found existing IMG file: {img_file}")
            return ResolvedImage(img_file, ImageOrigin.EXISTING_IMG)

        print(f"[+] Downloading image from {url} to {self.image_dir}...")
        self.runner.download(url, img_file)
        logger.info(f"Downloaded {url} to {img_file}")
        return ResolvedImage(img_file, ImageOrigin.DOWNLOADED)

    def resolve_file(self, image_file: str) -> ResolvedImage:
        """Look in the image directory first, then at the path as given."""
        in_dir = posixpath.join(self.image_dir, image_file.lstrip("/"))
        if self.runner.is_file(in_dir):
            print(f"[✓] Using image file: {in_dir}")
            return ResolvedImage(in_dir, ImageOrigin.IMAGE_DIR)
        if self.runner.is_file(image_file):
            print(f"[✓] Using provided absolute image path: {image_file}")
            return ResolvedImage(image_file, ImageOrigin.GIVEN_PATH)
        raise ImageNotFoundError(
            f"Image file not found: {image_file} in {self.image_dir} or given path"
        )

    def describe(self, path: str) -> str:
        """Return the brief ``file`` description of path (without the file name)."""
        return self.runner.run(["file", "-b", path]).stdout

    @staticmethod
    def validate_description(description: str) -> None:
        if not IMAGE_TYPE_RE.search(description):
            raise InvalidImageError(f"Invalid image file detected: {description}")

    @staticmethod
    def detect_disk_format(description: str, storage: str) -> str:
        """qcow2 for QCOW images, raw otherwise; raw-only storages always get raw."""
        if storage in RAW_ONLY_STORAGES:
            return "raw"
        return "qcow2" if "qcow" in description.lower() else "raw"
