"""Loading query files from local paths or http(s) URLs"""

import hashlib
import logging
import re
from pathlib import Path

import httpx

from .command import ReplError

logger = logging.getLogger(__name__)

SHA256_PREFIX = "sha256:"
_HEX_DIGEST = re.compile(r"[0-9a-fA-F]{64}")
FETCH_TIMEOUT = 30.0


class SourceError(ReplError):
    """A file could not be loaded or failed its checksum"""


def is_url(location: str) -> bool:
    return location.startswith(("http://", "https://"))


def parse_sha256(value: str) -> str:
    """Normalise 'hex' or 'sha256:hex' to lowercase hex"""
    digest = value[len(SHA256_PREFIX) :] if value.lower().startswith(SHA256_PREFIX) else value
    if not _HEX_DIGEST.fullmatch(digest):
        raise SourceError(f"Invalid sha256 '{value}': expected 64 hex characters, optionally prefixed with 'sha256:'")
    return digest.lower()


def resolve_path(location: str, base_dir: Path) -> Path:
    path = Path(location).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path


def _fetch(url: str) -> bytes:
    logger.debug("Fetching %s", url)
    try:
        response = httpx.get(url, follow_redirects=True, timeout=FETCH_TIMEOUT)
        response.raise_for_status()
    except httpx.HTTPError as e:
        raise SourceError(f"Could not fetch {url}: {e}") from e
    return response.content


def _read(location: str, base_dir: Path) -> bytes:
    path = resolve_path(location, base_dir)
    if not path.exists():
        raise SourceError(f"File not found: {location}")
    if not path.is_file():
        raise SourceError(f"Path must be a file: {location}")
    return path.read_bytes()


def load_source(location: str, base_dir: Path, expected_sha256: str | None = None) -> str:
    """Read a query file and verify its checksum when one is given

    Args:
        location: http(s) URL, absolute path, or path relative to base_dir
        base_dir: Directory relative paths are resolved against
        expected_sha256: Optional 'hex' or 'sha256:hex' digest

    Returns:
        The file contents decoded as UTF-8
    """
    content = _fetch(location) if is_url(location) else _read(location, base_dir)

    if expected_sha256 is not None:
        expected = parse_sha256(expected_sha256)
        actual = hashlib.sha256(content).hexdigest()
        if actual != expected:
            raise SourceError(f"Checksum mismatch for {location}: expected sha256 {expected}, got {actual}")

    try:
        return content.decode("utf-8")
    except UnicodeDecodeError as e:
        raise SourceError(f"File is not valid UTF-8: {location}") from e


def write_export(path: Path, text: str):
    if path.exists():
        raise SourceError(f"File already exists: {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
