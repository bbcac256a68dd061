"""
Uploaded binaries: local store for new uploads and the fetcher the analysis pipeline reads them back with.

The fetcher never retries; retry policy belongs to the job queue.
"""
import logging
import uuid
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx

from app.core.config import settings, upload_root

logger = logging.getLogger(__name__)

USER_AGENT = "HealthMate/1.0"

FETCH_TIMEOUT = "timeout"
FETCH_BAD_STATUS = "non-success-status"
FETCH_TRANSPORT = "transport-error"


class FetchError(Exception):
    """Binary could not be retrieved; `kind` is timeout | non-success-status | transport-error."""

    def __init__(self, kind: str, message: str, status_code: int | None = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


def save_upload(content: bytes, extension: str) -> tuple[str, str]:
    """Writes the upload under UPLOAD_DIR; returns (stored_name, file:// locator)."""
    root = upload_root()
    root.mkdir(parents=True, exist_ok=True)
    stored_name = f"{uuid.uuid4().hex}.{extension.lstrip('.') or 'bin'}"
    path = root / stored_name
    path.write_bytes(content)
    return stored_name, path.as_uri()


def delete_upload(locator: str) -> bool:
    """Removes a locally stored upload; remote locators are left to their owner."""
    try:
        path = _local_path(locator)
    except FetchError:
        return False
    try:
        path.unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning("Stored file could not be deleted (%s): %s", locator, e)
        return False


def _parse_locator(locator: str):
    try:
        return urlparse(locator)
    except ValueError as e:
        raise FetchError(FETCH_TRANSPORT, f"Malformed locator: {e}") from e


def _local_path(locator: str) -> Path:
    parsed = _parse_locator(locator)
    if parsed.scheme != "file":
        raise FetchError(FETCH_TRANSPORT, f"Unsupported locator scheme: {parsed.scheme or '-'}")
    try:
        path = Path(unquote(parsed.path)).resolve()
    except (OSError, ValueError) as e:
        raise FetchError(FETCH_TRANSPORT, f"Malformed local path: {e}") from e
    root = upload_root()
    if root != path and root not in path.parents:
        raise FetchError(FETCH_TRANSPORT, "Locator points outside the upload directory")
    return path


def fetch_file_bytes(
    locator: str,
    file_type: str = "document",
    *,
    timeout: float | None = None,
    client: httpx.Client | None = None,
) -> bytes:
    """
    Returns the raw bytes behind `locator` (http(s):// or file:// inside UPLOAD_DIR).
    Raises FetchError on timeout, non-2xx responses and transport failures.
    """
    timeout = settings.fetch_timeout_seconds if timeout is None else timeout
    scheme = _parse_locator(locator).scheme.lower()
    if scheme in ("http", "https"):
        return _fetch_remote(locator, file_type, timeout, client)
    path = _local_path(locator)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise FetchError(FETCH_TRANSPORT, f"Stored file unreadable: {e}") from e
    logger.info("Read stored %s: %s bytes", file_type, len(data))
    return data


def _fetch_remote(locator: str, file_type: str, timeout: float, client: httpx.Client | None) -> bytes:
    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=httpx.Timeout(timeout, connect=min(timeout, 8.0)), follow_redirects=True)
    try:
        response = client.get(locator, headers={"User-Agent": USER_AGENT})
    except httpx.TimeoutException as exc:
        raise FetchError(FETCH_TIMEOUT, f"Download timeout after {timeout:.0f}s") from exc
    except httpx.InvalidURL as exc:
        raise FetchError(FETCH_TRANSPORT, f"Invalid URL: {exc}") from exc
    except httpx.HTTPError as exc:
        raise FetchError(FETCH_TRANSPORT, f"Download failed: {exc}") from exc
    finally:
        if owns_client:
            client.close()
    if response.status_code != 200:
        raise FetchError(
            FETCH_BAD_STATUS,
            f"HTTP {response.status_code}: {response.reason_phrase}",
            status_code=response.status_code,
        )
    logger.info("Downloaded %s: %s bytes", file_type, len(response.content))
    return response.content
