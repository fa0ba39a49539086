"""HTTP downloads with retry, backoff and atomic placement."""

from __future__ import annotations

import hashlib
import http.client
import logging
import os
import ssl
import tempfile
import time
import urllib.error
import urllib.request
from collections.abc import Callable
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from rust_gnu_installer import __version__
from rust_gnu_installer.errors import (
    FetchError,
    IntegrityMismatchError,
    NetworkFatalError,
    NetworkTransientError,
    PermissionDeniedError,
)
from rust_gnu_installer.types import DownloadTask

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
PART_SUFFIX = ".part"

# 4xx statuses that indicate a temporary condition on the server side
RETRYABLE_CLIENT_STATUS = {408, 429}


def _content_length(response: Any) -> int | None:
    value = response.headers.get("Content-Length")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class HttpFetcher:
    """Downloads artifacts with `urllib.request`.

    Satisfies the Fetcher protocol structurally. Bytes are streamed to a
    `.part` file next to the destination and renamed into place only once
    the full body has arrived and passed integrity checks.
    """

    def __init__(
        self,
        timeout: float = 60.0,
        backoff: float = 1.0,
        opener: Callable[..., Any] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the fetcher.

        Args:
            timeout: Socket timeout per attempt, in seconds.
            backoff: Base delay; attempt n waits backoff * 2**(n-1) before retrying.
            opener: Replacement for urllib.request.urlopen (for testing).
            sleep: Replacement for time.sleep (for testing).
        """
        self.timeout = timeout
        self.backoff = backoff
        self._opener = opener or urllib.request.urlopen
        self._sleep = sleep

    def fetch(self, task: DownloadTask) -> Path:
        """Download task.url to task.destination.

        Args:
            task: What to download and where.

        Returns:
            The destination path.

        Raises:
            NetworkFatalError: Malformed URL or non-retryable HTTP status.
            IntegrityMismatchError: Hash or size mismatch.
            FetchError: Transient failures exhausted the retry budget.
            PermissionDeniedError: The download directory or destination is not writable.
        """
        self._validate_url(task.url)
        destination = task.destination
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            self._remove_stale_parts(destination)
        except PermissionError as e:
            raise PermissionDeniedError(f"Cannot write to {destination.parent}") from e

        last_error: NetworkTransientError | None = None
        for attempt in range(1, task.retries + 1):
            try:
                self._attempt(task)
                logger.info("Downloaded %s to %s", task.url, destination)
                return destination
            except NetworkTransientError as e:
                last_error = e
                if attempt == task.retries:
                    break
                delay = self.backoff * 2 ** (attempt - 1)
                logger.warning(
                    "Download attempt %d/%d of %s failed: %s; retrying in %.1fs",
                    attempt,
                    task.retries,
                    task.url,
                    e,
                    delay,
                )
                self._sleep(delay)

        raise FetchError(
            f"Download of {task.url} failed after {task.retries} attempts: {last_error}"
        ) from last_error

    def _validate_url(self, url: str) -> None:
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise NetworkFatalError(f"Malformed or unsupported URL: {url!r}")

    def _remove_stale_parts(self, destination: Path) -> None:
        """Delete temp files left behind by an interrupted earlier download."""
        for stale in destination.parent.glob(f".{destination.name}.*{PART_SUFFIX}"):
            logger.debug("Removing stale partial download %s", stale)
            stale.unlink(missing_ok=True)

    def _attempt(self, task: DownloadTask) -> None:
        destination = task.destination
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=destination.parent, prefix=f".{destination.name}.", suffix=PART_SUFFIX
            )
        except PermissionError as e:
            raise PermissionDeniedError(f"Cannot write {destination}") from e
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as handle:
                received, digest = self._stream(task.url, handle)
            self._check_integrity(task, received, digest)
            try:
                os.replace(tmp_path, destination)
            except PermissionError as e:
                # Windows refuses to replace an executable that is still running
                raise PermissionDeniedError(
                    f"Cannot replace {destination}; it may be in use"
                ) from e
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise

    def _stream(self, url: str, handle: Any) -> tuple[int, str]:
        """Copy the response body into handle. Returns (byte count, sha256)."""
        request = urllib.request.Request(
            url, headers={"User-Agent": f"rust-gnu-installer/{__version__}"}
        )
        hasher = hashlib.sha256()
        received = 0
        try:
            with self._opener(
                request, timeout=self.timeout, context=ssl.create_default_context()
            ) as response:
                expected = _content_length(response)
                while True:
                    chunk = response.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    handle.write(chunk)
                    hasher.update(chunk)
                    received += len(chunk)
        except urllib.error.HTTPError as e:
            if e.code >= 500 or e.code in RETRYABLE_CLIENT_STATUS:
                raise NetworkTransientError(f"HTTP {e.code} from {url}") from e
            raise NetworkFatalError(f"HTTP {e.code} from {url}") from e
        except urllib.error.URLError as e:
            raise NetworkTransientError(f"Could not reach {url}: {e.reason}") from e
        except (TimeoutError, ConnectionError, http.client.HTTPException) as e:
            raise NetworkTransientError(f"Transfer from {url} interrupted: {e}") from e

        if expected is not None and received != expected:
            raise NetworkTransientError(
                f"Transfer from {url} truncated: received {received} of {expected} bytes"
            )
        return received, hasher.hexdigest()

    def _check_integrity(self, task: DownloadTask, received: int, digest: str) -> None:
        if task.size is not None and received != task.size:
            raise IntegrityMismatchError(
                f"Size mismatch for {task.url}: expected {task.size} bytes, got {received}"
            )
        if task.sha256 is not None and digest != task.sha256.lower():
            raise IntegrityMismatchError(
                f"SHA-256 mismatch for {task.url}: expected {task.sha256}, got {digest}"
            )
