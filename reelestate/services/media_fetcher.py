"""Streaming media downloads with size, time and retry limits."""

import logging
import time
from pathlib import Path

import httpx

from reelestate.config import Settings, get_settings
from reelestate.exceptions import DownloadError

logger = logging.getLogger(__name__)

# Status codes worth another attempt; anything else non-2xx fails immediately
RETRYABLE_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


class _RetryableDownloadError(DownloadError):
    pass


class MediaFetcher:
    """Download remote media into job scratch storage."""

    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.Client | None = None,
        sleep=time.sleep,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = client
        self._sleep = sleep

    def fetch(
        self,
        locator: str,
        destination: str | Path,
        max_bytes: int | None = None,
        timeout: float | None = None,
    ) -> Path:
        """Stream ``locator`` to ``destination``.

        The byte limit and the deadline are checked per chunk, so an oversized
        or stalled source is cut off mid-stream rather than buffered.

        Raises:
            DownloadError: non-2xx response, limit exceeded, or retries exhausted
        """
        destination = Path(destination)
        max_bytes = max_bytes if max_bytes is not None else self.settings.download_max_bytes
        timeout = timeout if timeout is not None else self.settings.download_timeout_seconds
        attempts = self.settings.download_max_attempts
        delay = self.settings.download_backoff_seconds

        for attempt in range(1, attempts + 1):
            try:
                self._stream_once(locator, destination, max_bytes, timeout)
                logger.info(
                    "Downloaded %s (%d bytes)", _redact(locator), destination.stat().st_size
                )
                return destination
            except _RetryableDownloadError as e:
                destination.unlink(missing_ok=True)
                if attempt == attempts:
                    raise DownloadError(
                        f"Download failed after {attempts} attempts: {e.message}"
                    ) from e
                logger.warning(
                    f"Download attempt {attempt}/{attempts} for {_redact(locator)} failed: "
                    f"{e.message}. Retrying in {delay} seconds..."
                )
                self._sleep(delay)
                delay *= 2  # Exponential backoff
            except DownloadError:
                destination.unlink(missing_ok=True)
                raise

        raise DownloadError(f"Download failed: {_redact(locator)}")

    def _stream_once(
        self, locator: str, destination: Path, max_bytes: int, timeout: float
    ) -> None:
        deadline = time.monotonic() + timeout
        client = self._client or httpx.Client(follow_redirects=True)
        try:
            with client.stream("GET", locator, timeout=timeout) as response:
                if response.status_code in RETRYABLE_STATUS_CODES:
                    raise _RetryableDownloadError(f"HTTP {response.status_code}")
                if not response.is_success:
                    raise DownloadError(
                        f"Download failed: HTTP {response.status_code} ({_redact(locator)})"
                    )

                declared = response.headers.get("content-length")
                if declared and declared.isdigit() and int(declared) > max_bytes:
                    raise DownloadError(
                        f"Download too large: {declared} bytes exceeds limit of {max_bytes}"
                    )

                received = 0
                destination.parent.mkdir(parents=True, exist_ok=True)
                with open(destination, "wb") as handle:
                    # One iteration per network read; limits are checked on every read
                    for chunk in response.iter_bytes():
                        received += len(chunk)
                        if received > max_bytes:
                            raise DownloadError(
                                f"Download too large: exceeded limit of {max_bytes} bytes"
                            )
                        if time.monotonic() > deadline:
                            raise DownloadError(f"Download timed out after {timeout} seconds")
                        handle.write(chunk)
        except httpx.TimeoutException as e:
            raise _RetryableDownloadError(f"timeout: {e}") from e
        except httpx.TransportError as e:
            raise _RetryableDownloadError(f"network error: {e}") from e
        finally:
            if self._client is None:
                client.close()


def _redact(locator: str) -> str:
    """Drop the query string, which may carry signed tokens."""
    return locator.split("?", 1)[0]
