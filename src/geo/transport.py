"""Authenticated access to the MaxMind distribution endpoints.

Both endpoints take the license key and the edition id as query parameters.
A 401 means the license key was rejected; anything else that is not a 200 is a
plain transport failure.
"""

import time
import typing as t
from datetime import timedelta
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests
import structlog

from .exceptions import CredentialInvalidError, TransportError

logger = structlog.get_logger(__name__)

REQUEST_HEADERS = {
    "Connection": "close",
    "Accept-Encoding": "deflate, identity",
}


class Deadline:
    """A point in time by which a refresh must be done.

    Every network call made on behalf of one refresh gets the remaining budget as its timeout.
    """

    def __init__(self, timeout: timedelta | float) -> None:
        seconds = timeout.total_seconds() if isinstance(timeout, timedelta) else float(timeout)
        self.timeout = seconds
        self.expires_at = time.monotonic() + seconds

    def remaining(self) -> float:
        """Seconds left before the deadline.

        Raises:
            TransportError: If the deadline has passed.
        """
        left = self.expires_at - time.monotonic()
        if left <= 0:
            raise TransportError(f"deadline of {self.timeout:g}s exceeded")
        return left

    @property
    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at


def redact_url(url: str) -> str:
    """Mask the license key in a URL so it can be logged."""
    parts = urlsplit(url)
    query = [(key, "********" if key == "license_key" else value) for key, value in parse_qsl(parts.query)]
    return urlunsplit(parts._replace(query=urlencode(query)))


class DistributionClient:
    """Issues authenticated GET requests against the distribution endpoints."""

    def __init__(self, license_key: str, edition_id: str, session: requests.Session | None = None) -> None:
        self.license_key = license_key
        self.edition_id = edition_id
        self.session = session or requests.Session()

    def build_url(self, url: str) -> str:
        """Set the edition and license query parameters, replacing existing ones."""
        parts = urlsplit(url)
        query = [(key, value) for key, value in parse_qsl(parts.query) if key not in ("edition_id", "license_key")]
        query += [("edition_id", self.edition_id), ("license_key", self.license_key)]
        return urlunsplit(parts._replace(query=urlencode(query)))

    def get(self, url: str, deadline: Deadline, stream: bool = False) -> requests.Response:
        """GET an endpoint with credentials.

        Args:
            url: The endpoint, with or without a query string.
            deadline: The deadline of the surrounding refresh.
            stream: Leave the body unread so it can be consumed incrementally.

        Returns:
            A 200 response. The caller must close it.

        Raises:
            CredentialInvalidError: On a 401 response.
            TransportError: On network failures, timeouts and any other non-200 status.
        """
        full_url = self.build_url(url)
        safe_url = redact_url(full_url)
        try:
            response = self.session.get(
                full_url,
                headers=REQUEST_HEADERS,
                timeout=deadline.remaining(),
                stream=stream,
            )
        except requests.Timeout as e:
            raise TransportError(f"GET {safe_url} timed out") from e
        except requests.RequestException as e:
            raise TransportError(f"GET {safe_url} failed: {type(e).__name__}") from e

        if response.status_code == requests.codes.unauthorized:
            response.close()
            raise CredentialInvalidError("invalid license key")

        if response.status_code != requests.codes.ok:
            response.close()
            raise TransportError(
                f"unexpected status code {response.status_code} from {safe_url}", status_code=response.status_code
            )

        logger.debug("distribution endpoint responded", url=safe_url, stream=stream)
        return response

    def close(self) -> None:
        self.session.close()


def iter_body(response: requests.Response, deadline: Deadline, chunk_size: int) -> t.Iterator[bytes]:
    """Yield the response body in chunks, enforcing the deadline between chunks."""
    chunks = response.iter_content(chunk_size=chunk_size)
    while True:
        deadline.remaining()
        try:
            chunk = next(chunks)
        except StopIteration:
            return
        except requests.RequestException as e:
            raise TransportError(f"reading response body failed: {type(e).__name__}") from e
        if chunk:
            yield chunk
