"""Adlist descriptors and the reader that opens their sources.

An adlist is a source URL and the format of its content. Three URL schemes are
supported:

- ``http``/``https``: the source is requested over HTTP(S).
- ``file``: the source is read from an absolute path in the local filesystem.

Opening a source returns the content's length, when known ahead of time, and a
buffered binary stream over the content. Every byte read through the stream is
added to a :class:`ByteCounter` the caller supplies.
"""

import io
import logging
import os
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple
from urllib.parse import unquote_to_bytes, urlsplit
from urllib.request import url2pathname

import requests
from requests.adapters import HTTPAdapter
from urllib3.exceptions import HTTPError as Urllib3HTTPError
from urllib3.util.retry import Retry

from .constants import (
    HTTP_CONNECT_TIMEOUT,
    HTTP_READ_TIMEOUT,
    MAX_RETRIES,
    RETRY_BACKOFF,
    RETRY_STATUS_CODES,
    USER_AGENT,
)
from .errors import (
    HttpError,
    InvalidConfig,
    InvalidFilePath,
    InvalidResponse,
    IoError,
    RequestFailed,
    UnsupportedUrlScheme,
    UrlError,
)

logger = logging.getLogger(__name__)

# Errors a source stream may raise in the middle of reading
STREAM_ERRORS = (OSError, Urllib3HTTPError, requests.RequestException)


# ============================================================================
# DESCRIPTORS
# ============================================================================

class AdlistFormat(Enum):
    """The formats an adlist's content may be in.

    - ``HOSTS``: hosts-file lines, ``0.0.0.0 example.com``. The address must be
      the unspecified address (``0.0.0.0`` or ``::``) and the host must not be
      an IP address.
    - ``DOMAINS``: one domain per line.
    - ``DNSMASQ``: dnsmasq configuration lines, ``address=/example.com/#``.
    """

    HOSTS = "hosts"
    DOMAINS = "domains"
    DNSMASQ = "dnsmasq"

    def __str__(self) -> str:
        return self.name.capitalize()


@dataclass(frozen=True)
class Adlist:
    """A source of domains and the format they're in."""
    source: str
    format: AdlistFormat = AdlistFormat.HOSTS

    def __post_init__(self):
        if not isinstance(self.format, AdlistFormat):
            raise TypeError(f"format must be an AdlistFormat, got {self.format!r}")

        try:
            parsed = urlsplit(self.source)
        except ValueError as e:
            raise UrlError(self.source, str(e)) from e

        if not parsed.scheme:
            raise UrlError(self.source, "relative URL without a base")
        if parsed.scheme in ('http', 'https') and not parsed.hostname:
            raise UrlError(self.source, "empty host")

    @property
    def scheme(self) -> str:
        return urlsplit(self.source).scheme

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Adlist':
        """Build an adlist from its configuration mapping."""
        if 'source' not in data:
            raise InvalidConfig("adlist is missing its source")

        fmt = data.get('format', AdlistFormat.HOSTS.value)
        try:
            adlist_format = AdlistFormat(str(fmt).lower())
        except ValueError:
            raise InvalidConfig(f"unknown adlist format: {fmt}") from None

        return cls(source=str(data['source']), format=adlist_format)

    def to_dict(self) -> Dict[str, Any]:
        return {'source': self.source, 'format': self.format.value}

    def open(self, counter: 'ByteCounter', connect_timeout: int = HTTP_CONNECT_TIMEOUT,
             http_client: Optional['HTTPClient'] = None) -> Tuple[Optional[int], io.BufferedReader]:
        """Open the adlist's source.

        Returns a tuple of the content's length, if it can be determined, and a
        buffered stream over the content. HTTP sources using chunked transfer
        encoding have no length.
        """
        scheme = self.scheme

        if scheme in ('http', 'https'):
            client = http_client or HTTPClient(connect_timeout)
            length, raw = client.open(self.source)
        elif scheme == 'file':
            path = self.file_path()
            try:
                raw = open(path, 'rb', buffering=0)
            except OSError as e:
                raise IoError(e) from e
            except ValueError as e:
                # embedded NUL bytes in the decoded path
                raise InvalidFilePath(self.source) from e
            try:
                length = os.fstat(raw.fileno()).st_size
            except OSError as e:
                raw.close()
                raise IoError(e) from e
        else:
            raise UnsupportedUrlScheme(scheme)

        return length, io.BufferedReader(ProgressReader(raw, counter))

    def file_path(self):
        """Return the filesystem path of a ``file://`` source."""
        parsed = urlsplit(self.source)
        if parsed.netloc not in ('', 'localhost') or not parsed.path.startswith('/'):
            raise InvalidFilePath(self.source)

        # keep the path as raw bytes where the platform's paths are bytes
        if os.name == 'posix':
            return unquote_to_bytes(parsed.path)
        return url2pathname(parsed.path)


# ============================================================================
# HTTP CLIENT
# ============================================================================

class HTTPClient:
    """HTTP client with retry logic."""

    def __init__(self, connect_timeout: int = HTTP_CONNECT_TIMEOUT):
        self.connect_timeout = connect_timeout
        self.session = self._create_session()

    def _create_session(self) -> requests.Session:
        """Create a session with retry logic."""
        session = requests.Session()
        retry = Retry(
            total=MAX_RETRIES,
            backoff_factor=RETRY_BACKOFF,
            status_forcelist=RETRY_STATUS_CODES,
            allowed_methods=["GET"],
            raise_on_status=False
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def open(self, url: str) -> Tuple[Optional[int], Any]:
        """Request the URL and return its length and the undecoded body stream."""
        # identity encoding keeps the counted bytes in line with Content-Length
        headers = {'User-Agent': USER_AGENT, 'Accept-Encoding': 'identity'}
        timeout = (self.connect_timeout / 1000, HTTP_READ_TIMEOUT / 1000)

        try:
            response = self.session.get(url, headers=headers, timeout=timeout, stream=True)
        except requests.RequestException as e:
            raise HttpError(e) from e

        if not 200 <= response.status_code < 300:
            try:
                body = response.text
            except requests.RequestException as e:
                raise HttpError(e) from e
            finally:
                response.close()
            raise RequestFailed(response.status_code, body)

        # the headers mapping is case-insensitive
        length = response.headers.get('Content-Length')
        if length is not None:
            if not (length.isascii() and length.isdigit()):
                response.close()
                raise InvalidResponse(f"Content-Length is not an unsigned integer: {length!r}")
            length = int(length)
            logger.debug(f"Got response status {response.status_code} with length {length}")
        else:
            logger.debug(f"Got response status {response.status_code} with indeterminate length")

        return length, response.raw

    def close(self) -> None:
        self.session.close()


# ============================================================================
# PROGRESS READING
# ============================================================================

class ByteCounter:
    """Thread-safe running total of bytes read from a source."""

    def __init__(self):
        self._lock = threading.Lock()
        self._total = 0
        self._reported = 0

    def add(self, amount: int) -> None:
        with self._lock:
            self._total += amount

    @property
    def total(self) -> int:
        with self._lock:
            return self._total

    def take_delta(self) -> Tuple[int, int]:
        """Return the total and how much it grew since the previous call."""
        with self._lock:
            delta = self._total - self._reported
            self._reported = self._total
            return self._total, delta


class ProgressReader(io.RawIOBase):
    """Raw stream that adds the size of every successful read to a counter."""

    def __init__(self, stream, counter: ByteCounter):
        super().__init__()
        self._stream = stream
        self._counter = counter

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        data = self._stream.read(len(buffer))
        amount = len(data)
        buffer[:amount] = data
        self._counter.add(amount)
        return amount

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._stream.close()
        finally:
            super().close()
