"""Error types raised by Singularity."""

from typing import Optional


class SingularityError(Exception):
    """Base class for every error Singularity raises."""


class RequestFailed(SingularityError):
    """An HTTP request returned a non-2xx status."""

    def __init__(self, code: int, body: str):
        super().__init__(f"The HTTP request failed with status code {code}. Body: {body}")
        self.code = code
        self.body = body


class InvalidResponse(SingularityError):
    """An HTTP response carried malformed metadata."""

    def __init__(self, detail: str):
        super().__init__(f"The HTTP response was invalid: {detail}")
        self.detail = detail


class UnsupportedUrlScheme(SingularityError):
    """An adlist source uses a scheme other than http, https or file."""

    def __init__(self, scheme: str):
        super().__init__(f"Unsupported URL scheme: {scheme}")
        self.scheme = scheme


class InvalidFilePath(SingularityError):
    """A file:// source URL could not be turned into a filesystem path."""

    def __init__(self, url: str):
        super().__init__(f"Invalid file path: {url}")
        self.url = url


class EmptyDestination(SingularityError):
    def __init__(self):
        super().__init__("Invalid output: empty destination path")


class EmptyMetricName(SingularityError):
    def __init__(self):
        super().__init__("Invalid output: PDNS Lua Script metric name is empty while metric is enabled")


class InvalidIpAddress(SingularityError):
    def __init__(self, address: object):
        super().__init__(f"Invalid IP address: {address!r}")
        self.address = address


class IoError(SingularityError):
    """Wraps an underlying filesystem error."""

    def __init__(self, error: OSError):
        super().__init__(str(error))
        self.error = error


class HttpError(SingularityError):
    """Wraps a transport failure that isn't otherwise classified."""

    def __init__(self, error: Exception):
        super().__init__(str(error))
        self.error = error


class UrlError(SingularityError):
    def __init__(self, url: str, detail: Optional[str] = None):
        message = f"Invalid URL: {url}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)
        self.url = url
        self.detail = detail


class InvalidConfig(SingularityError):
    """The configuration file is missing or malformed."""

    def __init__(self, detail: str):
        super().__init__(f"Invalid configuration: {detail}")
        self.detail = detail
