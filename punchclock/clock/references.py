"""External time references queried by the authoritative clock."""
from abc import ABC, abstractmethod
from email.utils import parsedate_to_datetime
from urllib.parse import urlsplit

import httpx
import ntplib
import structlog

log = structlog.get_logger()


class ReferenceUnavailable(Exception):
    """Raised when a reference times out, refuses the connection or answers garbage."""

    def __init__(self, reference: str, reason: str):
        super().__init__(f"{reference}: {reason}")
        self.reference = reference
        self.reason = reason


class TimeReference(ABC):
    """Abstract interface for one external source of UTC time."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Stable identifier used in logs and metric labels."""
        pass

    @abstractmethod
    def query(self, timeout: float) -> int:
        """
        Ask the reference for the current time.

        Args:
            timeout: Upper bound in seconds for this single attempt

        Returns:
            Milliseconds since the Unix epoch

        Raises:
            ReferenceUnavailable: On timeout, network error or malformed answer
        """
        pass


class NtpReference(TimeReference):
    """SNTP server queried with ntplib."""

    def __init__(self, host: str, port: int = 123, version: int = 3):
        self.host = host
        self.port = port
        self.version = version
        self._client = ntplib.NTPClient()

    @property
    def name(self) -> str:
        return f"ntp://{self.host}:{self.port}"

    def query(self, timeout: float) -> int:
        try:
            response = self._client.request(
                self.host, version=self.version, port=self.port, timeout=timeout
            )
        except ntplib.NTPException as e:
            raise ReferenceUnavailable(self.name, str(e)) from e
        except (OSError, UnicodeError) as e:
            # UnicodeError: host name the idna codec refuses, e.g. a label over 63 chars
            raise ReferenceUnavailable(self.name, f"{type(e).__name__}: {e}") from e

        epoch_ms = round(response.tx_time * 1000)
        if epoch_ms < 0:
            raise ReferenceUnavailable(self.name, f"negative transmit time {response.tx_time}")
        return epoch_ms


class HttpDateReference(TimeReference):
    """
    HTTP server whose Date header is trusted as a coarse time source.

    The header only has second resolution, so this is meant as a last resort
    behind the NTP references.
    """

    def __init__(self, url: str, transport: httpx.BaseTransport | None = None):
        self.url = url
        self._transport = transport

    @property
    def name(self) -> str:
        return self.url

    def query(self, timeout: float) -> int:
        try:
            with httpx.Client(timeout=timeout, transport=self._transport) as client:
                response = client.head(self.url)
        except httpx.HTTPError as e:
            raise ReferenceUnavailable(self.name, f"{type(e).__name__}: {e}") from e

        header = response.headers.get("date")
        if not header:
            raise ReferenceUnavailable(self.name, "response has no Date header")
        try:
            dt = parsedate_to_datetime(header)
        except (TypeError, ValueError) as e:
            raise ReferenceUnavailable(self.name, f"unparseable Date header {header!r}") from e
        if dt.tzinfo is None:
            raise ReferenceUnavailable(self.name, f"Date header without zone {header!r}")

        epoch_ms = round(dt.timestamp() * 1000)
        if epoch_ms < 0:
            raise ReferenceUnavailable(self.name, f"negative Date header {header!r}")
        return epoch_ms


def build_references(urls: list[str]) -> list[TimeReference]:
    """
    Build references from configuration URLs, keeping their priority order.

    Supported forms: ntp://host[:port], http://..., https://...

    Raises:
        ValueError: On an unknown scheme or a URL without host
    """
    references: list[TimeReference] = []
    for url in urls:
        parts = urlsplit(url)
        if not parts.hostname:
            raise ValueError(f"Time reference without host: {url!r}")
        if parts.scheme == "ntp":
            references.append(NtpReference(parts.hostname, port=parts.port or 123))
        elif parts.scheme in ("http", "https"):
            references.append(HttpDateReference(url))
        else:
            raise ValueError(f"Unsupported time reference scheme {parts.scheme!r} in {url!r}")

    log.info("clock.references_configured", references=[r.name for r in references])
    return references
