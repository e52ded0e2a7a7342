"""Single-shot HTTP probes with optional content and TLS certificate checks."""

import logging
import socket
import ssl
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import replace
from datetime import UTC, datetime
from urllib.parse import urlparse

import requests

from .models import ProbeResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10

# Certificate inspection always dials the standard HTTPS port, whatever
# port the probed URL uses.
TLS_PORT = 443

# Maximum response body size read for content validation (1MB).
MAX_BODY_SIZE = 1024 * 1024

_CHUNK_SIZE = 8192

_session = requests.Session()
_session.headers["User-Agent"] = "healthwatch/0.1"


def tls_host(url: str) -> str | None:
    """Return the bare host of a URL for TLS inspection.

    Scheme, credentials, path and port are stripped; IPv6 literals come back
    without brackets. Returns None when the URL has no host.
    """
    try:
        return urlparse(url).hostname or None
    except ValueError:
        return None


def get_ssl_expiry(url: str, timeout: float) -> datetime | None:
    """Read the leaf certificate expiry of an https URL's host.

    Opens its own TLS connection to ``host:443``. Any failure (non-https URL,
    DNS, refused connection, handshake or verification error) yields None.

    Args:
        url: The URL whose host to inspect.
        timeout: Connect and handshake timeout in seconds.

    Returns:
        Certificate ``notAfter`` as an aware UTC datetime, or None.
    """
    if urlparse(url).scheme != "https":
        return None

    host = tls_host(url)
    if host is None:
        return None

    context = ssl.create_default_context()
    try:
        with socket.create_connection((host, TLS_PORT), timeout=timeout) as sock:
            with context.wrap_socket(sock, server_hostname=host) as tls_sock:
                cert = tls_sock.getpeercert()
        not_after = cert.get("notAfter") if cert else None
        if not not_after:
            logger.debug("No certificate expiry returned by %s", host)
            return None
        return datetime.fromtimestamp(ssl.cert_time_to_seconds(not_after), tz=UTC)
    except (OSError, ValueError) as e:
        logger.debug("TLS inspection failed for %s: %s", host, e)
        return None


def _read_body(response: requests.Response, deadline: float) -> bytes:
    """Read up to MAX_BODY_SIZE bytes of a streamed response body before ``deadline``.

    Raises:
        requests.Timeout: If the deadline passes between chunks.
    """
    chunks: list[bytes] = []
    size = 0
    for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
        chunks.append(chunk)
        size += len(chunk)
        if size >= MAX_BODY_SIZE:
            break
        if time.monotonic() > deadline:
            raise requests.Timeout("deadline exceeded while reading body")
    return b"".join(chunks)[:MAX_BODY_SIZE]


def _exchange(
    url: str,
    expected_content: str,
    timeout: int,
    start: float,
    responses: list[tuple[requests.Response, int]],
) -> ProbeResult:
    """Send the request and classify the response, without TLS inspection.

    The response and its latency are appended to ``responses`` as soon as
    headers arrive so the caller can abort the read once the overall
    deadline passes.
    """
    deadline = start + timeout

    try:
        response = _session.get(url, timeout=(timeout // 2, timeout), stream=True)
    except requests.RequestException as e:
        return ProbeResult(ok=False, error_message=f"Failed to get server status: {e}")
    latency_ms = int((time.monotonic() - start) * 1000)
    responses.append((response, latency_ms))

    with response:
        status_code = response.status_code

        if not 200 <= status_code < 300:
            return ProbeResult(
                ok=False,
                status_code=status_code,
                latency_ms=latency_ms,
                error_message=f"Status code {status_code} is not successful",
            )

        if not expected_content:
            return ProbeResult(ok=True, status_code=status_code, latency_ms=latency_ms)

        try:
            body = _read_body(response, deadline)
        except requests.RequestException as e:
            return ProbeResult(
                ok=False,
                status_code=status_code,
                latency_ms=latency_ms,
                error_message=f"Failed to read response body: {e}",
            )

    if expected_content.encode("utf-8") not in body:
        return ProbeResult(
            ok=False,
            status_code=status_code,
            latency_ms=latency_ms,
            error_message="Expected content not found in response",
        )

    return ProbeResult(ok=True, status_code=status_code, latency_ms=latency_ms, content_matched=True)


def _abort(response: requests.Response) -> None:
    """Wake a worker blocked reading ``response`` by shutting its socket down.

    Closing the response from this thread would wait on the reader's buffer
    lock, so the socket is shut down instead; the worker then fails its read
    and closes the response itself. Its result is discarded.
    """
    connection = getattr(response.raw, "connection", None)
    sock = getattr(connection, "sock", None)
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError as e:
        logger.debug("Failed to abort probe connection: %s", e)


def probe(url: str, expected_content: str = "", timeout: int = DEFAULT_TIMEOUT) -> ProbeResult:
    """Perform a single GET against a target and classify the outcome.

    The probe succeeds when a response arrives with a 2xx status and, if
    ``expected_content`` is set, the body contains it as a literal,
    case-sensitive substring. Latency runs from the start of the request
    until the response headers arrive.

    ``timeout`` bounds the whole exchange, body included. requests only
    applies its timeout to each socket read, so the exchange runs in a
    worker thread that is abandoned, and its connection shut down, once the
    deadline passes.

    Args:
        url: Full http(s) URL to probe.
        expected_content: Substring required in the body; empty disables the check.
        timeout: Total timeout in seconds; half of it bounds connect and TLS handshake.

    Returns:
        ProbeResult describing the outcome. Never raises for network errors.
    """
    start = time.monotonic()
    responses: list[tuple[requests.Response, int]] = []

    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="probe")
    future = executor.submit(_exchange, url, expected_content, timeout, start, responses)
    executor.shutdown(wait=False)

    try:
        result = future.result(timeout=timeout)
    except FutureTimeoutError:
        if not responses:
            logger.debug("Probe of %s timed out waiting for response headers", url)
            return ProbeResult(ok=False, error_message=f"Failed to get server status: timed out after {timeout}s")

        response, latency_ms = responses[0]
        _abort(response)
        return ProbeResult(
            ok=False,
            status_code=response.status_code,
            latency_ms=latency_ms,
            error_message=f"Failed to read response body: timed out after {timeout}s",
        )

    if not result.ok:
        return result
    return replace(result, ssl_expiry=get_ssl_expiry(url, timeout // 2))
