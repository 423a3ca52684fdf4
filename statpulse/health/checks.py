"""
Health checks - Bounded-time probing of a single endpoint.

probe_endpoint() performs exactly one GET per call and always returns a
ProbeResult. Transport failures and timeouts are recorded on the result,
never raised; HTTP error statuses and unexpected content types only flip
the `ok` / `content_type_valid` flags.
"""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, List, Mapping, Optional

import requests  # type: ignore
from urllib3.exceptions import ReadTimeoutError  # type: ignore

from statpulse.health.endpoints import empty_metric, extract_metric
from statpulse.health.models import EndpointDescriptor, ProbeResult
from statpulse.health.transport import CancellableAdapter, build_session

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 15_000
CHUNK_SIZE = 64 * 1024
USER_AGENT = "StatPulse-HealthCheck/1.0"

# SIS-CC NSIs answer with application/xml or application/vnd.sdmx.* types;
# HTML error pages from proxies must not pass.
VALID_CONTENT_TYPE_MARKERS = ("xml", "sdmx")

Clock = Callable[[], float]


class DeadlineExceeded(requests.exceptions.Timeout):
    """The response was not fully received before the probe deadline."""


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    if now is None:
        now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def check_status(status_code: int) -> bool:
    """
    Check if HTTP status code is successful.

    Args:
        status_code: HTTP status code

    Returns:
        True if status code is 200-299
    """
    return 200 <= status_code <= 299


def get_content_type(headers: Mapping[str, str]) -> str:
    """Content-Type header value, looked up case-insensitively."""
    for key, value in headers.items():
        if key.lower() == "content-type":
            return value or ""
    return ""


def check_content_type(headers: Mapping[str, str]) -> bool:
    """
    Check if Content-Type looks like an XML/SDMX payload.

    Args:
        headers: Response headers

    Returns:
        True if Content-Type contains "xml" or "sdmx" (any case)
    """
    content_type = get_content_type(headers).lower()
    return any(marker in content_type for marker in VALID_CONTENT_TYPE_MARKERS)


def size_kb(content: bytes) -> float:
    """Byte length of content in KB, rounded to 2 decimals."""
    return round(len(content) / 1024, 2)


def _elapsed_ms(started: float, now: float) -> int:
    return int(round((now - started) * 1000))


def _read_body(response: requests.Response, deadline: float, clock: Clock) -> bytes:
    """
    Read the whole (streamed) body, giving up once the deadline passes.

    Raises:
        DeadlineExceeded: If the deadline passes, or a socket read times
                          out, before the body is complete
    """
    chunks: List[bytes] = []
    if clock() > deadline:
        raise DeadlineExceeded("Deadline passed before the body was read")
    try:
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            if clock() > deadline:
                raise DeadlineExceeded("Deadline passed while reading the body")
            chunks.append(chunk)
    except requests.exceptions.ConnectionError as e:
        # requests reports read timeouts during iter_content as ConnectionError
        if e.args and isinstance(e.args[0], ReadTimeoutError):
            raise DeadlineExceeded("Read timed out while reading the body") from e
        raise
    return b"".join(chunks)


def probe_endpoint(
    endpoint: EndpointDescriptor,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
    session_factory: Callable[[], requests.Session] = requests.Session,
    clock: Clock = time.monotonic,
) -> ProbeResult:
    """
    Probe one endpoint with a single bounded-time GET.

    A timer armed for timeout_ms aborts the request's connections wherever
    it is blocked (connect, headers or body). The connect and read timeouts
    are also set to timeout_ms and the body is read against the same
    deadline. The timer is disarmed, and the response and session closed,
    before returning.

    Args:
        endpoint: Endpoint to probe
        timeout_ms: Hard timeout for the whole request in milliseconds
        session_factory: Creates the requests session used for this probe
        clock: Monotonic clock in seconds

    Returns:
        ProbeResult with a not-detected anomaly verdict

    Raises:
        ValueError: If the endpoint has no URL
    """
    if not endpoint.url:
        raise ValueError(f"Endpoint {endpoint.name!r} has no URL")

    result = ProbeResult(
        endpoint=endpoint.name,
        url=endpoint.url,
        timestamp=utc_timestamp(),
        extra_metric=empty_metric(endpoint.metric),
    )

    timeout_s = timeout_ms / 1000
    adapter = CancellableAdapter()
    http = build_session(adapter, session_factory)
    timer = threading.Timer(timeout_s, adapter.cancel)
    timer.daemon = True
    response = None

    logger.info("Checking %s - %s", endpoint.name, endpoint.url)
    started = clock()
    deadline = started + timeout_s
    timer.start()

    try:
        response = http.get(
            endpoint.url,
            timeout=(timeout_s, timeout_s),
            stream=True,
            allow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        )
        response_time_ms = _elapsed_ms(started, clock())
        content = _read_body(response, deadline, clock)
    except requests.exceptions.RequestException as e:
        result.response_time_ms = _elapsed_ms(started, clock())
        if adapter.cancelled or isinstance(e, requests.exceptions.Timeout):
            result.error = f"Request timed out after {timeout_ms}ms"
        else:
            result.error = str(e) or type(e).__name__
        logger.error("%s failed: %s", endpoint.name, result.error)
        return result
    finally:
        timer.cancel()
        timer.join()
        if response is not None:
            response.close()
        http.close()
        adapter.close()

    headers = response.headers
    body = content.decode("utf-8", errors="replace")

    result.status = response.status_code
    result.ok = check_status(response.status_code)
    result.response_time_ms = response_time_ms
    result.content_type_valid = check_content_type(headers)
    result.response_size_kb = size_kb(content)
    result.extra_metric = extract_metric(endpoint.metric, body)

    if not result.ok:
        logger.warning("%s returned HTTP %d", endpoint.name, response.status_code)
    elif not result.content_type_valid:
        logger.warning(
            "%s returned unexpected Content-Type: %s",
            endpoint.name,
            get_content_type(headers),
        )
    else:
        logger.info(
            "%s OK - %dms, %.2fKB",
            endpoint.name,
            response_time_ms,
            result.response_size_kb,
        )

    return result
