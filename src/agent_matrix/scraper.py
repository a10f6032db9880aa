"""
Metrics endpoint scraper.

One scrape is one HTTP GET. The timeout bounds the whole call: requests only
bounds each socket operation, so the request runs on a worker thread, the
body is streamed against the same deadline, and the caller stops waiting at
the deadline. A response still being read at that point has its socket shut
down so the worker ends too. Nothing is retried here.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Dict, List, Optional

import requests

from .errors import ScrapeConnectionError, ScrapeProtocolError, ScrapeTimeoutError
from .metrics import ScrapeResult, parse_lines

logger = logging.getLogger(__name__)

DEFAULT_PATH = "/metrics"
CHUNK_SIZE = 8192


class Scraper:
    """Scrape the exporter endpoint of one environment."""

    def __init__(self, host: str, port: int, path: str = DEFAULT_PATH):
        self.host = host
        self.port = port
        self.path = path if path.startswith("/") else "/" + path

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}{self.path}"

    def scrape(self, timeout_ms: int) -> List[str]:
        """
        Fetch the endpoint and return the non-empty lines of the body.

        Args:
            timeout_ms: Upper bound on the whole call, connect and read

        Raises:
            ScrapeTimeoutError: If the deadline passes
            ScrapeConnectionError: If the endpoint cannot be reached
            ScrapeProtocolError: If the response status is not 2xx
        """
        if timeout_ms <= 0:
            raise ValueError("Scrape timeout must be positive")

        timeout = timeout_ms / 1000.0
        started = time.monotonic()
        deadline = started + timeout
        inflight: Dict[str, requests.Response] = {}
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="scrape")
        try:
            future = executor.submit(self._fetch, timeout, deadline, inflight)
            body = future.result(timeout=timeout)
        except FutureTimeoutError as e:
            self._abort(inflight.get("response"))
            raise ScrapeTimeoutError(
                f"Scrape of {self.url} exceeded {timeout_ms}ms", url=self.url
            ) from e
        finally:
            executor.shutdown(wait=False)

        lines = [line for line in body.splitlines() if line.strip()]
        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.debug(f"Scraped {len(lines)} lines from {self.url} in {elapsed_ms}ms")
        return lines

    def scrape_samples(self, timeout_ms: int) -> ScrapeResult:
        """Scrape and parse every sample line."""
        return parse_lines(self.scrape(timeout_ms))

    def _fetch(self, timeout: float, deadline: float, inflight: Dict[str, requests.Response]) -> str:
        try:
            response = requests.get(self.url, timeout=(timeout, timeout), stream=True)
        except requests.exceptions.Timeout as e:
            raise ScrapeTimeoutError(f"Scrape of {self.url} timed out: {e}", url=self.url) from e
        except requests.exceptions.RequestException as e:
            raise ScrapeConnectionError(f"Cannot reach {self.url}: {e}", url=self.url) from e

        inflight["response"] = response
        with response:
            if not 200 <= response.status_code < 300:
                raise ScrapeProtocolError(
                    f"Scrape of {self.url} returned HTTP {response.status_code}",
                    url=self.url,
                    status_code=response.status_code,
                )

            chunks = []
            try:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if time.monotonic() > deadline:
                        raise ScrapeTimeoutError(
                            f"Body of {self.url} still arriving at the deadline", url=self.url
                        )
                    chunks.append(chunk)
            except requests.exceptions.Timeout as e:
                raise ScrapeTimeoutError(f"Scrape of {self.url} timed out: {e}", url=self.url) from e
            except requests.exceptions.RequestException as e:
                raise ScrapeConnectionError(
                    f"Connection to {self.url} broke mid-body: {e}", url=self.url
                ) from e

            return b"".join(chunks).decode(response.encoding or "utf-8", errors="replace")

    def _abort(self, response: Optional[requests.Response]) -> None:
        """Shut down the socket of a response the worker is still reading."""
        if response is None:
            return
        try:
            response.raw.shutdown()
        except (ValueError, RuntimeError, OSError) as e:
            # already closed or released
            logger.debug(f"Could not shut down scrape of {self.url}: {e}")

    def __repr__(self) -> str:
        return f"Scraper(url={self.url})"
