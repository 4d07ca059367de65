"""HTTP fetching with a hard per-request deadline."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict

import httpx
import structlog

from ..config import FetchConfig
from ..infra import UserAgentPool
from .records import FailureReason


class FetchError(RuntimeError):
    """Transport-level failure carrying a machine readable reason."""

    def __init__(self, reason: FailureReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason


class FetchTimeout(FetchError):
    def __init__(self, message: str) -> None:
        super().__init__(FailureReason.TIMEOUT, message)


@dataclass(slots=True)
class FetchResponse:
    """Standardised response wrapper."""

    url: str
    status_code: int
    content: bytes
    headers: Dict[str, str] = field(default_factory=dict)


class Fetcher:
    """Fetch raw page bytes over a shared, non keep-alive httpx client.

    The client is safe to share between worker threads. Keep-alive is off and
    every request carries ``Connection: close`` so sockets are released as soon
    as a response body has been read, which keeps descriptor usage flat on
    large batches.
    """

    def __init__(
        self,
        config: FetchConfig | None = None,
        ua_pool: UserAgentPool | None = None,
        logger: structlog.BoundLogger | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.config = config or FetchConfig()
        self.ua_pool = ua_pool
        self.logger = logger or structlog.get_logger("bulk_scraper.fetcher")
        client_kwargs: dict[str, Any] = {
            "follow_redirects": self.config.follow_redirects,
            "verify": self.config.verify_ssl,
            "limits": httpx.Limits(max_keepalive_connections=0),
            "timeout": 10.0,
        }
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.Client(**client_kwargs)

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def fetch(self, url: str, timeout: float) -> FetchResponse:
        deadline = time.monotonic() + timeout
        headers = self._build_headers()
        try:
            with self._client.stream("GET", url, headers=headers, timeout=timeout) as response:
                if self._is_failure(response):
                    raise FetchError(
                        FailureReason.HTTP_STATUS, f"Unexpected status {response.status_code}"
                    )
                content = self._read_body(response, url, deadline)
                self.logger.debug(
                    "fetch_ok", url=url, status=response.status_code, size=len(content)
                )
                return FetchResponse(
                    url=str(response.url),
                    status_code=response.status_code,
                    content=content,
                    headers=dict(response.headers),
                )
        except httpx.TimeoutException as exc:
            raise FetchTimeout(f"Timed out after {timeout}s: {exc}") from exc
        except httpx.ConnectError as exc:
            raise FetchError(FailureReason.CONNECTION, str(exc)) from exc
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
            raise FetchError(FailureReason.INVALID_URL, str(exc)) from exc
        except httpx.HTTPError as exc:
            raise FetchError(FailureReason.TRANSPORT, str(exc)) from exc
        except httpx.StreamError as exc:
            raise FetchError(FailureReason.TRANSPORT, str(exc)) from exc

    def fetch_content(self, url: str, timeout: float) -> bytes:
        """Pool-facing capability: return only the body bytes."""

        return self.fetch(url, timeout).content

    # ------------------------------------------------------------------
    def _build_headers(self) -> dict[str, str]:
        headers = dict(self.config.extra_headers)
        user_agent = self.ua_pool.get() if self.ua_pool else None
        headers["User-Agent"] = user_agent or self.config.user_agent
        headers["Connection"] = "close"
        return headers

    def _read_body(self, response: httpx.Response, url: str, deadline: float) -> bytes:
        limit = self.config.max_content_bytes
        declared = response.headers.get("Content-Length")
        if limit and declared and declared.isdigit() and int(declared) > limit:
            raise FetchError(FailureReason.TOO_LARGE, f"Declared size {declared} exceeds {limit}")
        chunks: list[bytes] = []
        size = 0
        if time.monotonic() > deadline:
            raise FetchTimeout(f"Deadline passed before body of {url}")
        for chunk in response.iter_bytes():
            size += len(chunk)
            if limit and size > limit:
                raise FetchError(FailureReason.TOO_LARGE, f"Body exceeds {limit} bytes")
            if time.monotonic() > deadline:
                raise FetchTimeout(f"Deadline passed while reading {url}")
            chunks.append(chunk)
        return b"".join(chunks)

    @staticmethod
    def _is_failure(response: Any) -> bool:
        status_code = getattr(response, "status_code", 0)
        return status_code >= 400


__all__ = ["Fetcher", "FetchError", "FetchResponse", "FetchTimeout"]
