"""Streaming passthrough for background images."""
from __future__ import annotations

import logging
from typing import Iterable, Iterator, Optional, Tuple
from urllib.parse import urlparse

import requests

from context import RequestContext
from errors import InvalidInput, PrayerServiceError, ProviderUnavailable

LOGGER = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class ImagePassthrough:
    """Proxies image downloads from an allow-list of hosts."""

    def __init__(
        self,
        allowed_hosts: Iterable[str] = ("images.unsplash.com",),
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.allowed_hosts = {host.lower() for host in allowed_hosts}
        self.timeout = timeout
        self._session = session

    def fetch(self, url: str, ctx: Optional[RequestContext] = None) -> Tuple[str, Iterator[bytes]]:
        """Return the upstream content type and an iterator over the body."""
        try:
            return self._open(url, ctx or RequestContext())
        except PrayerServiceError as exc:
            LOGGER.error("images.fetch failed: %s", exc)
            raise

    def _open(self, url: str, ctx: RequestContext) -> Tuple[str, Iterator[bytes]]:
        parsed = urlparse(url or "")
        if parsed.scheme not in ("http", "https") or (parsed.hostname or "").lower() not in self.allowed_hosts:
            raise InvalidInput(f"Image host not allowed: {parsed.hostname!r}")
        ctx.raise_if_cancelled("images.fetch")

        LOGGER.debug("Requesting image %s", url)
        session = self._session or requests.Session()
        owns_session = self._session is None
        try:
            with ctx.on_cancel(session.close):
                response = session.get(url, stream=True, timeout=ctx.timeout(self.timeout))
                LOGGER.debug("Image response status: %s", response.status_code)
                response.raise_for_status()
        except requests.RequestException as exc:
            if owns_session:
                session.close()
            ctx.raise_if_cancelled("images.fetch")
            raise ProviderUnavailable(f"Image request failed: {exc}") from exc

        content_type = response.headers.get("Content-Type") or DEFAULT_CONTENT_TYPE
        return content_type, _iter_body(response, session if owns_session else None)


def _iter_body(response: requests.Response, session: Optional[requests.Session]) -> Iterator[bytes]:
    try:
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            if chunk:
                yield chunk
    finally:
        response.close()
        if session is not None:
            session.close()
