"""Pooled HTTP client used by the request/response providers.

Providers only see ``get`` / ``post`` returning the decoded body. Anything
other than a 2xx response, and any transport failure, surfaces as
UpstreamRequestError.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from urllib.parse import unquote

import requests
from requests.adapters import HTTPAdapter

from .errors import UpstreamRequestError

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 5.0
READ_TIMEOUT = 10.0
POOL_CONNECTIONS = 100
POOL_MAXSIZE = 200
MAX_ERROR_BODY = 500


def _parse_proxy(proxy: str | None) -> dict[str, str] | None:
    if not proxy:
        return None
    host, sep, port = proxy.strip().partition(":")
    if not sep or not host or not port.isdigit():
        logger.warning("Ignoring malformed proxy %r (expected host:port)", proxy)
        return None
    url = f"http://{host}:{port}"
    return {"http": url, "https": url}


class HttpClient:
    """Thin wrapper over a pooled ``requests.Session``.

    Thread-safe for the concurrent GETs the providers issue from worker
    threads. Call ``rebuild(proxy)`` to switch proxies; the old session is
    closed.
    """

    def __init__(
        self,
        proxy: str | None = None,
        timeout: tuple[float, float] = (CONNECT_TIMEOUT, READ_TIMEOUT),
    ) -> None:
        self._timeout = timeout
        self._proxy = proxy or ""
        self._session = self._build_session(proxy)

    @property
    def proxy(self) -> str:
        return self._proxy

    def _build_session(self, proxy: str | None) -> requests.Session:
        session = requests.Session()
        adapter = HTTPAdapter(pool_connections=POOL_CONNECTIONS, pool_maxsize=POOL_MAXSIZE)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        proxies = _parse_proxy(proxy)
        if proxies:
            session.proxies.update(proxies)
            logger.info("HTTP client using proxy %s", proxy)
        return session

    def rebuild(self, proxy: str | None) -> None:
        """Replace the session, e.g. after the proxy setting changed."""
        old = self._session
        self._session = self._build_session(proxy)
        self._proxy = proxy or ""
        old.close()

    def get(
        self,
        url: str,
        headers: Mapping[str, str] | None = None,
        encoding: str | None = None,
    ) -> str:
        return self._request("GET", url, headers=headers, encoding=encoding)

    def post(
        self,
        url: str,
        body: str | None = None,
        headers: Mapping[str, str] | None = None,
        encoding: str | None = None,
    ) -> str:
        data = body.encode("utf-8") if body else None
        return self._request("POST", url, headers=headers, data=data, encoding=encoding)

    def close(self) -> None:
        self._session.close()

    def _request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None,
        encoding: str | None,
        data: bytes | None = None,
    ) -> str:
        try:
            resp = self._session.request(
                method,
                url,
                headers=dict(headers) if headers else None,
                data=data,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise UpstreamRequestError(
                None,
                f"got an error from HTTP for url: {unquote(url)}",
                {"url": url},
            ) from e

        if encoding:
            resp.encoding = encoding
        text = resp.text
        if 200 <= resp.status_code < 300:
            return text

        snippet = text if len(text) <= MAX_ERROR_BODY else text[:MAX_ERROR_BODY] + "..."
        raise UpstreamRequestError(
            resp.status_code,
            f"HTTP {resp.status_code} {resp.reason} - URL: {unquote(url)}, Response: {snippet}",
            {"url": url},
        )
