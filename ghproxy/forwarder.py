"""Upstream fetch and response streaming for validated target URLs."""

import logging
from urllib.parse import urljoin, urlsplit

import requests
import urllib3

from ghproxy.errors import DisallowedRedirect, ResponseTooLarge, UpstreamError
from ghproxy.guard import host_of

logger = logging.getLogger(__name__)

MAX_REDIRECTS = 10
CHUNK_SIZE = 64 * 1024

BROWSER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Accept-Encoding": "gzip, deflate, br",
    "DNT": "1",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
}
_BROWSER_HEADER_NAMES = frozenset(name.lower() for name in BROWSER_HEADERS)

EXCLUDED_REQUEST_HEADERS = frozenset({
    "host",
    "x-forwarded-for",
    "x-real-ip",
    "content-length",
    "transfer-encoding",
})

HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "trailers",
    "transfer-encoding",
    "upgrade",
})


class GuardedSession(requests.Session):
    """A session that asks the domain guard before following each redirect."""

    def __init__(self, guard, max_redirects=MAX_REDIRECTS):
        super().__init__()
        self.guard = guard
        self.max_redirects = max_redirects

    def get_redirect_target(self, resp):
        location = super().get_redirect_target(resp)
        if location:
            target = urljoin(resp.url, location)
            host = host_of(urlsplit(target))
            if not self.guard.allowed(host):
                logger.warning("redirect to unsupported host: %s", target)
                resp.close()
                raise DisallowedRedirect(f"redirect to unsupported host: {host}")
            logger.info("following redirect: %s -> %s", resp.url, target)
        return location


class Forwarder:
    def __init__(self, config, guard, session_factory=None):
        self.config = config
        self.guard = guard
        self.session_factory = session_factory or GuardedSession

    def build_headers(self, inbound_headers):
        headers = {}
        for name, value in inbound_headers:
            lname = name.lower()
            if lname in EXCLUDED_REQUEST_HEADERS or lname in _BROWSER_HEADER_NAMES:
                continue
            if name in headers:
                headers[name] = f"{headers[name]}, {value}"
            else:
                headers[name] = value
        headers.update(BROWSER_HEADERS)
        return headers

    def fetch(self, method, url, headers, body=None):
        with self.session_factory(self.guard) as session:
            try:
                upstream = session.request(
                    method,
                    url,
                    headers=headers,
                    data=body or None,
                    stream=True,
                    allow_redirects=True,
                    timeout=self.config.upstream_timeout,
                )
            except requests.TooManyRedirects as e:
                raise UpstreamError(f"request failed: too many redirects ({e})")
            except requests.RequestException as e:
                raise UpstreamError(f"request failed: {e}")

        self.check_size(upstream)
        return upstream

    def check_size(self, upstream):
        content_length = upstream.headers.get("Content-Length")
        if not content_length:
            return
        try:
            size = int(content_length)
        except ValueError:
            return

        limit = self.config.size_limit_bytes
        if size > limit:
            upstream.close()
            raise ResponseTooLarge(
                f"file size {size // (1024 * 1024)} MB exceeds the limit of {self.config.size_limit_mb} MB"
            )
        logger.info("file size: %d MB", size // (1024 * 1024))

    def response_headers(self, upstream):
        return [
            (name, value)
            for name, value in upstream.raw.headers.items()
            if name.lower() not in HOP_BY_HOP_HEADERS
        ]

    def stream(self, upstream, chunk_size=CHUNK_SIZE):
        """Yield the upstream body exactly as received, without decompressing it."""
        try:
            for chunk in upstream.raw.stream(chunk_size, decode_content=False):
                if chunk:
                    yield chunk
        except (urllib3.exceptions.HTTPError, OSError) as e:
            logger.error("failed to copy response body from %s: %s", upstream.url, e)
        except GeneratorExit:
            logger.warning("client disconnected while streaming %s", upstream.url)
            raise
        finally:
            upstream.close()
