"""
Guarded HTTP fetches for URLs chosen by users or by a model.

Only http(s) URLs whose host resolves to public addresses are fetched.
Redirects are followed here, one hop at a time, so every hop is checked
again. Bodies are streamed and reading stops at a byte limit.
"""

from __future__ import annotations

import asyncio
import ipaddress
import socket

from dataclasses import dataclass

import httpx

from utils.logger import logger

MAX_REDIRECTS = 5

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


class FetchError(Exception):
    """A fetch was refused or the server answered with an error."""


class UnsafeURLError(FetchError):
    """Scheme or destination host is not allowed."""


class ResponseTooLargeError(FetchError):
    """Response body is larger than the caller's limit."""


@dataclass
class FetchedContent:
    url: str
    content: bytes
    content_type: str | None = None
    encoding: str | None = None

    @property
    def text(self) -> str:
        return self.content.decode(self.encoding or "utf-8", errors="replace")


def is_public_address(address: IPAddress) -> bool:
    """False for private, loopback, link-local, reserved and multicast addresses."""
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        address = address.ipv4_mapped
    return address.is_global and not address.is_multicast


async def resolve_addresses(host: str, port: int) -> list[IPAddress]:
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    except socket.gaierror as e:
        raise UnsafeURLError(f"Cannot resolve host {host}") from e
    return [ipaddress.ip_address(info[4][0]) for info in infos]


async def check_public_url(url: httpx.URL) -> None:
    """Raise UnsafeURLError unless ``url`` is http(s) and every address of its host is public."""
    if url.scheme not in ("http", "https"):
        raise UnsafeURLError(f"Unsupported URL scheme: {url.scheme or 'none'}")
    host = url.host
    if not host:
        raise UnsafeURLError("URL has no host")

    try:
        addresses: list[IPAddress] = [ipaddress.ip_address(host)]
    except ValueError:
        addresses = await resolve_addresses(host, url.port or (443 if url.scheme == "https" else 80))

    if not addresses or not all(is_public_address(a) for a in addresses):
        logger.warning(f"Refused fetch of non-public host {host}", host=host)
        raise UnsafeURLError(f"Host {host} is not a public address")


async def _read_limited(response: httpx.Response, max_bytes: int) -> bytes:
    declared = response.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > max_bytes:
        raise ResponseTooLargeError(f"Response is {declared} bytes (limit {max_bytes})")

    body = bytearray()
    async for chunk in response.aiter_bytes():
        body.extend(chunk)
        if len(body) > max_bytes:
            raise ResponseTooLargeError(f"Response exceeds {max_bytes} bytes")
    return bytes(body)


async def fetch_public_url(
    client: httpx.AsyncClient,
    url: str,
    max_bytes: int,
    max_redirects: int = MAX_REDIRECTS,
) -> FetchedContent:
    """GET ``url`` and return at most ``max_bytes`` of body.

    Raises:
        UnsafeURLError: the URL or a redirect target is not a public http(s) URL
        ResponseTooLargeError: the body is over ``max_bytes``
        FetchError: 4xx/5xx status or too many redirects
    """
    target = httpx.URL(url)
    for _ in range(max_redirects + 1):
        await check_public_url(target)
        async with client.stream("GET", target, follow_redirects=False) as response:
            if response.is_redirect:
                target = target.join(response.headers["location"])
                continue
            if response.status_code >= 400:
                raise FetchError(f"{response.status_code} {response.reason_phrase}")
            content = await _read_limited(response, max_bytes)
            return FetchedContent(
                url=str(target),
                content=content,
                content_type=response.headers.get("content-type"),
                encoding=response.charset_encoding,
            )
    raise FetchError(f"Too many redirects (more than {max_redirects})")
