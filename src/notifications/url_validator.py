"""
Webhook destination checks.

A watch query's webhook is called from inside our network, so it must only
ever point at public addresses: no loopback, private, link-local, or cloud
metadata endpoints.
"""

from __future__ import annotations

import ipaddress
import re
import socket
from typing import List
from urllib.parse import urlparse

MAX_URL_LENGTH = 2048

BLOCKED_HOSTNAMES = {
    "localhost",
    "metadata",
    "metadata.google.internal",
    "metadata.azure.internal",
    "instance-data",
    "instance-data.ec2.internal",
}

BLOCKED_SUFFIXES = (".localhost", ".local", ".internal")


class UnsafeWebhookURLError(ValueError):
    """The webhook URL is malformed or resolves to a non-public address."""


def _resolve_host(hostname: str, port: int) -> List[str]:
    try:
        infos = socket.getaddrinfo(hostname, port, proto=socket.IPPROTO_TCP)
    except socket.gaierror as e:
        raise UnsafeWebhookURLError(f"Webhook host {hostname!r} does not resolve: {e}") from e
    return [info[4][0] for info in infos]


def _check_address(address: str) -> None:
    ip = ipaddress.ip_address(address.split("%", 1)[0])
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    if (
        not ip.is_global
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_private
        or ip.is_multicast
        or ip.is_reserved
        or ip.is_unspecified
    ):
        raise UnsafeWebhookURLError(f"Webhook address {address} is not a public address")


def validate_webhook_url(url: str) -> str:
    """Return the stripped URL, or raise ``UnsafeWebhookURLError``."""
    url = (url or "").strip()
    if not url:
        raise UnsafeWebhookURLError("Webhook URL is required")
    if len(url) > MAX_URL_LENGTH:
        raise UnsafeWebhookURLError(f"Webhook URL too long (max {MAX_URL_LENGTH} characters)")
    if re.search(r'[<>"\s]', url):
        raise UnsafeWebhookURLError("Webhook URL contains invalid characters")

    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise UnsafeWebhookURLError("Webhook URL must use HTTP or HTTPS scheme")
    if parsed.username or parsed.password:
        raise UnsafeWebhookURLError("Webhook URL must not embed credentials")

    hostname = (parsed.hostname or "").rstrip(".").lower()
    if not hostname:
        raise UnsafeWebhookURLError("Webhook URL must include a host")
    if hostname in BLOCKED_HOSTNAMES or hostname.endswith(BLOCKED_SUFFIXES):
        raise UnsafeWebhookURLError(f"Webhook host {hostname!r} is not allowed")

    try:
        port = parsed.port or (443 if parsed.scheme == "https" else 80)
    except ValueError as e:
        raise UnsafeWebhookURLError(f"Webhook URL has an invalid port: {e}") from e

    try:
        addresses = [str(ipaddress.ip_address(hostname))]
    except ValueError:
        addresses = _resolve_host(hostname, port)

    if not addresses:
        raise UnsafeWebhookURLError(f"Webhook host {hostname!r} does not resolve")
    for address in addresses:
        _check_address(address)
    return url
