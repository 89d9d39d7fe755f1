"""
URL safety - keeps QR payloads from steering the pipeline at internal hosts (SSRF).
"""
import ipaddress
import logging
import socket
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

# Blocked hostnames (case-insensitive)
BLOCKED_HOSTNAMES = {
    'localhost',
    'localhost.localdomain',
    'ip6-localhost',
    'ip6-loopback',
}


def is_ip_blocked(ip_str: str) -> bool:
    """Check if an IP address is internal/blocked for SSRF protection."""
    try:
        ip = ipaddress.ip_address(ip_str)
        # Block private, loopback, link-local, reserved, and multicast addresses
        return (
            ip.is_private or
            ip.is_loopback or
            ip.is_link_local or
            ip.is_reserved or
            ip.is_multicast or
            ip.is_unspecified
        )
    except ValueError:
        return False


def is_host_blocked(hostname: str | None) -> bool:
    """Hostname check without DNS: localhost names and internal IP literals."""
    if not hostname:
        return True
    hostname = hostname.lower().strip("[]")
    return hostname in BLOCKED_HOSTNAMES or is_ip_blocked(hostname)


def is_url_safe(url: str) -> tuple[bool, str]:
    """
    Validate URL to prevent SSRF attacks.
    Returns (is_safe, error_message).
    """
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError:
        return False, "网址格式不正确"

    if parsed.scheme not in ('http', 'https'):
        return False, f"不支持的网址协议: {parsed.scheme}"

    if not hostname:
        return False, "网址缺少主机名"

    if is_host_blocked(hostname):
        return False, "禁止访问内部网络地址"

    try:
        ipaddress.ip_address(hostname)
        return True, ""
    except ValueError:
        pass

    # Not an IP, it's a hostname - resolve and check
    try:
        addr_info = socket.getaddrinfo(hostname, None, socket.AF_UNSPEC, socket.SOCK_STREAM)
    except socket.gaierror:
        # Can't resolve - let the request fail naturally
        return True, ""

    for family, _, _, _, sockaddr in addr_info:
        if is_ip_blocked(sockaddr[0]):
            logger.warning(f"Host {hostname} resolves to internal address {sockaddr[0]}")
            return False, "禁止访问内部网络地址"

    return True, ""
