"""
Network Path Extraction
=======================
Derives the client IP and the proxy/CDN/load-balancer headers that describe
how a submission reached the server.
"""

from typing import Dict, Optional

from .models import RequestContext


# Standard proxy headers
PROXY_HEADERS = (
    'x-forwarded-for',
    'x-forwarded-proto',
    'x-forwarded-host',
    'x-forwarded-port',
    'x-real-ip',
    'x-client-ip',
    'true-client-ip',
    'forwarded',
)

CLOUDFLARE_HEADERS = (
    'cf-connecting-ip',
    'cf-ipcountry',
    'cf-ray',
    'cf-visitor',
    'cf-request-id',
    'cf-connecting-ipv6',
)

LOAD_BALANCER_HEADERS = (
    'x-azure-clientip',
    'x-azure-socketip',
    'x-arr-log-id',
    'x-arr-ssl',
)

CDN_HEADERS = (
    'via',
    'x-cdn',
    'x-cache',
    'x-cache-hits',
    'x-served-by',
    'x-timer',
    'x-edge-location',
)

INFORMATIONAL_HEADERS = (
    'accept-encoding',
    'accept-language',
    'connection',
    'host',
    'referer',
    'origin',
)

NETWORK_HEADER_ALLOWLIST = (
    PROXY_HEADERS
    + CLOUDFLARE_HEADERS
    + LOAD_BALANCER_HEADERS
    + CDN_HEADERS
    + INFORMATIONAL_HEADERS
)

# Any header with this prefix is captured even when not allow-listed
CAPTURED_HEADER_PREFIX = 'x-'


def extract_network_headers(context: RequestContext) -> Dict[str, str]:
    """
    Collect the network path headers present on a request.

    Allow-listed headers come first in declaration order, followed by any
    other x- header. Headers with empty values are left out.
    """
    headers: Dict[str, str] = {}

    for name in NETWORK_HEADER_ALLOWLIST:
        value = context.get(name)
        if value:
            headers[name] = value

    for name, value in context.headers.items():
        if name.startswith(CAPTURED_HEADER_PREFIX) and name not in headers and value:
            headers[name] = value

    return headers


def first_forwarded_for(value: Optional[str]) -> Optional[str]:
    """Return the leftmost (originating) address of an X-Forwarded-For chain."""
    if not value:
        return None
    return value.split(',')[0].strip() or None


def resolve_client_ip(context: RequestContext) -> Optional[str]:
    """
    Best-effort client IP, checked in priority order:

    1. cf-connecting-ip (set by the Cloudflare edge)
    2. leftmost x-forwarded-for entry
    3. x-real-ip
    4. true-client-ip
    5. transport peer address
    """
    return (
        context.get('cf-connecting-ip')
        or first_forwarded_for(context.get('x-forwarded-for'))
        or context.get('x-real-ip')
        or context.get('true-client-ip')
        or context.remote_addr
    )
