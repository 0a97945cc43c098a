"""Client address resolution behind reverse proxies."""

from typing import Sequence

from starlette.requests import Request

UNKNOWN_CLIENT = "unknown"
TRUST_ALL_PROXIES = "*"


def peer_address(request: Request) -> str:
    """Socket address of the direct peer."""
    if request.client is None or not request.client.host:
        return UNKNOWN_CLIENT
    return request.client.host


def resolve_client_ip(request: Request, trusted_proxies: Sequence[str]) -> str:
    """Determine the originating client address.

    ``X-Forwarded-For`` (first entry) and then ``X-Real-IP`` are consulted
    only when the direct peer is a trusted proxy; otherwise any client could
    pick its own rate-limit key by sending the header.

    Args:
        request: Incoming request
        trusted_proxies: Peer addresses whose forwarding headers are honoured,
            or ``*`` to trust every peer

    Returns:
        Client address string
    """
    peer = peer_address(request)
    if TRUST_ALL_PROXIES not in trusted_proxies and peer not in trusted_proxies:
        return peer

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    return peer
