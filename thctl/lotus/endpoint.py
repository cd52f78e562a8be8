#!/usr/bin/env python3
"""
Endpoint Resolver
Turns configured node addresses (URLs or multiaddresses) into HTTP RPC URLs
"""

import ipaddress
import logging
from typing import Tuple
from urllib.parse import urlparse

from ..exceptions import InvalidRequestError

logger = logging.getLogger(__name__)

RPC_PATH = "/rpc/v0"

_HOST_PROTOCOLS = ("ip4", "ip6", "dns", "dns4", "dns6")
_PLAIN_TRANSPORTS = ("http", "ws")
_SECURE_TRANSPORTS = ("https", "wss", "tls")


def _parse_port(text: str, raw: str) -> int:
    if not text.isdigit():
        raise InvalidRequestError(f"invalid tcp port in address {raw!r}")
    port = int(text)
    if not 0 < port < 65536:
        raise InvalidRequestError(f"tcp port out of range in address {raw!r}")
    return port


def _parse_host(protocol: str, value: str, raw: str) -> str:
    if protocol == "ip4":
        try:
            return str(ipaddress.IPv4Address(value))
        except ValueError:
            raise InvalidRequestError(f"invalid ip4 address in {raw!r}")
    if protocol == "ip6":
        try:
            return f"[{ipaddress.IPv6Address(value)}]"
        except ValueError:
            raise InvalidRequestError(f"invalid ip6 address in {raw!r}")
    if not value or "/" in value:
        raise InvalidRequestError(f"invalid dns name in {raw!r}")
    return value


def resolve_multiaddr(raw: str) -> str:
    """
    Convert '/ip4/1.2.3.4/tcp/1234[/http]' style addresses into 'http://1.2.3.4:1234/rpc/v0'

    Raises:
        InvalidRequestError: if the address is not a host + tcp port multiaddress
    """
    parts = raw.strip("/").split("/")
    if len(parts) < 4:
        raise InvalidRequestError(f"incomplete multiaddress {raw!r}")

    protocol, host_value, transport, port_text = parts[:4]
    if protocol not in _HOST_PROTOCOLS:
        raise InvalidRequestError(f"unsupported multiaddress protocol {protocol!r} in {raw!r}")
    if transport != "tcp":
        raise InvalidRequestError(f"multiaddress {raw!r} has no tcp component")

    host = _parse_host(protocol, host_value, raw)
    port = _parse_port(port_text, raw)

    scheme = "http"
    for extra in parts[4:]:
        if extra in _SECURE_TRANSPORTS:
            scheme = "https"
        elif extra not in _PLAIN_TRANSPORTS:
            raise InvalidRequestError(f"unsupported multiaddress component {extra!r} in {raw!r}")

    return f"{scheme}://{host}:{port}{RPC_PATH}"


def resolve_endpoint(raw: str) -> str:
    """
    Normalize a configured endpoint into an HTTP(S) URL

    HTTP(S) URLs are returned unchanged, websocket URLs are switched to the
    matching HTTP scheme and multiaddresses are converted.

    Raises:
        InvalidRequestError: if the endpoint cannot be parsed
    """
    endpoint = (raw or "").strip()
    if not endpoint:
        raise InvalidRequestError("empty endpoint")

    if endpoint.startswith("/"):
        url = resolve_multiaddr(endpoint)
        logger.debug(f"Resolved multiaddress {endpoint} to {url}")
        return url

    parsed = urlparse(endpoint)
    if not parsed.netloc:
        raise InvalidRequestError(f"cannot parse endpoint {raw!r}")
    if parsed.scheme in ("http", "https"):
        return endpoint
    if parsed.scheme in ("ws", "wss"):
        return parsed._replace(scheme="https" if parsed.scheme == "wss" else "http").geturl()
    raise InvalidRequestError(f"unsupported endpoint scheme {parsed.scheme!r}")


def parse_api_info(api_info: str) -> Tuple[str, str]:
    """
    Split a node API-info string 'TOKEN:/ip4/127.0.0.1/tcp/1234/http' into (url, token)

    A string without a token prefix yields an empty token.
    """
    text = (api_info or "").strip()
    token, separator, address = text.partition(":")
    if text.startswith("/") or not separator or address.startswith("//"):
        return resolve_endpoint(text), ""
    if not address.startswith("/"):
        raise InvalidRequestError("malformed API info string")
    return resolve_endpoint(address), token
