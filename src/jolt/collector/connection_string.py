"""
Parser for server connection strings of the form

    HostName:AppName@Host:Port[@User[:Password]]

Host must be an IP literal. Anything after the first ':' of the
credentials segment is the password, so passwords may contain ':' and '@'.
"""

from __future__ import annotations

import ipaddress
import logging
from typing import Iterable, List

from jolt.accumulator import Accumulator
from jolt.errors import ConfigError
from jolt.metrics import ServerDescriptor

log = logging.getLogger(__name__)

MAX_PORT = 65535


def _parse_port(text: str) -> int:
    """Plain ASCII decimal digits, anything else is -1."""
    if not (text.isascii() and text.isdigit()):
        return -1
    return int(text)


def parse_server(conn: str) -> ServerDescriptor:
    """Parse one connection string. Raises ConfigError when it is malformed."""
    segments = conn.split("@")
    if len(segments) < 2:
        raise ConfigError(f"Server [{conn}], skipping")

    names = segments[0].split(":")
    if len(names) != 2 or not names[0] or not names[1]:
        raise ConfigError(f"Server[HostName:AppName] [{segments[0]}], skipping")

    address = segments[1]
    host_port = address.split(":")
    if len(host_port) != 2:
        raise ConfigError(f"Server[Host:Port] [{address}], skipping")

    try:
        ipaddress.ip_address(host_port[0])
    except ValueError:
        raise ConfigError(f"Server[Host:Port] [{address}], skipping") from None

    port = _parse_port(host_port[1])
    if port < 0 or port > MAX_PORT:
        raise ConfigError(f"Server[Host:Port] [{address}], skipping")

    user = password = ""
    if len(segments) > 2:
        user, _, password = "@".join(segments[2:]).partition(":")

    return ServerDescriptor(
        host_name=names[0],
        app_name=names[1],
        address=address,
        user_name=user,
        password=password,
    )


def parse_servers(conns: Iterable[str], acc: Accumulator) -> List[ServerDescriptor]:
    """Parse every connection string, reporting bad ones and keeping the rest."""
    conns = list(conns)
    servers: List[ServerDescriptor] = []
    for conn in conns:
        try:
            servers.append(parse_server(conn))
        except ConfigError as e:
            acc.add_error(e)
    log.debug("Parsed %d of %d servers", len(servers), len(conns))
    return servers
