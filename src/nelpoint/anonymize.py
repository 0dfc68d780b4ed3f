from __future__ import annotations

import ipaddress
from typing import Union

from nelpoint.errors import AddressMaskError

IPV4_PREFIX = 28
IPV6_PREFIX = 56

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


def truncate_ip_to_prefix(ip: IPAddress) -> str:
    """
    Truncate an address to a privacy safe network and return it in CIDR form,
    e.g. 198.51.100.37 -> 198.51.100.32/28.

    IPv4 keeps 28 bits, IPv6 keeps 56.
    """
    if isinstance(ip, ipaddress.IPv4Address):
        prefix = IPV4_PREFIX
    elif isinstance(ip, ipaddress.IPv6Address):
        prefix = IPV6_PREFIX
    else:
        raise AddressMaskError(f"not an IP address: {ip!r}")

    try:
        net = ipaddress.ip_network(f"{ip}/{prefix}", strict=False)
    except ValueError as e:
        raise AddressMaskError(str(e)) from e
    return str(net)
