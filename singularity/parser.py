"""Line parsers for the supported adlist formats.

Every parser takes a line that has already been trimmed and returns the
candidate domain in it, or ``None`` if the line holds nothing usable.
"""

import ipaddress
import re
from typing import Callable, Dict, Optional

from .adlist import AdlistFormat

# Pre-compiled regex patterns
DNSMASQ_PATTERN = re.compile(r'(?:address|server)=/(.*)/.*')


def _parse_ip(value: str):
    try:
        return ipaddress.ip_address(value)
    except ValueError:
        return None


def parse_hosts_line(line: str) -> Optional[str]:
    """Parse a ``<unspecified address> <host>`` line."""
    address, sep, host = line.partition(' ')
    if not sep:
        return None

    address = _parse_ip(address)
    # the address only marks the line as a blackhole entry, it's never reused
    if address is None or not address.is_unspecified:
        return None

    host = host.strip()
    if _parse_ip(host) is not None:
        return None

    return host


def parse_domains_line(line: str) -> Optional[str]:
    return line


def parse_dnsmasq_line(line: str) -> Optional[str]:
    """Parse an ``address=/<host>/...`` or ``server=/<host>/...`` line."""
    match = DNSMASQ_PATTERN.search(line)
    if match:
        return match.group(1).strip()
    return None


PARSERS: Dict[AdlistFormat, Callable[[str], Optional[str]]] = {
    AdlistFormat.HOSTS: parse_hosts_line,
    AdlistFormat.DOMAINS: parse_domains_line,
    AdlistFormat.DNSMASQ: parse_dnsmasq_line,
}


def parse_line(line: str, adlist_format: AdlistFormat) -> Optional[str]:
    """Extract the candidate domain from a raw line in the given format.

    Comments and blank lines never yield a candidate.
    """
    line = line.strip()
    if not line or line.startswith('#'):
        return None
    return PARSERS[adlist_format](line)
