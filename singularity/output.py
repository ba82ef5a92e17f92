"""Outputs: the files blackholed domains are written into.

An output has a type, a destination path, a blackhole address and a
deduplication setting. When Singularity runs, each output is *activated*: a
staging file is created next to the destination and the type's primer is
written into it. Domains are then written one by one, and once every source has
been read the output is *finalised*: the type's trailer is appended and the
staging file replaces the destination in one rename. The destination therefore
always holds either the previous complete run or the new one.
"""

import ipaddress
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from datetime import datetime
from typing import Any, BinaryIO, Dict, Optional, Set, Tuple, Union

from .constants import (
    APP_NAME,
    DEFAULT_BLACKHOLE_ADDRESS_V4,
    DEFAULT_DEDUPLICATE,
    DEFAULT_METRIC_NAME,
    DEFAULT_OUTPUT_METRIC,
    VERSION,
)
from .errors import EmptyDestination, EmptyMetricName, InvalidConfig, InvalidIpAddress, IoError

logger = logging.getLogger(__name__)

PathType = Union[str, bytes, 'os.PathLike[Any]']
IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

PDNS_LUA_PRIMER = b"b=newDS() b:add{"
DEFAULT_FILE_MODE = 0o644


def get_generated_at_comment() -> str:
    return f"Generated at {datetime.now().astimezone().isoformat()} with {APP_NAME} v{VERSION}"


def parse_blackhole_address(address) -> IPAddress:
    if isinstance(address, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        return address
    try:
        return ipaddress.ip_address(address)
    except ValueError:
        raise InvalidIpAddress(address) from None


# ============================================================================
# OUTPUT TYPES
# ============================================================================

@dataclass(frozen=True)
class HostsOutput:
    """A hosts-file, ``0.0.0.0 example.com`` per line.

    The contents of every path in ``include`` are appended after the domains,
    in order.
    """
    include: Tuple[bytes, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'include', tuple(os.fsencode(path) for path in self.include))

    def __str__(self) -> str:
        return "Hosts-file"

    def write_primer(self, stream: BinaryIO) -> None:
        stream.write(f"# {get_generated_at_comment()}\n".encode('utf-8'))

    def write_domain(self, stream: BinaryIO, domain: str, address: IPAddress) -> None:
        stream.write(f"{address} {domain}\n".encode('utf-8'))

    def write_trailer(self, stream: BinaryIO, address: IPAddress) -> None:
        for path in self.include:
            with open(path, 'rb') as include_file:
                stream.write(b"\n# hosts included from " + path + b"\n\n")
                shutil.copyfileobj(include_file, stream)


@dataclass(frozen=True)
class PdnsLuaOutput:
    """A PowerDNS Recursor Lua script.

    The script holds the domains in a domain set and defines ``preresolve()``,
    which answers queries for any of them with the blackhole address. With
    ``output_metric`` on, every blackholed query also increments the metric
    named ``metric_name``.
    """
    output_metric: bool = DEFAULT_OUTPUT_METRIC
    metric_name: str = DEFAULT_METRIC_NAME

    def __str__(self) -> str:
        return "Recursor Lua script"

    def write_primer(self, stream: BinaryIO) -> None:
        stream.write(f"-- {get_generated_at_comment()}\n".encode('utf-8') + PDNS_LUA_PRIMER)

    def write_domain(self, stream: BinaryIO, domain: str, address: IPAddress) -> None:
        # drop any comment trailing the domain
        domain = domain.split('#', 1)[0].rstrip()
        stream.write(f'"{domain}",'.encode('utf-8'))

    def write_trailer(self, stream: BinaryIO, address: IPAddress) -> None:
        record = 'A' if address.version == 4 else 'AAAA'
        trailer = (
            "} function preresolve(q) if b:check(q.qname) then "
            f"if q.qtype==pdns.{record} then q:addAnswer(pdns.{record},\"{address}\") "
        )
        if self.output_metric:
            trailer += f"m=getMetric(\"{self.metric_name}\") m:inc() "
        trailer += "return true end end return false end\n"
        stream.write(trailer.encode('utf-8'))


OutputType = Union[HostsOutput, PdnsLuaOutput]

OUTPUT_TYPE_NAMES = {
    'hosts': HostsOutput,
    'pdns-lua': PdnsLuaOutput,
}


# ============================================================================
# OUTPUT
# ============================================================================

@dataclass(frozen=True)
class Output:
    """A validated output descriptor.

    ``destination`` is kept as raw bytes so paths that aren't valid text
    survive unchanged. Construction fails with :class:`EmptyDestination`,
    :class:`EmptyMetricName` or :class:`InvalidIpAddress`.
    """
    kind: OutputType
    destination: bytes
    blackhole_address: IPAddress = DEFAULT_BLACKHOLE_ADDRESS_V4
    deduplicate: bool = DEFAULT_DEDUPLICATE

    def __post_init__(self):
        destination = os.fsencode(self.destination)
        if not destination:
            raise EmptyDestination()
        object.__setattr__(self, 'destination', destination)
        object.__setattr__(self, 'blackhole_address', parse_blackhole_address(self.blackhole_address))

        if isinstance(self.kind, PdnsLuaOutput) and self.kind.output_metric and not self.kind.metric_name:
            raise EmptyMetricName()

    @staticmethod
    def builder(kind: OutputType, destination: PathType) -> 'OutputBuilder':
        return OutputBuilder(kind, destination)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Output':
        """Build an output from its configuration mapping."""
        type_name = data.get('type')
        if type_name not in OUTPUT_TYPE_NAMES:
            raise InvalidConfig(f"unknown output type: {type_name}")
        destination = data.get('destination')
        if destination is None:
            raise InvalidConfig("output is missing its destination")
        if not isinstance(destination, str):
            raise InvalidConfig(f"output destination must be a string, got {destination!r}")

        if type_name == 'hosts':
            include = data.get('include', [])
            if not isinstance(include, list) or not all(isinstance(path, str) for path in include):
                raise InvalidConfig(f"output include must be a list of paths, got {include!r}")
            kind = HostsOutput(include=tuple(include))
        else:
            kind = PdnsLuaOutput(
                output_metric=bool(data.get('output_metric', DEFAULT_OUTPUT_METRIC)),
                metric_name=str(data.get('metric_name', DEFAULT_METRIC_NAME))
            )

        return cls(
            kind=kind,
            destination=destination,
            blackhole_address=data.get('blackhole_address', DEFAULT_BLACKHOLE_ADDRESS_V4),
            deduplicate=bool(data.get('deduplicate', DEFAULT_DEDUPLICATE))
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if isinstance(self.kind, HostsOutput):
            data['type'] = 'hosts'
            data['include'] = [os.fsdecode(path) for path in self.kind.include]
        else:
            data['type'] = 'pdns-lua'
            data['output_metric'] = self.kind.output_metric
            data['metric_name'] = self.kind.metric_name
        data['destination'] = os.fsdecode(self.destination)
        data['blackhole_address'] = str(self.blackhole_address)
        data['deduplicate'] = self.deduplicate
        return data

    def activate(self) -> 'ActiveOutput':
        """Create the output's staging file and write its primer into it."""
        active = ActiveOutput(self)
        try:
            active.write_primer()
        except IoError:
            active.abort()
            raise
        return active


class OutputBuilder:
    """Builder for a new :class:`Output`.

    The blackhole address defaults to ``0.0.0.0`` and deduplication to off.
    """

    def __init__(self, kind: OutputType, destination: PathType):
        self._kind = kind
        self._destination = destination
        self._blackhole_address = DEFAULT_BLACKHOLE_ADDRESS_V4
        self._deduplicate = DEFAULT_DEDUPLICATE

    def blackhole_address(self, address) -> 'OutputBuilder':
        self._blackhole_address = parse_blackhole_address(address)
        return self

    def deduplicate(self, deduplicate: bool) -> 'OutputBuilder':
        self._deduplicate = deduplicate
        return self

    def build(self) -> Output:
        return Output(
            kind=self._kind,
            destination=self._destination,
            blackhole_address=self._blackhole_address,
            deduplicate=self._deduplicate
        )


# ============================================================================
# ACTIVE OUTPUT
# ============================================================================

class ActiveOutput:
    """An output bound to its staging file while Singularity runs."""

    def __init__(self, output: Output):
        self.output = output
        self.seen: Optional[Set[str]] = set() if output.deduplicate else None

        # write through symlinks instead of replacing them
        self.destination = os.path.realpath(output.destination)
        directory = os.path.dirname(self.destination)
        try:
            fd, self.staging_path = tempfile.mkstemp(dir=directory, prefix=b'.singularity-', suffix=b'.tmp')
        except OSError as e:
            raise IoError(e) from e
        self.staging = os.fdopen(fd, 'w+b')

        logger.debug(f"Activated {output.kind} output {os.fsdecode(output.destination)}")

    def write_primer(self) -> None:
        try:
            self.output.kind.write_primer(self.staging)
        except OSError as e:
            raise IoError(e) from e

    def write_domain(self, domain: str) -> None:
        """Write one domain, unless deduplication has already seen it."""
        if self.seen is not None:
            if domain in self.seen:
                return
            self.seen.add(domain)

        try:
            self.output.kind.write_domain(self.staging, domain, self.output.blackhole_address)
        except OSError as e:
            raise IoError(e) from e

    def finalise(self) -> None:
        """Append the trailer and move the staging file over the destination."""
        destination = self.destination
        try:
            self.output.kind.write_trailer(self.staging, self.output.blackhole_address)
            self.staging.flush()
            os.fsync(self.staging.fileno())
            self.staging.close()

            if os.path.exists(destination):
                shutil.copymode(destination, self.staging_path)
            else:
                os.chmod(self.staging_path, DEFAULT_FILE_MODE)

            os.replace(self.staging_path, destination)
        except OSError as e:
            self.abort()
            raise IoError(e) from e

        logger.debug(f"Wrote {self.output.kind} output {os.fsdecode(destination)}")

    def abort(self) -> None:
        """Throw the staging file away, leaving the destination untouched."""
        try:
            self.staging.close()
        except OSError as e:
            logger.debug(f"Failed to close staging file {os.fsdecode(self.staging_path)}: {e}")

        try:
            os.unlink(self.staging_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to remove staging file {os.fsdecode(self.staging_path)}: {e}")
