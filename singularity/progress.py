"""Progress events Singularity reports while running.

The progress callback is called from the writer and every reader thread. Events
from one source arrive in order: ``BeginAdlistRead``, then any number of
``ReadProgress``, ``AllMatchingLineIgnored`` and ``WhitelistedDomainIgnored``,
then ``FinishAdlistRead``. A source that fails reports ``ReadingAdlistFailed``
instead of anything after ``BeginAdlistRead``. Events from different sources
interleave freely.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Union


@dataclass(frozen=True)
class BeginAdlistRead:
    """Began reading an adlist. ``length`` is None when it can't be known ahead of time."""
    source: str
    length: Optional[int]


@dataclass(frozen=True)
class ReadProgress:
    """``bytes`` read from the source so far, ``delta`` of them since the previous report."""
    source: str
    bytes: int
    delta: int


@dataclass(frozen=True)
class FinishAdlistRead:
    source: str


@dataclass(frozen=True)
class ReadingAdlistFailed:
    """Reading an adlist failed. ``reason`` is a :class:`SingularityError`, or whatever unexpected
    exception stopped the reader."""
    source: str
    reason: Exception


@dataclass(frozen=True)
class DomainWritten:
    """A domain was passed to every output."""
    domain: str


@dataclass(frozen=True)
class WhitelistedDomainIgnored:
    source: str
    domain: str


@dataclass(frozen=True)
class AllMatchingLineIgnored:
    """A line parsed into an entry that would match every domain."""
    source: str
    line_number: int
    line: str


Progress = Union[
    BeginAdlistRead,
    ReadProgress,
    FinishAdlistRead,
    ReadingAdlistFailed,
    DomainWritten,
    WhitelistedDomainIgnored,
    AllMatchingLineIgnored,
]

ProgressCallback = Callable[[Progress], None]


def noop_callback(progress: Progress) -> None:
    pass
