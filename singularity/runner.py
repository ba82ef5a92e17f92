"""The Singularity runner.

Running Singularity first activates every output, creating its staging file and
writing its primer. Activation errors are raised right away, before any source
is touched. A single writer then receives domains from one reader per adlist
over a bounded queue; readers block while the queue is full. Writer and readers
run on a thread pool with a thread each.

Readers report their own failures through the progress callback and never stop
the run. A stream error in the middle of a source skips one line, but after
three consecutive stream errors the source is given up on and reported as
failed. Once every reader is done the queue is closed, and the writer
finalises the outputs in the order they were added. Errors in the writer are
raised from :meth:`Singularity.run`.
"""

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from typing import FrozenSet, Iterable, List, Optional
from .adlist import STREAM_ERRORS, Adlist, ByteCounter, HTTPClient
from .builder import SingularityBuilder
from .constants import CHANNEL_CAPACITY, HTTP_CONNECT_TIMEOUT, MAX_STREAM_ERRORS
from .errors import HttpError, IoError, SingularityError
from .output import ActiveOutput, Output
from .parser import parse_line
from .progress import (
    AllMatchingLineIgnored,
    BeginAdlistRead,
    DomainWritten,
    FinishAdlistRead,
    ProgressCallback,
    ReadingAdlistFailed,
    ReadProgress,
    WhitelistedDomainIgnored,
    noop_callback,
)

logger = logging.getLogger(__name__)

# Put on the queue once every reader has finished
_CLOSED = object()


def _serialised(callback: ProgressCallback) -> ProgressCallback:
    """Wrap the callback so only one thread calls it at a time."""
    lock = threading.Lock()

    def report(progress) -> None:
        with lock:
            callback(progress)

    return report


def _stream_error(error: BaseException) -> SingularityError:
    if isinstance(error, OSError):
        return IoError(error)
    return HttpError(error)


# ============================================================================
# RUNNER
# ============================================================================

class Singularity:
    """Reads adlists and writes their domains into outputs.

    Use :meth:`builder` to configure a runner, optionally set a progress
    callback with :meth:`progress_callback`, then call :meth:`run`.
    """

    def __init__(self, adlists: Iterable[Adlist], outputs: Iterable[Output],
                 whitelist: FrozenSet[str] = frozenset(), http_timeout: int = HTTP_CONNECT_TIMEOUT):
        self.adlists: List[Adlist] = list(adlists)
        self.outputs: List[Output] = list(outputs)
        self.whitelist = frozenset(whitelist)
        self.http_timeout = http_timeout
        self._progress_callback: ProgressCallback = noop_callback

    @staticmethod
    def builder() -> SingularityBuilder:
        return SingularityBuilder()

    def progress_callback(self, callback: ProgressCallback) -> 'Singularity':
        """Set the callback that receives progress events.

        The callback is called from several threads, though never from two at
        once. It must not raise.
        """
        self._progress_callback = callback
        return self

    def run(self) -> None:
        """Read every adlist and write the domains into every output."""
        logger.debug(f"Running with {len(self.adlists)} adlists and {len(self.outputs)} outputs")

        active_outputs = self._activate_outputs()

        report = _serialised(self._progress_callback)
        domains: queue.Queue = queue.Queue(maxsize=CHANNEL_CAPACITY)
        stop = threading.Event()
        http_client = HTTPClient(self.http_timeout)

        try:
            # every reader needs its own thread, or a full queue could starve the writer
            with ThreadPoolExecutor(max_workers=len(self.adlists) + 1, thread_name_prefix="singularity") as executor:
                writer = executor.submit(_writer_thread, active_outputs, domains, report, stop)

                readers = []
                try:
                    for adlist in self.adlists:
                        readers.append(executor.submit(
                            _reader_thread, adlist, domains, self.whitelist, http_client, report, stop
                        ))
                except BaseException:
                    stop.set()
                    raise
                finally:
                    wait(readers)
                    domains.put(_CLOSED)

                writer.result()
        finally:
            http_client.close()

    def _activate_outputs(self) -> List[ActiveOutput]:
        active_outputs: List[ActiveOutput] = []
        try:
            for output in self.outputs:
                active_outputs.append(output.activate())
        except SingularityError:
            for active in active_outputs:
                active.abort()
            raise
        return active_outputs


# ============================================================================
# WRITER
# ============================================================================

def _writer_thread(active_outputs: List[ActiveOutput], domains: queue.Queue,
                   report: ProgressCallback, stop: threading.Event) -> None:
    pending = list(active_outputs)
    closed = False

    try:
        while True:
            domain = domains.get()
            if domain is _CLOSED:
                closed = True
                break

            report(DomainWritten(domain))
            for output in pending:
                output.write_domain(domain)

        if stop.is_set():
            for output in pending:
                output.abort()
            return

        while pending:
            pending[0].finalise()
            pending.pop(0)
    except Exception as e:
        logger.debug(f"Writer failed: {e}")
        stop.set()
        for output in pending:
            output.abort()
        # readers may still be blocked on a full queue
        while not closed:
            closed = domains.get() is _CLOSED
        raise


# ============================================================================
# READER
# ============================================================================

def _reader_thread(adlist: Adlist, domains: queue.Queue, whitelist: FrozenSet[str], http_client: HTTPClient,
                   report: ProgressCallback, stop: threading.Event) -> None:
    try:
        read_adlist(adlist, domains, whitelist, http_client, report, stop)
    except Exception as e:
        logger.debug(f"Reader for {adlist.source} failed unexpectedly: {e!r}")
        report(ReadingAdlistFailed(adlist.source, e))


def read_adlist(adlist: Adlist, domains: queue.Queue, whitelist: FrozenSet[str], http_client: HTTPClient,
                report: ProgressCallback, stop: Optional[threading.Event] = None) -> None:
    """Read one adlist and put every accepted domain on the queue."""
    source = adlist.source
    counter = ByteCounter()

    try:
        length, stream = adlist.open(counter, http_client.connect_timeout, http_client)
    except SingularityError as e:
        report(ReadingAdlistFailed(source, e))
        return

    with stream:
        report(BeginAdlistRead(source, length))

        line_number = 0
        stream_errors = 0
        while stop is None or not stop.is_set():
            line_number += 1
            try:
                raw_line = stream.readline()
            except STREAM_ERRORS as e:
                stream_errors += 1
                if stream_errors >= MAX_STREAM_ERRORS:
                    report(ReadingAdlistFailed(source, _stream_error(e)))
                    return
                total, delta = counter.take_delta()
                report(ReadProgress(source, total, delta))
                continue

            stream_errors = 0
            if not raw_line:
                break

            total, delta = counter.take_delta()
            report(ReadProgress(source, total, delta))

            try:
                line = raw_line.decode('utf-8').rstrip('\r\n')
            except UnicodeDecodeError:
                continue

            candidate = parse_line(line, adlist.format)
            if candidate is None:
                continue

            if not candidate or candidate == '.':
                report(AllMatchingLineIgnored(source, line_number, line))
                continue

            if candidate in whitelist:
                report(WhitelistedDomainIgnored(source, candidate))
                continue

            domains.put(candidate)

        if stop is not None and stop.is_set():
            return

        total, delta = counter.take_delta()
        if delta:
            report(ReadProgress(source, total, delta))
        report(FinishAdlistRead(source))
