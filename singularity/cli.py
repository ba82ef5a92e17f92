"""Command-line program: read the configuration file and run Singularity once."""

import argparse
import logging
import time
from typing import Dict, List, Optional

from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from .constants import APP_NAME, DEFAULT_CONFIG_FILE, HTTP_CONNECT_TIMEOUT, VERSION
from .config import load_config
from .errors import SingularityError
from .progress import (
    AllMatchingLineIgnored,
    BeginAdlistRead,
    DomainWritten,
    FinishAdlistRead,
    Progress,
    ReadingAdlistFailed,
    ReadProgress,
    WhitelistedDomainIgnored,
)
from .runner import Singularity

logger = logging.getLogger(__name__)


# ============================================================================
# PROGRESS DISPLAY
# ============================================================================

class ProgressDisplay:
    """Progress callback that renders a bar per adlist and counts written domains."""

    def __init__(self, disable: bool = False):
        self.disable = disable
        self.bars: Dict[str, tqdm] = {}
        self.domains = 0
        self.failed: List[str] = []

    def __call__(self, progress: Progress) -> None:
        if isinstance(progress, BeginAdlistRead):
            if progress.length is not None:
                logger.info(f"Reading {progress.source} with length {progress.length:,}")
            else:
                logger.info(f"Reading {progress.source} with indeterminate length")
            self.bars[progress.source] = tqdm(
                total=progress.length,
                desc=progress.source,
                unit='B',
                unit_scale=True,
                position=len(self.bars),
                disable=self.disable
            )

        elif isinstance(progress, ReadProgress):
            bar = self.bars.get(progress.source)
            if bar is not None:
                bar.update(progress.delta)

        elif isinstance(progress, FinishAdlistRead):
            self._close_bar(progress.source)

        elif isinstance(progress, ReadingAdlistFailed):
            self._close_bar(progress.source)
            self.failed.append(progress.source)
            logger.error(f"Reading {progress.source} failed: {progress.reason}")

        elif isinstance(progress, DomainWritten):
            self.domains += 1

        elif isinstance(progress, WhitelistedDomainIgnored):
            logger.info(f"Ignoring whitelisted domain {progress.domain} from {progress.source}")

        elif isinstance(progress, AllMatchingLineIgnored):
            logger.warning(f"Line {progress.line_number} in {progress.source} parsed to an all-matching entry "
                           f"({progress.line}), so it was ignored")

    def _close_bar(self, source: str) -> None:
        bar = self.bars.pop(source, None)
        if bar is not None:
            bar.close()

    def close(self) -> None:
        for source in list(self.bars):
            self._close_bar(source)


# ============================================================================
# CLI
# ============================================================================

def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Gathers known malicious domains into blackhole lists for a DNS resolver.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument("-c", "--config", default=DEFAULT_CONFIG_FILE,
                        help="Configuration file")
    parser.add_argument("-t", "--timeout", type=int, default=HTTP_CONNECT_TIMEOUT,
                        help="HTTP connect timeout in milliseconds")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Verbose logging")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Quiet mode")
    parser.add_argument("--version", action="version", version=f"{APP_NAME} v{VERSION}")

    return parser.parse_args(argv)


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Main function."""
    args = parse_arguments(argv)
    setup_logging(args.verbose, args.quiet)

    try:
        config = load_config(args.config)
    except SingularityError as e:
        logger.error(f"Failed to load configuration: {e}")
        return 1

    if not config.adlists:
        logger.warning("No adlists configured. Please edit the configuration file and add one or more adlists.")
        return 0

    if not config.outputs:
        logger.warning("No outputs configured. Please edit the configuration file and add one or more outputs.")
        return 0

    timeout = args.timeout if args.timeout > 0 else HTTP_CONNECT_TIMEOUT
    singularity = (
        Singularity.builder()
        .add_many_adlists(config.adlists)
        .add_many_outputs(config.outputs)
        .whitelist_many_domains(config.whitelist)
        .http_timeout_ms(timeout)
        .build()
    )

    display = ProgressDisplay(disable=args.quiet)
    start_time = time.time()

    try:
        with logging_redirect_tqdm():
            singularity.progress_callback(display).run()
    except KeyboardInterrupt:
        logger.info("Operation cancelled by user.")
        return 1
    except SingularityError as e:
        logger.error(f"An error occurred: {e}")
        return 1
    finally:
        display.close()

    elapsed_time = time.time() - start_time
    logger.info(f"Read {display.domains:,} domains from {len(config.adlists)} sources in {elapsed_time:.2f} seconds")
    if display.failed:
        logger.warning(f"{len(display.failed)} sources could not be read")

    return 0
