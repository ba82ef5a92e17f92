"""Singularity: pull known malicious domains into blackhole lists.

Example::

    singularity = (
        Singularity.builder()
        .add_adlist(Adlist("https://raw.githubusercontent.com/StevenBlack/hosts/master/hosts"))
        .add_output(
            Output.builder(PdnsLuaOutput(metric_name="blocked-queries"), "/etc/pdns/blackhole.lua")
            .deduplicate(True)
            .build()
        )
        .whitelist_domain("example.com")
        .build()
    )
    singularity.progress_callback(print).run()
"""

from .adlist import Adlist, AdlistFormat
from .builder import SingularityBuilder
from .constants import (
    APP_NAME,
    DEFAULT_BLACKHOLE_ADDRESS_V4,
    DEFAULT_BLACKHOLE_ADDRESS_V6,
    DEFAULT_DEDUPLICATE,
    DEFAULT_METRIC_NAME,
    DEFAULT_OUTPUT_METRIC,
    HTTP_CONNECT_TIMEOUT,
    VERSION,
)
from .errors import (
    EmptyDestination,
    EmptyMetricName,
    HttpError,
    InvalidConfig,
    InvalidFilePath,
    InvalidIpAddress,
    InvalidResponse,
    IoError,
    RequestFailed,
    SingularityError,
    UnsupportedUrlScheme,
    UrlError,
)
from .output import HostsOutput, Output, OutputBuilder, PdnsLuaOutput
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

__version__ = VERSION
