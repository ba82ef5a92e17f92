"""Builder for a :class:`~singularity.runner.Singularity` runner."""

from typing import TYPE_CHECKING, Iterable, List, Set

from .adlist import Adlist
from .constants import HTTP_CONNECT_TIMEOUT
from .output import Output

if TYPE_CHECKING:
    from .runner import Singularity


class SingularityBuilder:
    """Collects adlists, outputs and whitelisted domains for a run."""

    def __init__(self):
        self.adlists: List[Adlist] = []
        self.outputs: List[Output] = []
        self.whitelist: Set[str] = set()
        self.http_timeout = HTTP_CONNECT_TIMEOUT

    def add_adlist(self, adlist: Adlist) -> 'SingularityBuilder':
        self.adlists.append(adlist)
        return self

    def add_many_adlists(self, adlists: Iterable[Adlist]) -> 'SingularityBuilder':
        self.adlists.extend(adlists)
        return self

    def add_output(self, output: Output) -> 'SingularityBuilder':
        self.outputs.append(output)
        return self

    def add_many_outputs(self, outputs: Iterable[Output]) -> 'SingularityBuilder':
        self.outputs.extend(outputs)
        return self

    def whitelist_domain(self, domain: str) -> 'SingularityBuilder':
        self.whitelist.add(domain)
        return self

    def whitelist_many_domains(self, domains: Iterable[str]) -> 'SingularityBuilder':
        self.whitelist.update(domains)
        return self

    def http_timeout_ms(self, timeout: int) -> 'SingularityBuilder':
        """Set the HTTP connect timeout in milliseconds."""
        self.http_timeout = timeout
        return self

    def build(self) -> 'Singularity':
        from .runner import Singularity

        return Singularity(
            adlists=list(self.adlists),
            outputs=list(self.outputs),
            whitelist=frozenset(self.whitelist),
            http_timeout=self.http_timeout
        )
