"""Configuration file for the Singularity command-line program.

The file is a JSON object::

    {
        "whitelist": ["example.com"],
        "adlist": [
            {"source": "https://example.com/hosts", "format": "hosts"}
        ],
        "output": [
            {"type": "hosts", "destination": "/etc/pdns/blackhole-hosts", "include": []},
            {"type": "pdns-lua", "destination": "/etc/pdns/blackhole.lua", "deduplicate": true}
        ]
    }
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

from .adlist import Adlist
from .constants import DEFAULT_CONFIG_FILE
from .errors import InvalidConfig, SingularityError
from .output import Output

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """Adlists, outputs and whitelist read from a configuration file."""
    adlists: List[Adlist] = field(default_factory=list)
    outputs: List[Output] = field(default_factory=list)
    whitelist: Set[str] = field(default_factory=set)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        if not isinstance(data, dict):
            raise InvalidConfig("expected a JSON object")

        sections = {}
        for key in ('adlist', 'output', 'whitelist'):
            value = data.get(key, [])
            if not isinstance(value, list):
                raise InvalidConfig(f"'{key}' must be a list")
            sections[key] = value

        adlists = []
        for index, item in enumerate(sections['adlist']):
            if not isinstance(item, dict):
                raise InvalidConfig(f"adlist {index} must be an object")
            adlists.append(Adlist.from_dict(item))

        outputs = []
        for index, item in enumerate(sections['output']):
            if not isinstance(item, dict):
                raise InvalidConfig(f"output {index} must be an object")
            outputs.append(Output.from_dict(item))

        return cls(
            adlists=adlists,
            outputs=outputs,
            whitelist={str(domain) for domain in sections['whitelist']}
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'whitelist': sorted(self.whitelist),
            'adlist': [adlist.to_dict() for adlist in self.adlists],
            'output': [output.to_dict() for output in self.outputs],
        }


def load_config(path: str = DEFAULT_CONFIG_FILE) -> Config:
    """Load the configuration file.

    A missing file is created with empty sections and loads as an empty
    configuration. Raises :class:`InvalidConfig` if the file is malformed or
    holds invalid adlists or outputs.
    """
    if not os.path.exists(path):
        logger.warning(f"Configuration file '{path}' not found, creating an empty one")
        config = Config()
        try:
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(config.to_dict(), f, indent=4)
        except OSError as e:
            raise InvalidConfig(f"{path}: {e}") from e
        return config

    logger.info(f"Loading configuration from {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidConfig(f"{path}: {e}") from e
    except OSError as e:
        raise InvalidConfig(f"{path}: {e}") from e

    try:
        config = Config.from_dict(data)
    except InvalidConfig:
        raise
    except SingularityError as e:
        raise InvalidConfig(f"{path}: {e}") from e

    logger.debug(f"Loaded {len(config.adlists)} adlists, {len(config.outputs)} outputs "
                 f"and {len(config.whitelist)} whitelisted domains")
    return config
