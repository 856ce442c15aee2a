"""
# ConstraintSet: Primer3 settings groups

The [`ConstraintSet`][pcrdesign.primer3.constraints.ConstraintSet] class wraps a flat mapping of
configuration keys to values.  Primer3 settings may be bundled into numbered "settings groups" by
prefixing each key with `<group>_`, so that several rounds of design (e.g. with progressively
relaxed constraints) can be described in one configuration.  Keys without a group prefix (e.g.
`Primer3-bin`) apply regardless of group.

## Examples

```python
>>> constraints = ConstraintSet({ \
    "Primer3-bin": "/usr/local/bin/primer3_core", \
    "1_PRIMER_MIN_SIZE": "18", \
    "1_PRIMER_MAX_SIZE": "24", \
    "2_PRIMER_MIN_SIZE": "16", \
})
>>> constraints.select(1)
{'PRIMER_MIN_SIZE': '18', 'PRIMER_MAX_SIZE': '24'}
>>> constraints.select(2)
{'PRIMER_MIN_SIZE': '16'}
>>> constraints.get("Primer3-bin")
'/usr/local/bin/primer3_core'

```

The tab-delimited configuration file format (`KEY<tab>VALUE`, one per line, with `#` comments)
can be read with `ConstraintSet.from_file()`.
"""

import logging
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from typing import Optional

from pcrdesign.errors import ConfigurationError

DESIGN_NAMESPACE: str = "PRIMER_"
"""The prefix shared by all Primer3 design parameters."""

_GROUP_PATTERN: re.Pattern[str] = re.compile(r"^(\d+)_(.+)$")
_CONFIG_LINE_PATTERN: re.Pattern[str] = re.compile(r"^(.+)\t(.+)$")


class ConstraintSet:
    """A flat mapping of configuration keys to values, with group selection.

    Raises:
        ConfigurationError: if the configuration is not a flat mapping of string keys to string
            (or scalar) values
    """

    def __init__(self, config: Mapping[str, Any]) -> None:
        if not isinstance(config, Mapping):
            raise ConfigurationError(
                f"Configuration must be a mapping of keys to values, received {type(config)}"
            )
        for key, value in config.items():
            if not isinstance(key, str):
                raise ConfigurationError(f"Configuration keys must be strings, received {key!r}")
            if isinstance(value, (Mapping, list, tuple, set)):
                raise ConfigurationError(
                    f"Configuration must be flat; the value for {key} is a {type(value).__name__}"
                )
        self._config: dict[str, str] = {
            key: str(value) for key, value in config.items() if value is not None
        }

    @classmethod
    def from_file(cls, path: Path) -> "ConstraintSet":
        """Reads a tab-delimited configuration file.

        Each non-comment line holds a key and a value separated by a tab.  Lines starting with `#`
        and lines without a tab-separated key and value are skipped.

        Args:
            path: the path to the configuration file

        Raises:
            ConfigurationError: if the file does not exist, is not a file, or is empty
        """
        if not path.is_file() or path.stat().st_size == 0:
            raise ConfigurationError(
                f"Config file, {path} either does not exist or isn't readable or is empty!"
            )
        config: dict[str, str] = {}
        with path.open("r") as reader:
            for line in reader:
                if line.lstrip().startswith("#"):
                    continue
                match = _CONFIG_LINE_PATTERN.match(line.rstrip("\r\n"))
                if match is not None:
                    config[match.group(1)] = match.group(2)
        logging.debug(f"Read {len(config)} configuration values from {path}")
        return ConstraintSet(config)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Returns the value for the given key exactly as it appears in the configuration."""
        return self._config.get(key, default)

    def select(self, group_id: int | str, namespace: str = DESIGN_NAMESPACE) -> dict[str, str]:
        """Selects the constraints belonging to one settings group.

        Args:
            group_id: the settings group
            namespace: only keys that begin with this prefix (after removing the group prefix) are
                selected

        Returns:
            the constraints of the settings group, keyed by the configuration key with the group
            prefix removed
        """
        selected: dict[str, str] = {}
        for key, value in self._config.items():
            match = _GROUP_PATTERN.match(key)
            if match is None or match.group(1) != f"{group_id}":
                continue
            stripped = match.group(2)
            if stripped.startswith(namespace):
                selected[stripped] = value
        return selected

    def __len__(self) -> int:
        return len(self._config)

    def __contains__(self, key: object) -> bool:
        return key in self._config
