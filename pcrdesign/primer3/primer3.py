"""
# Primer3 Class and Methods

This module contains the [`Primer3`][pcrdesign.primer3.primer3.Primer3] class, which locates the
`primer3_core` executable and its thermodynamic parameters directory, writes design requests, runs
`primer3_core` and parses its output into [`PrimerPair`][pcrdesign.model.PrimerPair] objects.

## Locating Primer3

The executable and parameters directory are resolved once, when `Primer3` is constructed.  The
executable is, in order of preference:

1. the `executable` given to the constructor,
2. `primer3_core` on the `PATH`,
3. the `Primer3-bin` configuration value,
4. the `PRIMER3_BIN` environment variable.

The executable must report a version at least as recent as `min_version` (2.0.0 by default) in
the output of `primer3_core -h`.

The thermodynamic parameters directory is, in order of preference:

1. the directory `primer3_config/` beside the executable,
2. the `Primer3-config` configuration value,
3. `/opt/primer3_config/`,
4. the `PRIMER3_CONFIG` environment variable.

A [`ConfigurationError`][pcrdesign.errors.ConfigurationError] is raised if any of these cannot be
resolved.

## Designing primers

```python
>>> from pathlib import Path
>>> from pcrdesign.primer3 import AmpliconRequest, ConstraintSet
>>> designer = Primer3(constraints=ConstraintSet({"1_PRIMER_NUM_RETURN": "5"})) # doctest: +SKIP
>>> amplicon = AmpliconRequest(id="amp1", template="ACGT" * 100, targets=[(150, 1)])
>>> primer_pairs = designer.design_amplicons( \
    amplicons=[amplicon], \
    group_id=1, \
    batch_id="batch1", \
    out_dir=Path("."), \
    product_size_range="50-300", \
)  # doctest: +SKIP

```

Each call runs one `primer3_core` process to completion; there is no timeout.
"""

import logging
import math
import os
import re
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable
from typing import Iterator
from typing import Optional
from typing import Sequence

from pcrdesign.errors import ConfigurationError
from pcrdesign.model import PrimerPair
from pcrdesign.model import PrimerPairType
from pcrdesign.primer3.constraints import ConstraintSet
from pcrdesign.primer3.primer3_input import AmpliconRequest
from pcrdesign.primer3.primer3_input import DesignRequestBuilder
from pcrdesign.primer3.primer3_input import Window
from pcrdesign.primer3.primer3_output import ResponseStreamParser
from pcrdesign.util.executable_runner import ExecutableRunner

PRIMER3_EXECUTABLE_NAME: str = "primer3_core"
"""The name of the Primer3 executable."""

BIN_CONFIG_KEY: str = "Primer3-bin"
"""The configuration key holding the path to the Primer3 executable."""

PARAMETERS_CONFIG_KEY: str = "Primer3-config"
"""The configuration key holding the path to the thermodynamic parameters directory."""

BIN_ENV_VAR: str = "PRIMER3_BIN"
"""The environment variable holding the path to the Primer3 executable."""

PARAMETERS_ENV_VAR: str = "PRIMER3_CONFIG"
"""The environment variable holding the path to the thermodynamic parameters directory."""

DEFAULT_PARAMETERS_DIR: Path = Path("/opt/primer3_config/")
"""The thermodynamic parameters directory used when no other is found."""

_VERSION_PATTERN: re.Pattern[str] = re.compile(r"release\s+(\d+)\.(\d+)\.(\d+)")


@dataclass(frozen=True, order=True, slots=True)
class Primer3Version:
    """A Primer3 release version.

    Example:

    ```python
    >>> Primer3Version.from_help("This is primer3 (libprimer3 release 2.3.7)")
    Primer3Version(major=2, minor=3, patch=7)
    >>> Primer3Version(1, 1, 4) < Primer3Version(2, 0, 0)
    True

    ```
    """

    major: int
    minor: int
    patch: int

    @staticmethod
    def from_help(text: str) -> Optional["Primer3Version"]:
        """Finds the version in the output of `primer3_core -h`, or returns None."""
        for line in text.splitlines():
            if "This is primer3" not in line:
                continue
            match = _VERSION_PATTERN.search(line)
            if match is not None:
                major, minor, patch = (int(value) for value in match.groups())
                return Primer3Version(major=major, minor=minor, patch=patch)
        return None

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


MIN_PRIMER3_VERSION: Primer3Version = Primer3Version(major=2, minor=0, patch=0)
"""The oldest Primer3 release that is supported."""


def _is_accessible_dir(path: Path) -> bool:
    return path.is_dir() and os.access(path, os.X_OK)


class Primer3:
    """
    Runs `primer3_core` to design primer pairs.

    Attributes:
        constraints: the configuration from which settings groups are selected
        executable: the path to the `primer3_core` executable
        version: the version reported by the executable
        parameters_dir: the thermodynamic parameters directory
    """

    def __init__(
        self,
        constraints: Optional[ConstraintSet] = None,
        executable: Optional[str | Path] = None,
        min_version: Primer3Version = MIN_PRIMER3_VERSION,
    ) -> None:
        """
        Args:
            constraints: the configuration, including any settings groups
            executable: string or Path representation of the path to `primer3_core`; if not given
                the executable is searched for on the PATH, in the configuration, and in the
                environment
            min_version: the oldest acceptable Primer3 version

        Raises:
            ConfigurationError: if the executable, its version, or the thermodynamic parameters
                directory cannot be resolved or is incompatible
        """
        self.constraints: ConstraintSet = (
            constraints if constraints is not None else ConstraintSet({})
        )
        self.executable: Path = self._resolve_executable(executable)
        self.version: Primer3Version = self._check_version(min_version)
        self.parameters_dir: Path = self._resolve_parameters_dir()
        self._parser = ResponseStreamParser()
        logging.info(
            f"Using Primer3 {self.version} at {self.executable} "
            f"with thermodynamic parameters from {self.parameters_dir}"
        )

    def _resolve_executable(self, executable: Optional[str | Path]) -> Path:
        candidates: list[str | Path] = []
        if executable is not None:
            candidates.append(executable)
        else:
            on_path = shutil.which(PRIMER3_EXECUTABLE_NAME)
            if on_path is not None:
                candidates.append(on_path)
            configured = self.constraints.get(BIN_CONFIG_KEY)
            if configured is not None:
                candidates.append(Path(configured))
            from_env = os.environ.get(BIN_ENV_VAR)
            if from_env is not None:
                candidates.append(Path(from_env))

        for candidate in candidates:
            try:
                return ExecutableRunner.validate_executable_path(executable=candidate)
            except ValueError as ex:
                logging.debug(f"Skipping Primer3 executable candidate {candidate}: {ex}")
        raise ConfigurationError(
            f"Could not find primer3! Searched: {', '.join(f'{c}' for c in candidates) or 'none'}"
        )

    def _check_version(self, min_version: Primer3Version) -> Primer3Version:
        try:
            result = subprocess.run(
                [f"{self.executable}", "-h"],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                check=False,
            )
        except OSError as ex:
            raise ConfigurationError(f"Could not run {self.executable}: {ex}") from ex

        version = Primer3Version.from_help(result.stdout)
        if version is None:
            raise ConfigurationError(f"Could not determine the version of {self.executable}")
        if version < min_version:
            raise ConfigurationError(
                f"Primer3 needs to be at least version {min_version}, found {version} at "
                f"{self.executable}"
            )
        return version

    def _resolve_parameters_dir(self) -> Path:
        candidates: list[Path] = [
            self.executable.with_name(self.executable.name.replace("core", "config", 1))
        ]
        configured = self.constraints.get(PARAMETERS_CONFIG_KEY)
        if configured is not None:
            candidates.append(Path(configured))
        candidates.append(DEFAULT_PARAMETERS_DIR)
        from_env = os.environ.get(PARAMETERS_ENV_VAR)
        if from_env is not None:
            candidates.append(Path(from_env))

        for candidate in candidates:
            if _is_accessible_dir(candidate):
                return candidate
        raise ConfigurationError(
            f"Primer3 config directory, {configured}, does not exist or is not a directory or is "
            "not executable!"
        )

    def request_builder(self) -> DesignRequestBuilder:
        """Returns a builder that writes requests using this Primer3's parameters directory.

        The parameters directory is written with a trailing separator, as Primer3 requires.
        """
        return DesignRequestBuilder(
            constraints=self.constraints, parameters_dir=f"{self.parameters_dir}{os.sep}"
        )

    def design(
        self,
        request: Path,
        output: Optional[Path] = None,
        keep_request: bool = False,
    ) -> list[PrimerPair]:
        """Runs Primer3 on a request file and parses its output.

        Args:
            request: the Primer3 input file
            output: if given, a file to which the raw Primer3 output is appended
            keep_request: if False, the request file is deleted once Primer3 has run

        Returns:
            the primer pairs, in the order Primer3 reported them

        Raises:
            OSError: if the request cannot be read or the output cannot be written
            RuntimeError: if Primer3 exits with a non-zero status
        """
        raw_lines: list[str] = []
        error_lines: list[str] = []

        def record(lines: Iterable[str]) -> Iterator[str]:
            for line in lines:
                raw_lines.append(line)
                if line.startswith("PRIMER_ERROR="):
                    logging.warning(f"Primer3 reported an error for {request}: {line}")
                elif line != "" and "=" not in line:  # errors lines have no equals character
                    error_lines.append(line)
                yield line

        command = [f"{self.executable}", "-strict_tags"]
        with (
            request.open("r") as stdin,
            ExecutableRunner(command=command, stdin=stdin, stderr=subprocess.STDOUT) as runner,
        ):
            primer_pairs = self._parser.parse_all(record(runner.output_lines()))
            returncode = runner.wait()

        if output is not None:
            with output.open("a") as writer:
                for line in raw_lines:
                    writer.write(f"{line}\n")
        if not keep_request:
            request.unlink()

        if returncode != 0:
            errors = "\n".join(f"\t\t{e}" for e in error_lines)
            raise RuntimeError(f"Primer3 exited with status {returncode}:\n{errors}")

        logging.info(f"Primer3 returned {len(primer_pairs)} primer pair(s) for {request}")
        return primer_pairs

    def design_amplicons(
        self,
        amplicons: Sequence[AmpliconRequest],
        group_id: int | str,
        batch_id: str,
        out_dir: Path,
        product_size_range: Optional[str] = None,
        target: Optional[Window] = None,
        output: Optional[Path] = None,
    ) -> list[PrimerPair]:
        """Writes a request for the amplicons, runs Primer3 on it, and parses the output.

        See [`DesignRequestBuilder.build()`][pcrdesign.primer3.primer3_input.DesignRequestBuilder]
        for the arguments used to write the request, and `design()` for `output`.
        """
        request = self.request_builder().build(
            amplicons=amplicons,
            group_id=group_id,
            batch_id=batch_id,
            out_dir=out_dir,
            product_size_range=product_size_range,
            target=target,
        )
        return self.design(request=request, output=output)


def select_best_pairs(
    primer_pairs: Iterable[PrimerPair], pair_type: PrimerPairType | str
) -> dict[str, PrimerPair]:
    """Picks the best primer pair designed for each amplicon.

    Pairs are ordered by amplicon name, then pair penalty, then product size; the first pair for
    each amplicon with both a left and a right primer sequence is kept and its `type` is set.

    Args:
        primer_pairs: the primer pairs returned by Primer3
        pair_type: the type to assign to each selected pair

    Returns:
        the best pair for each amplicon, keyed by amplicon name
    """

    def sort_key(primer_pair: PrimerPair) -> tuple[str, float, float]:
        return (
            primer_pair.amplicon_name or "",
            math.inf if primer_pair.pair_penalty is None else primer_pair.pair_penalty,
            math.inf if primer_pair.product_size is None else primer_pair.product_size,
        )

    best: dict[str, PrimerPair] = {}
    for primer_pair in sorted(primer_pairs, key=sort_key):
        name = primer_pair.amplicon_name
        if name is None or name in best:
            continue
        if primer_pair.left_primer.sequence is None or primer_pair.right_primer.sequence is None:
            continue
        primer_pair.type = pair_type  # type: ignore[assignment]
        best[name] = primer_pair
    return best
