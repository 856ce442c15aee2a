"""
# AmpliconRequest and DesignRequestBuilder: Classes and Methods

This module contains the [`AmpliconRequest`][pcrdesign.primer3.primer3_input.AmpliconRequest]
class, which describes one sequence submitted to Primer3 for primer pair design, and the
[`DesignRequestBuilder`][pcrdesign.primer3.primer3_input.DesignRequestBuilder] class, which writes
one or more requests, together with the constraints of a settings group, to a Primer3 input file.

The input file has one `KEY=VALUE` line per tag.  The global settings come first, followed by one
block per amplicon, each terminated by a line containing only `=`.

## Examples

```python
>>> amplicon = AmpliconRequest( \
    id="test_amp1", \
    template="ACGTACGTACGTACGTACGTACGTACGT", \
    targets=[(15, 1)], \
    excluded_regions=[(2, 5)], \
)
>>> for line in amplicon.to_lines(product_size_range="50-300"): \
    print(line)
PRIMER_PRODUCT_SIZE_RANGE=50-300
SEQUENCE_ID=test_amp1
SEQUENCE_TEMPLATE=ACGTACGTACGTACGTACGTACGTACGT
SEQUENCE_TARGET=15,1
SEQUENCE_EXCLUDED_REGION=2,5
=

```

A product size offset shifts both ends of the product size range:

```python
>>> shifted = AmpliconRequest(id="amp2", template="ACGT", product_size_offset=20)
>>> shifted.to_lines(product_size_range="50-300")[0]
'PRIMER_PRODUCT_SIZE_RANGE=70-320'

```
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from typing import Sequence

from pcrdesign.errors import ValidationError
from pcrdesign.primer3.constraints import ConstraintSet

Window = tuple[int, int]
"""A `(position, length)` window on the template sequence."""

TERMINATOR: str = "="
"""The line that terminates a Primer3 record."""


def _window(window: Window) -> str:
    position, length = window
    return f"{position},{length}"


def shift_product_size_range(product_size_range: str, offset: int) -> str:
    """Adds an offset to both ends of each `min-max` range in a Primer3 product size range.

    Args:
        product_size_range: one or more space-separated `min-max` ranges
        offset: the amount to add to each end

    Raises:
        ValidationError: if a range is not of the form `min-max`

    Example:

    ```python
    >>> shift_product_size_range("50-300", 10)
    '60-310'
    >>> shift_product_size_range("100-150 150-200", -5)
    '95-145 145-195'

    ```
    """
    shifted: list[str] = []
    for size_range in product_size_range.split():
        try:
            start, end = (int(value) for value in size_range.split("-", maxsplit=1))
        except ValueError as ex:
            raise ValidationError(
                f"Product size range must be of the form min-max, received {size_range}"
            ) from ex
        shifted.append(f"{start + offset}-{end + offset}")
    return " ".join(shifted)


@dataclass(frozen=True, init=True, kw_only=True)
class AmpliconRequest:
    """One sequence for which Primer3 should design primer pairs.

    Windows are `(position, length)` tuples in the coordinates Primer3 uses for the template.

    Attributes:
        id: the identifier echoed back by Primer3 as `SEQUENCE_ID`
        template: the sequence from which primers are picked
        left_primer: an optional fixed left primer sequence
        right_primer: an optional fixed right primer sequence
        targets: windows that the amplicon must span
        excluded_regions: windows in which primers must not be placed
        included_region: an optional window to which primer design is restricted
        product_size_offset: an optional offset added to both ends of the product size range

    Raises:
        ValidationError: if the template is empty
    """

    id: Optional[str]
    template: str
    left_primer: Optional[str] = None
    right_primer: Optional[str] = None
    targets: Sequence[Window] = ()
    excluded_regions: Sequence[Window] = ()
    included_region: Optional[Window] = None
    product_size_offset: Optional[int] = None

    def __post_init__(self) -> None:
        if self.template is None or len(self.template) == 0:
            raise ValidationError(f"Amplicon {self.id} must have a template sequence")

    def to_lines(
        self,
        product_size_range: Optional[str] = None,
        target: Optional[Window] = None,
    ) -> list[str]:
        """Builds the lines of the Primer3 record for this amplicon.

        Args:
            product_size_range: the product size range to apply, shifted by
                `product_size_offset` if one was given
            target: an optional target window that replaces the amplicon's own targets

        Returns:
            the `KEY=VALUE` lines, ending with the record terminator
        """
        lines: list[str] = []
        if product_size_range is not None:
            if self.product_size_offset is not None:
                product_size_range = shift_product_size_range(
                    product_size_range, self.product_size_offset
                )
            lines.append(f"PRIMER_PRODUCT_SIZE_RANGE={product_size_range}")
        if self.id is not None:
            lines.append(f"SEQUENCE_ID={self.id}")
        lines.append(f"SEQUENCE_TEMPLATE={self.template}")
        if self.left_primer is not None:
            lines.append(f"PRIMER_LEFT_INPUT={self.left_primer}")
        if self.right_primer is not None:
            lines.append(f"PRIMER_RIGHT_INPUT={self.right_primer}")
        if self.included_region is not None:
            lines.append(f"INCLUDED_REGION={_window(self.included_region)}")
        targets = [target] if target is not None else self.targets
        lines.extend(f"SEQUENCE_TARGET={_window(window)}" for window in targets)
        lines.extend(
            f"SEQUENCE_EXCLUDED_REGION={_window(window)}" for window in self.excluded_regions
        )
        lines.append(TERMINATOR)
        return lines


class DesignRequestBuilder:
    """Writes Primer3 input files for batches of amplicons.

    The builder holds only the constraints and the thermodynamic parameters directory, and so may
    be shared between concurrent design jobs as long as each uses its own batch identifier or
    output directory.
    """

    def __init__(self, constraints: ConstraintSet, parameters_dir: Path | str) -> None:
        """
        Args:
            constraints: the configuration from which settings groups are selected
            parameters_dir: the Primer3 thermodynamic parameters directory
        """
        self.constraints = constraints
        self.parameters_dir = parameters_dir

    def header_lines(self, group_id: int | str) -> list[str]:
        """Builds the global lines: the thermodynamic parameters path, then the selected
        constraints of the settings group."""
        lines = [f"PRIMER_THERMODYNAMIC_PARAMETERS_PATH={self.parameters_dir}"]
        lines.extend(f"{key}={value}" for key, value in self.constraints.select(group_id).items())
        return lines

    def build(
        self,
        amplicons: Sequence[AmpliconRequest],
        group_id: int | str,
        batch_id: str,
        out_dir: Path,
        product_size_range: Optional[str] = None,
        target: Optional[Window] = None,
    ) -> Path:
        """Writes a Primer3 input file for a batch of amplicons.

        Args:
            amplicons: the amplicons, written in the order given
            group_id: the settings group whose constraints are written
            batch_id: the identifier of the batch, used to name the file
            out_dir: the directory into which the file is written (created if missing)
            product_size_range: the product size range applied to every amplicon
            target: an optional `(position, length)` target applied to every amplicon in place of
                its own targets

        Returns:
            the path to `<out_dir>/AmpForDesign_<batch_id>_<group_id>.txt`

        Raises:
            OSError: if the file cannot be created
        """
        out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / f"AmpForDesign_{batch_id}_{group_id}.txt"
        with path.open("w") as writer:
            for line in self.header_lines(group_id):
                writer.write(f"{line}\n")
            for amplicon in amplicons:
                for line in amplicon.to_lines(product_size_range=product_size_range, target=target):
                    writer.write(f"{line}\n")
        logging.debug(f"Wrote {len(amplicons)} amplicon(s) for settings group {group_id} to {path}")
        return path
