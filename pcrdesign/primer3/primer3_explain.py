"""
# Primer3 Explain Strings

Primer3 summarizes how many candidate primers or pairs it considered, and why candidates were
rejected, in the `PRIMER_LEFT_EXPLAIN`, `PRIMER_RIGHT_EXPLAIN` and `PRIMER_PAIR_EXPLAIN` tags.
The pair explanation is kept on [`PrimerPair.explain`][pcrdesign.model.PrimerPair].

This module parses those strings into counts per rejection reason, and provides the
[`Primer3Failure`][pcrdesign.primer3.primer3_explain.Primer3Failure] metric so that they can be
written to and read back from a tab-delimited file.

## Examples

```python
>>> counts = parse_explain("considered 37, unacceptable product size 26, high tm 3, ok 8")
>>> counts["unacceptable product size"], counts["high tm"]
(26, 3)
>>> [(f.reason, f.count) for f in build_failures("considered 10, low tm 2, high tm 5, ok 3")]
[('high tm', 5), ('low tm', 2)]

```
"""

import re
from collections import Counter
from dataclasses import dataclass
from typing import Optional

from fgpyo.util.metric import Metric

_REASON_PATTERN: re.Pattern[str] = re.compile(r"^\s*(.*?)\s+(\d+)\s*$")

NOT_A_FAILURE: frozenset[str] = frozenset(["considered", "ok"])
"""Tallies in an explain string that are not rejection reasons."""


@dataclass(init=True, slots=True, frozen=True)
class Primer3Failure(Metric["Primer3Failure"]):
    """Encapsulates how many designs failed for a given reason.

    Attributes:
        reason: the reason the design failed, as worded by Primer3
        count: how many designs failed
    """

    reason: str
    count: int


def parse_explain(*explains: Optional[str]) -> Counter[str]:
    """Counts the rejection reasons in one or more Primer3 explain strings.

    Each explain string is a comma-delimited list of `<reason> <count>` entries.  The `considered`
    and `ok` tallies are skipped, as are entries without a trailing count.

    Args:
        explains: the explain strings; None values are skipped

    Returns:
        the total count for each reason
    """
    counts: Counter[str] = Counter()
    for explain in explains:
        if explain is None:
            continue
        for entry in explain.split(","):
            match = _REASON_PATTERN.match(entry)
            if match is None or match.group(1) in NOT_A_FAILURE:
                continue
            counts[match.group(1)] += int(match.group(2))
    return counts


def build_failures(*explains: Optional[str]) -> list[Primer3Failure]:
    """Returns the rejection reasons in the explain strings, from most to least common, skipping
    reasons with a zero count."""
    counts = parse_explain(*explains)
    return [
        Primer3Failure(reason=reason, count=count)
        for reason, count in counts.most_common()
        if count > 0
    ]
