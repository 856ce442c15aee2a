"""
# Primer and PrimerPair Classes

This module contains the value records produced by parsing Primer3 output:

1. [`Primer`][pcrdesign.model.Primer] -- one designed (or fixed) primer, with its position on the
    submitted template and the per-primer metrics reported by Primer3.
2. [`PrimerPair`][pcrdesign.model.PrimerPair] -- a left and right primer plus the pair-level
    metrics and the sequence-level context (amplicon name, target, excluded regions) in which
    they were designed.

Both records validate and coerce their fields on construction: Primer3 reports every value as a
string, so `"57.965"` becomes `57.965` and `"23"` becomes `23`.  Invalid values raise a
[`ValidationError`][pcrdesign.errors.ValidationError].

Only a handful of fields may change after construction, once genomic coordinates are known:
`name` and `region` on a `Primer`, and `pair_name` and `type` on a `PrimerPair`.  Assigning any
other field raises an `AttributeError`.  Each part of a [`SeqRegion`][pcrdesign.model.SeqRegion] may
also be updated in place.

## Examples

```python
>>> left = Primer(sequence="CATCTGTGTTCTGCTGAATGATG", index_pos="14", length="23", tm="59.1")
>>> left.tm
59.1
>>> left.length
23
>>> left.region = SeqRegion(refname="5", start=12345, end=12367, strand=-1)
>>> left.posn
'5:12345-12367:-1'
>>> left.region.strand = "1"
>>> left.posn
'5:12345-12367:1'
>>> pair = PrimerPair(left_primer=left, right_primer=Primer(sequence="CTTCAGGAAACTCAGACGACTG"))
>>> pair.type = "EXT"
>>> pair.type.value
'ext'

```
"""

from dataclasses import dataclass
from enum import IntEnum
from enum import StrEnum
from enum import unique
from typing import Any
from typing import Callable
from typing import ClassVar
from typing import Optional

from pcrdesign.errors import ValidationError

DNA_ALPHABET: frozenset[str] = frozenset("ACGTSWMKYRBDHVN")
"""The characters permitted in a primer sequence (IUPAC codes, upper-case)."""


@unique
class Strand(IntEnum):
    """The strand of a primer relative to the genome."""

    POSITIVE = 1
    NEGATIVE = -1

    @classmethod
    def from_value(cls, value: Any) -> "Strand":
        """Builds a `Strand` from `1`, `-1`, `"1"` or `"-1"`."""
        try:
            return cls(int(value))
        except (TypeError, ValueError) as ex:
            raise ValidationError(f"Strand must be one of 1 or -1, received {value!r}") from ex


@unique
class PrimerPairType(StrEnum):
    """The closed set of roles a primer pair can play in an experiment."""

    EXT = "ext"
    INT = "int"
    ILLUMINA = "illumina"
    ILLUMINA_TAILED = "illumina_tailed"
    HRM = "hrm"
    FLAG = "flag"
    FLAG_REVCOM = "flag_revcom"
    HA = "ha"
    HA_REVCOM = "ha_revcom"

    @classmethod
    def from_value(cls, value: Any) -> "PrimerPairType":
        """Builds a `PrimerPairType`, ignoring case."""
        try:
            return cls(str(value).lower())
        except ValueError as ex:
            allowed = ", ".join(sorted(t.value for t in cls))
            raise ValidationError(
                f"PrimerPair type must be one of {allowed}; received {value!r}"
            ) from ex


def _dna(name: str, value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str) or value == "":
        raise ValidationError(f"{name} must be a non-empty DNA string, received {value!r}")
    invalid = sorted(set(value) - DNA_ALPHABET)
    if len(invalid) > 0:
        raise ValidationError(
            f"Not a valid DNA sequence for {name}: {value} (invalid bases: {''.join(invalid)})"
        )
    return value


def _int(name: str, value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as ex:
        raise ValidationError(f"{name} must be an integer, received {value!r}") from ex


def _float(name: str, value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as ex:
        raise ValidationError(f"{name} must be numeric, received {value!r}") from ex


def _str(name: str, value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _coordinate(name: str, value: Any) -> int:
    coordinate = _int(name, value)
    if coordinate is None:
        raise ValidationError(f"{name} must be an integer, received None")
    return coordinate


def _strand(name: str, value: Any) -> Strand:
    return Strand.from_value(value)


def _region(name: str, value: Any) -> Optional["SeqRegion"]:
    if value is not None and not isinstance(value, SeqRegion):
        raise ValidationError(f"{name} must be a SeqRegion, received {value!r}")
    return value


def _pair_type(name: str, value: Any) -> Optional[PrimerPairType]:
    return None if value is None else PrimerPairType.from_value(value)


def _string_list(name: str, value: Any) -> Optional[list[str]]:
    if value is None:
        return None
    if isinstance(value, str):
        raise ValidationError(f"{name} must be a list of strings, received {value!r}")
    return [str(v) for v in value]


class _Record:
    """Coerces each field through its converter on assignment, and rejects re-assignment of any
    field that is not listed as mutable."""

    _CONVERTERS: ClassVar[dict[str, Callable[[str, Any], Any]]] = {}
    _MUTABLE_FIELDS: ClassVar[frozenset[str]] = frozenset()

    def __setattr__(self, name: str, value: Any) -> None:
        if name in self.__dict__ and name not in self._MUTABLE_FIELDS:
            raise AttributeError(f"{type(self).__name__}.{name} is read-only")
        converter = self._CONVERTERS.get(name)
        object.__setattr__(self, name, value if converter is None else converter(name, value))


@dataclass(init=True, eq=True)
class SeqRegion(_Record):
    """The genomic location of a primer.

    Each part may be updated on its own once the location is known, e.g. `region.start = 12345`.
    Values are coerced on assignment; the ordering of `start` and `end` is checked on
    construction.

    Attributes:
        refname: the chromosome, scaffold or contig name
        start: the start position (inclusive)
        end: the end position (inclusive)
        strand: the strand, 1 or -1
    """

    _CONVERTERS: ClassVar[dict[str, Callable[[str, Any], Any]]] = {
        "refname": _str,
        "start": _coordinate,
        "end": _coordinate,
        "strand": _strand,
    }
    _MUTABLE_FIELDS: ClassVar[frozenset[str]] = frozenset(["refname", "start", "end", "strand"])

    refname: str
    start: int
    end: int
    strand: Strand = Strand.POSITIVE

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValidationError(
                f"End must be >= start; received start={self.start}, end={self.end}"
            )

    def __str__(self) -> str:
        return f"{self.refname}:{self.start}-{self.end}:{self.strand.value}"


@dataclass(init=True, kw_only=True, eq=True)
class Primer(_Record):
    """A single PCR primer as reported by Primer3.

    Attributes:
        sequence: the primer sequence, or None if it is not known
        name: an optional name, typically assigned once genomic coordinates are known
        region: the optional genomic location of the primer
        index_pos: the 0-based offset of the 5'-most base of the primer on the template strand of
            the submitted sequence
        length: the length of the primer
        self_end: the 3' self-complementarity score
        penalty: the Primer3 penalty for the primer
        self_any: the self-complementarity score
        end_stability: the stability of the last five 3' bases
        tm: the melting temperature
        gc_percent: the GC content in the range 0-100
    """

    _CONVERTERS: ClassVar[dict[str, Callable[[str, Any], Any]]] = {
        "sequence": _dna,
        "name": _str,
        "region": _region,
        "index_pos": _int,
        "length": _int,
        "self_end": _float,
        "penalty": _float,
        "self_any": _float,
        "end_stability": _float,
        "tm": _float,
        "gc_percent": _float,
    }
    _MUTABLE_FIELDS: ClassVar[frozenset[str]] = frozenset(["name", "region"])

    sequence: Optional[str] = None
    name: Optional[str] = None
    region: Optional[SeqRegion] = None
    index_pos: Optional[int] = None
    length: Optional[int] = None
    self_end: Optional[float] = None
    penalty: Optional[float] = None
    self_any: Optional[float] = None
    end_stability: Optional[float] = None
    tm: Optional[float] = None
    gc_percent: Optional[float] = None

    @property
    def seq(self) -> Optional[str]:
        """Synonym for `sequence`."""
        return self.sequence

    @property
    def posn(self) -> Optional[str]:
        """The genomic position as `refname:start-end:strand`, or None without a region."""
        return None if self.region is None else str(self.region)

    def summary(self) -> tuple[Optional[str], Optional[str]]:
        """Returns the name and sequence of the primer."""
        return self.name, self.sequence

    def info(
        self,
    ) -> tuple[Optional[str], Optional[str], Optional[int], Optional[float], Optional[float]]:
        """Returns the name, sequence, length, melting temperature, and GC content."""
        return self.name, self.sequence, self.length, self.tm, self.gc_percent


@dataclass(init=True, kw_only=True, eq=True)
class PrimerPair(_Record):
    """A left and right primer designed together by Primer3 for one amplicon.

    Attributes:
        left_primer: the left primer
        right_primer: the right primer
        pair_name: an optional name, typically assigned once genomic coordinates are known
        amplicon_name: the `SEQUENCE_ID` of the submitted sequence
        target: the target region (`position,length`) reported by Primer3
        explain: the Primer3 explanation of how many pairs were considered and rejected
        product_size_range: the product size range(s) used, e.g. `"500-1000"`
        excluded_regions: the excluded regions (`position,length`), in the order reported
        product_size: the size of the amplicon
        query_slice_start: optional start of the genomic slice the template was taken from
        query_slice_end: optional end of the genomic slice the template was taken from
        type: the role of the pair, one of `PrimerPairType`
        pair_compl_end: the 3' complementarity between the two primers
        pair_compl_any: the complementarity between the two primers
        pair_penalty: the Primer3 penalty for the pair
        warnings: any warning reported by Primer3
    """

    _CONVERTERS: ClassVar[dict[str, Callable[[str, Any], Any]]] = {
        "pair_name": _str,
        "amplicon_name": _str,
        "target": _str,
        "explain": _str,
        "product_size_range": _str,
        "excluded_regions": _string_list,
        "product_size": _int,
        "query_slice_start": _int,
        "query_slice_end": _int,
        "type": _pair_type,
        "pair_compl_end": _float,
        "pair_compl_any": _float,
        "pair_penalty": _float,
        "warnings": _str,
    }
    _MUTABLE_FIELDS: ClassVar[frozenset[str]] = frozenset(["pair_name", "type"])

    left_primer: Primer
    right_primer: Primer
    pair_name: Optional[str] = None
    amplicon_name: Optional[str] = None
    target: Optional[str] = None
    explain: Optional[str] = None
    product_size_range: Optional[str] = None
    excluded_regions: Optional[list[str]] = None
    product_size: Optional[int] = None
    query_slice_start: Optional[int] = None
    query_slice_end: Optional[int] = None
    type: Optional[PrimerPairType] = None
    pair_compl_end: Optional[float] = None
    pair_compl_any: Optional[float] = None
    pair_penalty: Optional[float] = None
    warnings: Optional[str] = None

    def __post_init__(self) -> None:
        for name in ("left_primer", "right_primer"):
            if not isinstance(getattr(self, name), Primer):
                raise ValidationError(f"{name} must be a Primer, received {getattr(self, name)!r}")

    @property
    def left_primer_name(self) -> Optional[str]:
        return self.left_primer.name

    @property
    def right_primer_name(self) -> Optional[str]:
        return self.right_primer.name

    def summary(self) -> tuple[Any, ...]:
        """Returns the amplicon name, product size, and the summary of each primer."""
        return (
            self.amplicon_name,
            self.product_size,
            *self.left_primer.summary(),
            *self.right_primer.summary(),
        )

    def info(self) -> tuple[Any, ...]:
        """Returns the amplicon name, pair name, type, product size, and the info of each
        primer."""
        return (
            self.amplicon_name,
            self.pair_name,
            None if self.type is None else self.type.value,
            self.product_size,
            *self.left_primer.info(),
            *self.right_primer.info(),
        )
