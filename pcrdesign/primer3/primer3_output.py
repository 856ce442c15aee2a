"""
# Parsing Primer3 Output

This module turns the output of `primer3_core` into [`PrimerPair`][pcrdesign.model.PrimerPair]
objects.

Primer3 echoes each input record and then reports its designs as `KEY=VALUE` lines.  Keys for
individual designs embed the zero-based rank of the pair, e.g. `PRIMER_LEFT_0_SEQUENCE` or
`PRIMER_PAIR_1_PENALTY`, and each record ends with a line containing only `=`.  Parsing is a
left fold over the lines:

1. [`ParsedLine`][pcrdesign.primer3.primer3_output.ParsedLine] splits a line into its key and
    value and removes the rank from the key.
2. A fixed, ordered list of classification rules maps a `ParsedLine` to a `Capture`, the change
    it makes to the parser state (or to nothing, for lines that are not of interest).
3. [`ParserState`][pcrdesign.primer3.primer3_output.ParserState] is an immutable value.
    `ParserState.step()` consumes one line and returns the next state and, whenever a record is
    complete, the `PrimerPair` built from it.

A record is complete when the rank changes or at the end of a Primer3 record.  Lines not matched
by any rule are ignored, so new Primer3 tags do not affect parsing, and so are lines with an
empty value.  A record that reports no designs still yields one pair without primer sequences,
carrying the record's explain strings.  Output that ends without a final `=` line drops the
design that was still being accumulated.

## Examples

```python
>>> lines = [ \
    "SEQUENCE_ID=amp1", \
    "SEQUENCE_TEMPLATE=ACGTACGTACGTACGTACGT", \
    "PRIMER_PAIR_EXPLAIN=considered 1, ok 1", \
    "PRIMER_PAIR_0_PENALTY=0.1303", \
    "PRIMER_LEFT_0_SEQUENCE=ACGTAC", \
    "PRIMER_RIGHT_0_SEQUENCE=ACGTAC", \
    "PRIMER_LEFT_0=2,6", \
    "PRIMER_RIGHT_0=17,6", \
    "PRIMER_PAIR_0_PRODUCT_SIZE=16", \
    "=", \
]
>>> pairs = ResponseStreamParser().parse_all(lines)
>>> len(pairs)
1
>>> pairs[0].amplicon_name, pairs[0].pair_penalty, pairs[0].product_size
('amp1', 0.1303, 16)
>>> pairs[0].right_primer.index_pos
12

```
"""

import re
from dataclasses import dataclass
from dataclasses import field
from dataclasses import replace
from typing import Any
from typing import Callable
from typing import Iterable
from typing import Iterator
from typing import Optional
from typing import Self
from typing import TypeAlias

from pcrdesign.model import Primer
from pcrdesign.model import PrimerPair

_RANK_PATTERN: re.Pattern[str] = re.compile(r"_(\d+)(?=_|$)")
_NAMESPACE_PATTERN: re.Pattern[str] = re.compile(r"^PRIMER_(LEFT|RIGHT|PAIR)(?:_(\w+))?$")
_EXPLAIN_PATTERN: re.Pattern[str] = re.compile(r"^PRIMER_(LEFT|RIGHT|PAIR)_EXPLAIN$")
_INPUT_PATTERN: re.Pattern[str] = re.compile(r"^PRIMER_(LEFT|RIGHT)_INPUT$")

LEFT: str = "LEFT"
RIGHT: str = "RIGHT"
PAIR: str = "PAIR"


@dataclass(frozen=True, slots=True)
class ParsedLine:
    """A line of Primer3 output split into its key and value.

    Attributes:
        key: the key with any pair rank removed, e.g. `PRIMER_LEFT_SEQUENCE` for
            `PRIMER_LEFT_0_SEQUENCE`
        value: the value (everything after the first `=`)
        rank: the pair rank embedded in the key, or None if the key has none
        is_terminator: True if the line is the record terminator, a lone `=`
    """

    key: str
    value: str
    rank: Optional[int] = None
    is_terminator: bool = False

    @staticmethod
    def parse(line: str) -> Optional["ParsedLine"]:
        """Parses a line of output, returning None for lines without a `KEY=VALUE` shape.

        Example:

        ```python
        >>> ParsedLine.parse("PRIMER_PAIR_1_PENALTY=0.5")
        ParsedLine(key='PRIMER_PAIR_PENALTY', value='0.5', rank=1, is_terminator=False)
        >>> ParsedLine.parse("PRIMER_LEFT_0=14,20")
        ParsedLine(key='PRIMER_LEFT', value='14,20', rank=0, is_terminator=False)
        >>> ParsedLine.parse("SEQUENCE_ID=amp1")
        ParsedLine(key='SEQUENCE_ID', value='amp1', rank=None, is_terminator=False)

        ```
        """
        line = line.rstrip("\r\n")
        if line == "=":
            return ParsedLine(key="", value="", is_terminator=True)
        if "=" not in line:
            return None
        key, value = line.split("=", maxsplit=1)
        match = _RANK_PATTERN.search(key)
        if match is None:
            return ParsedLine(key=key, value=value)
        stripped = key[: match.start()] + key[match.end() :]
        return ParsedLine(key=stripped, value=value, rank=int(match.group(1)))


@dataclass(frozen=True, slots=True)
class PrimerFields:
    """The values reported by Primer3 for one primer of the pair currently being parsed.

    Metrics are kept as the strings emitted by Primer3; they are validated and converted when the
    `Primer` is built.
    """

    sequence: Optional[str] = None
    index_pos: Optional[int] = None
    length: Optional[int] = None
    self_end: Optional[str] = None
    penalty: Optional[str] = None
    self_any: Optional[str] = None
    end_stability: Optional[str] = None
    tm: Optional[str] = None
    gc_percent: Optional[str] = None

    def with_field(self, name: str, value: str) -> Self:
        """Returns a copy with the field set, or this object if the field is not recognized."""
        attribute = PRIMER_FIELDS.get(name)
        return self if attribute is None else replace(self, **{attribute: value})

    def to_primer(self, fixed_sequence: Optional[str] = None) -> Primer:
        """Builds the `Primer`.  The sequence falls back to `fixed_sequence`, the primer supplied
        in the request and echoed back by Primer3, when Primer3 did not report one."""
        values: dict[str, Any] = dict(
            sequence=self.sequence if self.sequence is not None else fixed_sequence,
            index_pos=self.index_pos,
            length=self.length,
            self_end=self.self_end,
            penalty=self.penalty,
            self_any=self.self_any,
            end_stability=self.end_stability,
            tm=self.tm,
            gc_percent=self.gc_percent,
        )
        return Primer(**values)


@dataclass(frozen=True, slots=True)
class LeftFields(PrimerFields):
    """The values reported for the left primer."""


@dataclass(frozen=True, slots=True)
class RightFields(PrimerFields):
    """The values reported for the right primer."""


@dataclass(frozen=True, slots=True)
class PairFields:
    """The pair-level values reported by Primer3 for the pair currently being parsed."""

    product_size: Optional[str] = None
    warnings: Optional[str] = None
    pair_penalty: Optional[str] = None
    pair_compl_any: Optional[str] = None
    pair_compl_end: Optional[str] = None

    def with_field(self, name: str, value: str) -> Self:
        """Returns a copy with the field set, or this object if the field is not recognized."""
        attribute = PAIR_FIELDS.get(name)
        return self if attribute is None else replace(self, **{attribute: value})


PRIMER_FIELDS: dict[str, str] = {
    "sequence": "sequence",
    "self_end": "self_end",
    "penalty": "penalty",
    "self_any": "self_any",
    "end_stability": "end_stability",
    "tm": "tm",
    "gc_percent": "gc_percent",
}
"""Maps the lower-cased Primer3 field name of a left or right primer to a `PrimerFields`
attribute, e.g. `PRIMER_LEFT_0_GC_PERCENT` is stored as `gc_percent`."""

PAIR_FIELDS: dict[str, str] = {
    "product_size": "product_size",
    "warnings": "warnings",
    "pair_penalty": "pair_penalty",
    "pair_compl_any": "pair_compl_any",
    "pair_compl_end": "pair_compl_end",
}
"""Maps a pair field name to a `PairFields` attribute.  Pair field names keep their `pair_` prefix,
e.g. `PRIMER_PAIR_0_PENALTY` is stored as `pair_penalty`."""


@dataclass(frozen=True, slots=True)
class SequenceFields:
    """The values that apply to every pair designed for the current sequence."""

    sequence_id: Optional[str] = None
    target: Optional[str] = None
    excluded_regions: tuple[str, ...] = ()
    explain_left: Optional[str] = None
    explain_right: Optional[str] = None
    explain_pair: Optional[str] = None
    product_size_range: Optional[str] = None
    left_input: Optional[str] = None
    right_input: Optional[str] = None
    warnings: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ParserState:
    """The state threaded through the lines of Primer3 output.

    Attributes:
        current_rank: the rank of the pair being accumulated, or None before the first ranked key
            of a record
        recording: True once the `SEQUENCE_*` keys of a record have been seen
        left: the values accumulated for the left primer
        right: the values accumulated for the right primer
        pair: the pair-level values accumulated
        sequence: the values that apply to all pairs of the current record
    """

    current_rank: Optional[int] = None
    recording: bool = False
    left: LeftFields = field(default_factory=LeftFields)
    right: RightFields = field(default_factory=RightFields)
    pair: PairFields = field(default_factory=PairFields)
    sequence: SequenceFields = field(default_factory=SequenceFields)

    @property
    def accepts_pair_fields(self) -> bool:
        """True if ranked design values may be captured."""
        return self.recording and self.current_rank is not None

    def to_primer_pair(self) -> PrimerPair:
        """Builds the `PrimerPair` from the accumulated values."""
        values: dict[str, Any] = dict(
            left_primer=self.left.to_primer(fixed_sequence=self.sequence.left_input),
            right_primer=self.right.to_primer(fixed_sequence=self.sequence.right_input),
            amplicon_name=self.sequence.sequence_id,
            target=self.sequence.target,
            explain=self.sequence.explain_pair,
            product_size_range=self.sequence.product_size_range,
            excluded_regions=(
                list(self.sequence.excluded_regions)
                if len(self.sequence.excluded_regions) > 0
                else None
            ),
            product_size=self.pair.product_size,
            pair_compl_end=self.pair.pair_compl_end,
            pair_compl_any=self.pair.pair_compl_any,
            pair_penalty=self.pair.pair_penalty,
            warnings=(
                self.pair.warnings if self.pair.warnings is not None else self.sequence.warnings
            ),
        )
        return PrimerPair(**values)

    def flush(self, at_terminator: bool = False) -> tuple["ParserState", Optional[PrimerPair]]:
        """Completes the pair being accumulated, if any.

        A record that ends before any ranked key (e.g. a design that returned no pairs) still
        yields one pair carrying its sequence-level values, so its explain strings are not lost.

        Args:
            at_terminator: True if the flush is caused by the `=` that ends a record

        Returns:
            the state with empty accumulators, and the completed pair (or None if no pair was
            being accumulated)
        """
        if not self.recording or (self.current_rank is None and not at_terminator):
            return self, None
        primer_pair = self.to_primer_pair()
        return replace(self, left=LeftFields(), right=RightFields(), pair=PairFields()), primer_pair

    def step(self, line: str) -> tuple["ParserState", Optional[PrimerPair]]:
        """Consumes one line of Primer3 output.

        Args:
            line: the line, with or without its trailing newline

        Returns:
            the next state, and the pair completed by this line (if any)
        """
        parsed = ParsedLine.parse(line)
        if parsed is None:
            return self, None
        # an empty ranked value does not start a new pair
        if parsed.rank is not None and parsed.value == "":
            return self, None

        state: ParserState = self
        emitted: Optional[PrimerPair] = None
        if parsed.is_terminator or (parsed.rank is not None and parsed.rank != self.current_rank):
            state, emitted = state.flush(at_terminator=parsed.is_terminator)
            if parsed.is_terminator:
                return ParserState(), emitted
            state = replace(state, current_rank=parsed.rank)
        else:
            start = start_recording(parsed)
            if start is not None:
                state = start.apply(state)

        capture = classify(parsed, state)
        if capture is not None:
            state = capture.apply(state)
        return state, emitted


@dataclass(frozen=True, slots=True)
class StartRecording:
    """Starts recording a record, optionally remembering its sequence identifier."""

    sequence_id: Optional[str] = None

    def apply(self, state: ParserState) -> ParserState:
        if self.sequence_id is None:
            return replace(state, recording=True)
        sequence = replace(state.sequence, sequence_id=self.sequence_id)
        return replace(state, recording=True, sequence=sequence)


@dataclass(frozen=True, slots=True)
class SetSequenceField:
    """Sets a value that applies to every pair of the current record."""

    name: str
    value: str

    def apply(self, state: ParserState) -> ParserState:
        return replace(state, sequence=replace(state.sequence, **{self.name: self.value}))


@dataclass(frozen=True, slots=True)
class AppendExcludedRegion:
    """Appends an excluded region to the current record."""

    value: str

    def apply(self, state: ParserState) -> ParserState:
        regions = (*state.sequence.excluded_regions, self.value)
        return replace(state, sequence=replace(state.sequence, excluded_regions=regions))


@dataclass(frozen=True, slots=True)
class SetPairField:
    """Sets a field on the left, right or pair accumulator."""

    namespace: str
    name: str
    value: str

    def apply(self, state: ParserState) -> ParserState:
        if self.namespace == LEFT:
            return replace(state, left=state.left.with_field(self.name, self.value))
        elif self.namespace == RIGHT:
            return replace(state, right=state.right.with_field(self.name, self.value))
        else:
            return replace(state, pair=state.pair.with_field(self.name, self.value))


@dataclass(frozen=True, slots=True)
class SetPosition:
    """Sets the 5' offset and length of the left or right primer.

    Primer3 reports a left primer by its leftmost base and a right primer by its rightmost base;
    `index_pos` is always the leftmost base on the template strand.
    """

    namespace: str
    position: int
    length: int

    @property
    def index_pos(self) -> int:
        if self.namespace == LEFT:
            return self.position
        return self.position - self.length + 1

    def apply(self, state: ParserState) -> ParserState:
        if self.namespace == LEFT:
            left = replace(state.left, index_pos=self.index_pos, length=self.length)
            return replace(state, left=left)
        right = replace(state.right, index_pos=self.index_pos, length=self.length)
        return replace(state, right=right)


Capture: TypeAlias = (
    StartRecording | SetSequenceField | AppendExcludedRegion | SetPairField | SetPosition
)
Rule: TypeAlias = Callable[[ParsedLine], Optional[Capture]]


def start_recording(line: ParsedLine) -> Optional[Capture]:
    """Recording starts at the `SEQUENCE_*` keys that Primer3 echoes for each record."""
    if line.key == "SEQUENCE_ID" and line.value != "":
        return StartRecording(sequence_id=line.value)
    elif line.key.startswith("SEQUENCE"):
        return StartRecording()
    return None


def _product_size_range(line: ParsedLine) -> Optional[Capture]:
    if line.key == "PRIMER_PRODUCT_SIZE_RANGE":
        return SetSequenceField(name="product_size_range", value=line.value)
    return None


def _explain(line: ParsedLine) -> Optional[Capture]:
    match = _EXPLAIN_PATTERN.match(line.key)
    if match is None:
        return None
    return SetSequenceField(name=f"explain_{match.group(1).lower()}", value=line.value)


def _target(line: ParsedLine) -> Optional[Capture]:
    if line.key == "TARGET":
        return SetSequenceField(name="target", value=line.value)
    return None


def _excluded_region(line: ParsedLine) -> Optional[Capture]:
    if line.key == "EXCLUDED_REGION":
        return AppendExcludedRegion(value=line.value)
    return None


def _fixed_primer(line: ParsedLine) -> Optional[Capture]:
    match = _INPUT_PATTERN.match(line.key)
    if match is None:
        return None
    return SetSequenceField(name=f"{match.group(1).lower()}_input", value=line.value)


def _pair_product_size(line: ParsedLine) -> Optional[Capture]:
    if line.key == "PRIMER_PAIR_PRODUCT_SIZE":
        return SetPairField(namespace=PAIR, name="product_size", value=line.value)
    return None


def _pair_warning(line: ParsedLine) -> Optional[Capture]:
    if line.key == "PRIMER_WARNING":
        return SetPairField(namespace=PAIR, name="warnings", value=line.value)
    return None


def _namespaced_field(line: ParsedLine) -> Optional[Capture]:
    match = _NAMESPACE_PATTERN.match(line.key)
    if match is None:
        return None
    namespace, name = match.group(1), match.group(2)
    if name is None:
        return _position(namespace, line.value)
    if namespace == PAIR:
        name = f"{PAIR}_{name}"
    return SetPairField(namespace=namespace, name=name.lower(), value=line.value)


def _position(namespace: str, value: str) -> Optional[Capture]:
    if namespace == PAIR:
        return None
    fields = value.split(",")
    if len(fields) != 2:
        return None
    try:
        position, length = int(fields[0]), int(fields[1])
    except ValueError:
        return None
    return SetPosition(namespace=namespace, position=position, length=length)


def _sequence_warning(line: ParsedLine) -> Optional[Capture]:
    if line.key == "PRIMER_WARNING":
        return SetSequenceField(name="warnings", value=line.value)
    return None


SEQUENCE_RULES: tuple[Rule, ...] = (
    _product_size_range,
    _explain,
    _target,
    _excluded_region,
    _fixed_primer,
)
"""Rules for values that apply to the whole record; always applied."""

PAIR_RULES: tuple[Rule, ...] = (
    _pair_product_size,
    _pair_warning,
    _namespaced_field,
)
"""Rules for the values of a single ranked pair; applied only while recording a ranked pair."""

FALLBACK_RULES: tuple[Rule, ...] = (_sequence_warning,)
"""Rules applied when no other rule matched.  A warning reported before the first ranked pair of a
record applies to every pair of that record."""


def classify(line: ParsedLine, state: ParserState) -> Optional[Capture]:
    """Returns the capture made by the first matching rule, in priority order."""
    if line.key.startswith("SEQUENCE") or line.value == "":
        return None
    rules: list[Rule] = list(SEQUENCE_RULES)
    if state.accepts_pair_fields:
        rules.extend(PAIR_RULES)
    rules.extend(FALLBACK_RULES)
    for rule in rules:
        capture = rule(line)
        if capture is not None:
            return capture
    return None


class ResponseStreamParser:
    """Parses the output of `primer3_core` into `PrimerPair`s.

    The parser keeps no state between calls, so a single instance may be shared.
    """

    def parse(self, lines: Iterable[str]) -> Iterator[PrimerPair]:
        """Lazily parses lines of Primer3 output.

        Args:
            lines: the lines of output, with or without trailing newlines

        Returns:
            the primer pairs, in the order Primer3 reported them
        """
        state = ParserState()
        for line in lines:
            state, primer_pair = state.step(line)
            if primer_pair is not None:
                yield primer_pair

    def parse_all(self, lines: Iterable[str]) -> list[PrimerPair]:
        """Parses lines of Primer3 output into a list of primer pairs."""
        return list(self.parse(lines))
