from dataclasses import replace
from pathlib import Path
from typing import Optional

import pytest

from pcrdesign.errors import ValidationError
from pcrdesign.model import PrimerPair
from pcrdesign.primer3.primer3_explain import Primer3Failure
from pcrdesign.primer3.primer3_explain import build_failures
from pcrdesign.primer3.primer3_output import AppendExcludedRegion
from pcrdesign.primer3.primer3_output import Capture
from pcrdesign.primer3.primer3_output import LeftFields
from pcrdesign.primer3.primer3_output import PairFields
from pcrdesign.primer3.primer3_output import ParsedLine
from pcrdesign.primer3.primer3_output import ParserState
from pcrdesign.primer3.primer3_output import ResponseStreamParser
from pcrdesign.primer3.primer3_output import SetPairField
from pcrdesign.primer3.primer3_output import SetPosition
from pcrdesign.primer3.primer3_output import SetSequenceField
from pcrdesign.primer3.primer3_output import StartRecording
from pcrdesign.primer3.primer3_output import classify
from pcrdesign.primer3.primer3_output import start_recording


def _parse(lines: list[str]) -> list[PrimerPair]:
    return ResponseStreamParser().parse_all(lines)


def _design(rank: int, left: str, right: str, penalty: str) -> list[str]:
    """The lines Primer3 reports for one ranked pair."""
    return [
        f"PRIMER_PAIR_{rank}_PENALTY={penalty}",
        f"PRIMER_LEFT_{rank}_SEQUENCE={left}",
        f"PRIMER_RIGHT_{rank}_SEQUENCE={right}",
        f"PRIMER_LEFT_{rank}=10,{len(left)}",
        f"PRIMER_RIGHT_{rank}=120,{len(right)}",
        f"PRIMER_PAIR_{rank}_PRODUCT_SIZE=111",
    ]


@pytest.fixture
def recording_state() -> ParserState:
    """A state part way through the first ranked pair of a record."""
    return ParserState(current_rank=0, recording=True)


@pytest.mark.parametrize(
    "line, expected",
    [
        ("=", ParsedLine(key="", value="", is_terminator=True)),
        ("=\n", ParsedLine(key="", value="", is_terminator=True)),
        ("SEQUENCE_ID=amp1\r\n", ParsedLine(key="SEQUENCE_ID", value="amp1")),
        ("PRIMER_LEFT_0_SEQUENCE=ACGT", ParsedLine("PRIMER_LEFT_SEQUENCE", "ACGT", rank=0)),
        ("PRIMER_RIGHT_12=120,23", ParsedLine("PRIMER_RIGHT", "120,23", rank=12)),
        ("PRIMER_PAIR_3_PENALTY=1.5", ParsedLine("PRIMER_PAIR_PENALTY", "1.5", rank=3)),
        ("PRIMER_PAIR_EXPLAIN=ok 1", ParsedLine(key="PRIMER_PAIR_EXPLAIN", value="ok 1")),
        ("PRIMER_WARNING=a=b", ParsedLine(key="PRIMER_WARNING", value="a=b")),
        ("PRIMER_TASK=", ParsedLine(key="PRIMER_TASK", value="")),
        ("PRIMER_ERROR", None),
        ("", None),
    ],
)
def test_parsed_line(line: str, expected: Optional[ParsedLine]) -> None:
    assert ParsedLine.parse(line) == expected


@pytest.mark.parametrize(
    "namespace, position, length, expected_index_pos",
    [
        ("LEFT", 14, 20, 14),
        ("RIGHT", 120, 23, 98),
        ("RIGHT", 22, 23, 0),
    ],
)
def test_set_position(namespace: str, position: int, length: int, expected_index_pos: int) -> None:
    capture = SetPosition(namespace=namespace, position=position, length=length)
    assert capture.index_pos == expected_index_pos


def test_index_transform_from_stream() -> None:
    pairs = _parse(
        [
            "SEQUENCE_ID=amp1",
            "PRIMER_LEFT_0=14,20",
            "PRIMER_RIGHT_0=120,23",
            "=",
        ]
    )
    assert len(pairs) == 1
    assert (pairs[0].left_primer.index_pos, pairs[0].left_primer.length) == (14, 20)
    assert (pairs[0].right_primer.index_pos, pairs[0].right_primer.length) == (98, 23)


@pytest.mark.parametrize(
    "line, expected",
    [
        ("SEQUENCE_ID=amp1", StartRecording(sequence_id="amp1")),
        ("SEQUENCE_TEMPLATE=ACGT", StartRecording()),
        ("SEQUENCE_TARGET=150,1", StartRecording()),
        ("SEQUENCE_ID=", StartRecording()),
        ("PRIMER_PAIR_EXPLAIN=considered 1, ok 1", None),
    ],
)
def test_start_recording(line: str, expected: Optional[Capture]) -> None:
    parsed = ParsedLine.parse(line)
    assert parsed is not None
    assert start_recording(parsed) == expected


@pytest.mark.parametrize(
    "line, expected",
    [
        ("SEQUENCE_ID=amp1", None),
        ("SEQUENCE_EXCLUDED_REGION=14,20", None),
        ("PRIMER_PRODUCT_SIZE_RANGE=50-300", SetSequenceField("product_size_range", "50-300")),
        ("PRIMER_LEFT_EXPLAIN=ok 3", SetSequenceField(name="explain_left", value="ok 3")),
        ("PRIMER_RIGHT_EXPLAIN=ok 2", SetSequenceField(name="explain_right", value="ok 2")),
        ("PRIMER_PAIR_EXPLAIN=ok 1", SetSequenceField(name="explain_pair", value="ok 1")),
        ("TARGET=150,1", SetSequenceField(name="target", value="150,1")),
        ("EXCLUDED_REGION=14,20", AppendExcludedRegion(value="14,20")),
        ("PRIMER_LEFT_INPUT=ACGT", SetSequenceField(name="left_input", value="ACGT")),
        ("PRIMER_RIGHT_INPUT=TGCA", SetSequenceField(name="right_input", value="TGCA")),
        ("PRIMER_PAIR_0_PRODUCT_SIZE=191", SetPairField("PAIR", "product_size", "191")),
        ("PRIMER_PAIR_0_PENALTY=1.77", SetPairField("PAIR", "pair_penalty", "1.77")),
        ("PRIMER_PAIR_0_COMPL_ANY=5.00", SetPairField("PAIR", "pair_compl_any", "5.00")),
        ("PRIMER_LEFT_0_GC_PERCENT=43.478", SetPairField("LEFT", "gc_percent", "43.478")),
        ("PRIMER_RIGHT_0_END_STABILITY=3.76", SetPairField("RIGHT", "end_stability", "3.76")),
        ("PRIMER_WARNING=low tm", SetPairField(namespace="PAIR", name="warnings", value="low tm")),
        ("PRIMER_LEFT_0=14,20", SetPosition(namespace="LEFT", position=14, length=20)),
        ("PRIMER_PAIR_0=14,20", None),
        ("PRIMER_LEFT_0=14", None),
        ("PRIMER_LEFT_0=a,b", None),
        ("PRIMER_TASK=generic", None),
        ("PRIMER_LEFT_0_TM=", None),
        ("PRIMER_PAIR_EXPLAIN=", None),
    ],
)
def test_classify_while_recording_a_pair(
    recording_state: ParserState, line: str, expected: Optional[Capture]
) -> None:
    parsed = ParsedLine.parse(line)
    assert parsed is not None
    assert classify(parsed, recording_state) == expected


@pytest.mark.parametrize(
    "line, expected",
    [
        ("PRIMER_PRODUCT_SIZE_RANGE=50-300", SetSequenceField("product_size_range", "50-300")),
        ("PRIMER_WARNING=low tm", SetSequenceField(name="warnings", value="low tm")),
        ("PRIMER_PAIR_0_PENALTY=1.77", None),
        ("PRIMER_LEFT_0=14,20", None),
    ],
)
def test_classify_before_first_pair(line: str, expected: Optional[Capture]) -> None:
    parsed = ParsedLine.parse(line)
    assert parsed is not None
    assert classify(parsed, ParserState(recording=True)) == expected


def test_captures_apply(recording_state: ParserState) -> None:
    state = recording_state
    for capture in [
        SetSequenceField(name="sequence_id", value="amp1"),
        AppendExcludedRegion(value="14,20"),
        AppendExcludedRegion(value="200,5"),
        SetPairField(namespace="LEFT", name="tm", value="59.0"),
        SetPairField(namespace="RIGHT", name="sequence", value="ACGT"),
        SetPairField(namespace="PAIR", name="pair_penalty", value="1.5"),
        SetPairField(namespace="LEFT", name="self_any_th", value="7.5"),
        SetPosition(namespace="RIGHT", position=120, length=23),
    ]:
        state = capture.apply(state)

    assert state.sequence.sequence_id == "amp1"
    assert state.sequence.excluded_regions == ("14,20", "200,5")
    assert state.left == LeftFields(tm="59.0")
    assert state.right.sequence == "ACGT"
    assert (state.right.index_pos, state.right.length) == (98, 23)
    assert state.pair == PairFields(pair_penalty="1.5")
    # the original state is unchanged
    assert recording_state == ParserState(current_rank=0, recording=True)


def test_step_emits_on_rank_change() -> None:
    state = ParserState()
    for line in ["SEQUENCE_ID=amp1", *_design(0, "ACGTACGT", "TGCATGCA", "0.5")]:
        state, emitted = state.step(line)
        assert emitted is None
    assert state.current_rank == 0

    state, emitted = state.step("PRIMER_PAIR_1_PENALTY=0.9")
    assert emitted is not None
    assert emitted.pair_penalty == 0.5
    assert state.current_rank == 1
    assert state.pair == PairFields(pair_penalty="0.9")
    assert state.left == LeftFields()


def test_step_terminator_resets_state(recording_state: ParserState) -> None:
    state = replace(recording_state, left=LeftFields(sequence="ACGT"))
    state, emitted = state.step("=")
    assert emitted is not None
    assert emitted.left_primer.sequence == "ACGT"
    assert state == ParserState()


def test_step_ignores_lines_without_equals(recording_state: ParserState) -> None:
    assert recording_state.step("PRIMER_ERROR: something went wrong") == (recording_state, None)


def test_two_ranks_then_terminator() -> None:
    pairs = _parse(
        [
            "SEQUENCE_ID=amp1",
            "PRIMER_PAIR_EXPLAIN=considered 40, ok 2",
            *_design(0, "ACGTACGTAC", "TTGCATGCAA", "0.25"),
            *_design(1, "CGTACGTACG", "GGCATGCATT", "0.75"),
            "=",
        ]
    )
    assert len(pairs) == 2
    assert [p.left_primer.sequence for p in pairs] == ["ACGTACGTAC", "CGTACGTACG"]
    assert [p.pair_penalty for p in pairs] == [0.25, 0.75]
    assert all(p.amplicon_name == "amp1" for p in pairs)
    assert all(p.explain == "considered 40, ok 2" for p in pairs)


def test_truncated_stream_drops_last_pair() -> None:
    pairs = _parse(
        [
            "SEQUENCE_ID=amp1",
            *_design(0, "ACGTACGTAC", "TTGCATGCAA", "0.25"),
            *_design(1, "CGTACGTACG", "GGCATGCATT", "0.75"),
        ]
    )
    assert len(pairs) == 1
    assert pairs[0].pair_penalty == 0.25


def test_multiple_records() -> None:
    """Each record yields only its own pairs, and nothing leaks from one record to the next"""
    pairs = _parse(
        [
            "PRIMER_PRODUCT_SIZE_RANGE=50-300",
            "SEQUENCE_ID=amp1",
            "PRIMER_LEFT_INPUT=ACGTACGTAC",
            "PRIMER_WARNING=first record only",
            *_design(0, "ACGTACGTAC", "TTGCATGCAA", "0.25"),
            "=",
            "SEQUENCE_ID=amp2",
            "PRIMER_PAIR_NUM_RETURNED=0",
            "=",
            "SEQUENCE_ID=amp3",
            *_design(0, "CGTACGTACG", "GGCATGCATT", "0.75"),
            "=",
        ]
    )
    assert [p.amplicon_name for p in pairs] == ["amp1", "amp2", "amp3"]
    assert pairs[0].product_size_range == "50-300"
    assert pairs[0].warnings == "first record only"
    assert pairs[1].left_primer.sequence is None
    assert pairs[1].right_primer.sequence is None
    assert pairs[2].product_size_range is None
    assert pairs[2].warnings is None


def test_record_without_pairs_keeps_explain() -> None:
    pairs = _parse(
        [
            "SEQUENCE_ID=amp_fail",
            "SEQUENCE_TEMPLATE=ACGTACGTACGTACGTACGTACGTACGT",
            "PRIMER_LEFT_EXPLAIN=considered 20, ok 4",
            "PRIMER_PAIR_EXPLAIN=considered 40, unacceptable product size 40, ok 0",
            "PRIMER_PAIR_NUM_RETURNED=0",
            "=",
        ]
    )
    assert len(pairs) == 1
    pair = pairs[0]
    assert pair.amplicon_name == "amp_fail"
    assert pair.explain == "considered 40, unacceptable product size 40, ok 0"
    assert pair.left_primer.sequence is None
    assert pair.right_primer.sequence is None
    assert pair.pair_penalty is None
    assert build_failures(pair.explain) == [
        Primer3Failure(reason="unacceptable product size", count=40)
    ]


def test_step_terminator_emits_record_without_rank() -> None:
    state = ParserState()
    for line in ["SEQUENCE_ID=amp1", "PRIMER_PAIR_EXPLAIN=considered 0, ok 0"]:
        state, emitted = state.step(line)
        assert emitted is None
    state, emitted = state.step("=")
    assert emitted is not None
    assert emitted.amplicon_name == "amp1"
    assert emitted.explain == "considered 0, ok 0"
    assert state == ParserState()


@pytest.mark.parametrize(
    "empty_line, position",
    [
        ("PRIMER_LEFT_0_SEQUENCE=", 3),
        ("PRIMER_PAIR_0_PENALTY=", 3),
        ("PRIMER_LEFT_0_TM=", 4),
        ("PRIMER_PAIR_0_PRODUCT_SIZE=", 6),
        ("PRIMER_LEFT_1_SEQUENCE=", 7),
        ("PRIMER_PAIR_EXPLAIN=", 2),
        ("PRIMER_PRODUCT_SIZE_RANGE=", 1),
        ("PRIMER_WARNING=", 1),
        ("PRIMER_LEFT_INPUT=", 1),
    ],
)
def test_empty_values_are_ignored(empty_line: str, position: int) -> None:
    lines = [
        "SEQUENCE_ID=amp1",
        "PRIMER_PAIR_EXPLAIN=considered 40, ok 1",
        *_design(0, "ACGTACGTAC", "TTGCATGCAA", "0.25"),
        "=",
    ]
    with_empty = [*lines[:position], empty_line, *lines[position:]]
    assert _parse(with_empty) == _parse(lines)


def test_empty_sequence_id_starts_recording() -> None:
    state, emitted = ParserState().step("SEQUENCE_ID=")
    assert emitted is None
    assert state.recording
    assert state.sequence.sequence_id is None


def test_lines_before_sequence_are_not_recorded() -> None:
    assert _parse(["PRIMER_PAIR_0_PENALTY=0.25", "PRIMER_LEFT_0_SEQUENCE=ACGT", "="]) == []


def test_unknown_keys_are_ignored() -> None:
    lines = ["SEQUENCE_ID=amp1", *_design(0, "ACGTACGTAC", "TTGCATGCAA", "0.25"), "="]
    with_unknown = [
        "PRIMER_FOO_BAR=1",
        *lines[:3],
        "PRIMER_LEFT_0_FOO_BAR=1",
        "PRIMER_PAIR_0_FOO=bar",
        "PRIMER_LEFT_0_SELF_ANY_TH=7.58",
        *lines[3:-1],
        "PRIMER_FOO_BAR=1",
        "SOME_OTHER_TAG=x",
        lines[-1],
    ]
    assert _parse(with_unknown) == _parse(lines)


def test_fixed_primers_are_used_when_sequences_are_not_reported() -> None:
    pairs = _parse(
        [
            "SEQUENCE_ID=amp1",
            "PRIMER_LEFT_INPUT=CATCTGTGTTCTGCTGAATGATG",
            "PRIMER_RIGHT_INPUT=CTTCAGGAAACTCAGACGACTG",
            "PRIMER_PAIR_0_PENALTY=1.5",
            "PRIMER_LEFT_0=40,23",
            "PRIMER_RIGHT_0=230,22",
            "PRIMER_PAIR_1_PENALTY=2.5",
            "PRIMER_RIGHT_1_SEQUENCE=CTTCAGGAAACTCAGACGACTGA",
            "=",
        ]
    )
    assert [p.left_primer.sequence for p in pairs] == ["CATCTGTGTTCTGCTGAATGATG"] * 2
    assert [p.right_primer.sequence for p in pairs] == [
        "CTTCAGGAAACTCAGACGACTG",
        "CTTCAGGAAACTCAGACGACTGA",
    ]


def test_pair_fields_keep_pair_prefix() -> None:
    pairs = _parse(
        [
            "SEQUENCE_ID=amp1",
            "PRIMER_PAIR_0_PENALTY=1.25",
            "PRIMER_LEFT_0_PENALTY=0.5",
            "PRIMER_RIGHT_0_PENALTY=0.75",
            "PRIMER_PAIR_0_COMPL_ANY=5.00",
            "PRIMER_PAIR_0_COMPL_END=1.00",
            "=",
        ]
    )
    assert pairs[0].pair_penalty == 1.25
    assert pairs[0].left_primer.penalty == 0.5
    assert pairs[0].right_primer.penalty == 0.75
    assert pairs[0].pair_compl_any == 5.0
    assert pairs[0].pair_compl_end == 1.0


def test_target_and_excluded_regions() -> None:
    pairs = _parse(
        [
            "SEQUENCE_ID=amp1",
            "TARGET=150,1",
            "EXCLUDED_REGION=14,20",
            "EXCLUDED_REGION=200,5",
            "PRIMER_PAIR_0_PENALTY=1.25",
            "=",
        ]
    )
    assert pairs[0].target == "150,1"
    assert pairs[0].excluded_regions == ["14,20", "200,5"]


def test_pair_warning_overrides_record_warning() -> None:
    pairs = _parse(
        [
            "SEQUENCE_ID=amp1",
            "PRIMER_WARNING=record warning",
            "PRIMER_PAIR_0_PENALTY=1.25",
            "PRIMER_WARNING=pair warning",
            "PRIMER_PAIR_1_PENALTY=1.5",
            "=",
        ]
    )
    assert [p.warnings for p in pairs] == ["pair warning", "record warning"]


def test_invalid_value_raises() -> None:
    with pytest.raises(ValidationError, match="Not a valid DNA sequence"):
        _parse(["SEQUENCE_ID=amp1", "PRIMER_LEFT_0_SEQUENCE=ACGTX", "="])


def test_parse_is_lazy() -> None:
    """A pair is yielded as soon as the next rank starts, before the output ends"""
    lines = ["SEQUENCE_ID=amp1", *_design(0, "ACGTACGTAC", "TTGCATGCAA", "0.25")]
    parsed = ResponseStreamParser().parse(iter([*lines, "PRIMER_PAIR_1_PENALTY=1.0"]))
    assert next(parsed).pair_penalty == 0.25
    assert next(parsed, None) is None


def test_end_to_end(data_dir: Path) -> None:
    with (data_dir / "test_amp1.primer3.txt").open("r") as reader:
        pairs = ResponseStreamParser().parse_all(reader)

    assert len(pairs) == 1
    pair = pairs[0]
    assert pair.amplicon_name == "test_amp1"
    assert pair.product_size_range == "50-300"
    assert pair.explain == "considered 1, ok 1"
    assert pair.pair_penalty == pytest.approx(1.777278)
    assert pair.product_size == 191
    assert pair.pair_compl_any == 5.0
    assert pair.pair_compl_end == 1.0

    left, right = pair.left_primer, pair.right_primer
    assert left.sequence == "CATCTGTGTTCTGCTGAATGATG"
    assert (left.index_pos, left.length) == (40, 23)
    assert left.penalty == pytest.approx(0.969546)
    assert left.tm == pytest.approx(59.031)
    assert left.gc_percent == pytest.approx(43.478)
    assert left.self_any == 4.0
    assert left.self_end == 2.0
    assert left.end_stability == pytest.approx(3.31)
    assert right.sequence == "CTTCAGGAAACTCAGACGACTG"
    assert (right.index_pos, right.length) == (209, 22)
    assert right.gc_percent == pytest.approx(50.0)
    assert right.index_pos + right.length - left.index_pos == pair.product_size
