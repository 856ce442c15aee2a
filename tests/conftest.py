"""
Fixtures intended to be shared across multiple files in the tests directory.
"""

from pathlib import Path

import pytest

from pcrdesign.model import Primer
from pcrdesign.model import PrimerPair


@pytest.fixture(scope="session")
def data_dir() -> Path:
    return Path(__file__).parent / "primer3" / "data"


@pytest.fixture
def left_primer() -> Primer:
    """A basic left primer for use in tests that don't depend on specific values"""
    return Primer(sequence="CATCTGTGTTCTGCTGAATGATG", index_pos=40, length=23, tm=59.031)


@pytest.fixture
def right_primer() -> Primer:
    """A basic right primer for use in tests that don't depend on specific values"""
    return Primer(sequence="CTTCAGGAAACTCAGACGACTG", index_pos=209, length=22, tm=59.193)


@pytest.fixture
def primer_pair(left_primer: Primer, right_primer: Primer) -> PrimerPair:
    return PrimerPair(
        left_primer=left_primer,
        right_primer=right_primer,
        amplicon_name="test_amp1",
        product_size=191,
        pair_penalty=1.777278,
    )
