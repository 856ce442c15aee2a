from pcrdesign.primer3.constraints import ConstraintSet
from pcrdesign.primer3.primer3 import Primer3
from pcrdesign.primer3.primer3 import Primer3Version
from pcrdesign.primer3.primer3 import select_best_pairs
from pcrdesign.primer3.primer3_explain import Primer3Failure
from pcrdesign.primer3.primer3_explain import build_failures
from pcrdesign.primer3.primer3_explain import parse_explain
from pcrdesign.primer3.primer3_input import AmpliconRequest
from pcrdesign.primer3.primer3_input import DesignRequestBuilder
from pcrdesign.primer3.primer3_output import ParserState
from pcrdesign.primer3.primer3_output import ResponseStreamParser

__all__ = [
    "Primer3",
    "Primer3Version",
    "select_best_pairs",
    "ConstraintSet",
    "AmpliconRequest",
    "DesignRequestBuilder",
    "ResponseStreamParser",
    "ParserState",
    "Primer3Failure",
    "build_failures",
    "parse_explain",
]
