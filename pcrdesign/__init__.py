from pcrdesign.errors import ConfigurationError
from pcrdesign.errors import ValidationError
from pcrdesign.model import Primer
from pcrdesign.model import PrimerPair
from pcrdesign.model import PrimerPairType
from pcrdesign.model import SeqRegion
from pcrdesign.model import Strand

__all__ = [
    "Primer",
    "PrimerPair",
    "PrimerPairType",
    "SeqRegion",
    "Strand",
    "ConfigurationError",
    "ValidationError",
]
