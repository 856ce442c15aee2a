"""
# Exceptions raised by `pcrdesign`

Two error classes are defined here; everything else surfaces as a builtin exception (`OSError` when
a request or output document cannot be written or read, `RuntimeError` when a `primer3_core`
process fails).
"""


class ConfigurationError(Exception):
    """Raised when the Primer3 executable, its version, its thermodynamic parameters directory, or
    the configuration mapping itself cannot be resolved or is incompatible."""


class ValidationError(ValueError):
    """Raised when a field of a `Primer` or `PrimerPair` violates its type, alphabet, or
    enumeration constraint."""
