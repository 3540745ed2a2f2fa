"""
Error codes and resource-limit exceptions.

Mathematical errors are never raised: they are embedded in the expression
tree as ``["Error", "'code'", where]`` terms so that a computation can carry
on and report every problem at once. The codes used by the core are listed
here.

Resource limits are different: exceeding one aborts the current top-level
operation with a ``CancellationError`` subclass.
"""

from typing import Optional


# ============================================================
# Embedded error codes
# ============================================================

MISSING_ARGUMENT = "missing-argument"
UNEXPECTED_ARGUMENT = "unexpected-argument"
INCOMPATIBLE_DOMAIN = "incompatible-domain"
UNEXPECTED_COMMAND = "unexpected-command"
DIVISION_BY_ZERO = "division-by-zero"
INVALID_DOMAIN = "invalid-domain"
UNKNOWN_SYMBOL = "unknown-symbol"


# ============================================================
# Resource limits
# ============================================================

class CancellationError(Exception):
    """
    Raised when a cooperative execution check fails.

    The current top-level operation (canonicalization, simplification,
    evaluation) is abandoned. The engine is left in a usable state.
    """

    code = "cancelled"

    def __init__(self, message: Optional[str] = None, limit=None):
        self.limit = limit
        super().__init__(message or self.code)


class TimeLimitExceeded(CancellationError):
    code = "timeout"


class RecursionLimitExceeded(CancellationError):
    code = "recursion-depth-exceeded"


class IterationLimitExceeded(CancellationError):
    code = "iteration-limit-exceeded"


class MemoryLimitExceeded(CancellationError):
    code = "out-of-memory"
