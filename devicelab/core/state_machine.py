"""Test matrix states as reported by the test lab, and what they mean for us."""

from enum import Enum


class TestMatrixState(str, Enum):
    """Test matrix state enumeration, in the order the test lab declares them."""

    TEST_STATE_UNSPECIFIED = "TEST_STATE_UNSPECIFIED"
    VALIDATING = "VALIDATING"
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    FINISHED = "FINISHED"
    ERROR = "ERROR"
    UNSUPPORTED_ENVIRONMENT = "UNSUPPORTED_ENVIRONMENT"
    INCOMPATIBLE_ENVIRONMENT = "INCOMPATIBLE_ENVIRONMENT"
    INCOMPATIBLE_ARCHITECTURE = "INCOMPATIBLE_ARCHITECTURE"
    CANCELLED = "CANCELLED"
    INVALID = "INVALID"


class OutcomeSummary(str, Enum):
    """Outcome summary enumeration."""

    OUTCOME_SUMMARY_UNSPECIFIED = "OUTCOME_SUMMARY_UNSPECIFIED"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    INCONCLUSIVE = "INCONCLUSIVE"
    SKIPPED = "SKIPPED"


_STATE_ORDER: dict[TestMatrixState, int] = {
    state: index for index, state in enumerate(TestMatrixState)
}

# States in which the test lab is still working on the matrix
INCOMPLETE_STATES: frozenset[TestMatrixState] = frozenset(
    {
        TestMatrixState.TEST_STATE_UNSPECIFIED,
        TestMatrixState.VALIDATING,
        TestMatrixState.PENDING,
        TestMatrixState.RUNNING,
    }
)


def is_complete(state: TestMatrixState | None) -> bool:
    """A matrix is complete once it leaves the incomplete states. Missing state means incomplete."""
    return state is not None and state not in INCOMPLETE_STATES


def is_reusable(state: TestMatrixState | None) -> bool:
    """
    Check if a cached matrix in ``state`` may be handed out again.

    States are ordered; ERROR and everything after it is not worth re-using.
    """
    if state is None:
        return True
    return _STATE_ORDER[state] < _STATE_ORDER[TestMatrixState.ERROR]
