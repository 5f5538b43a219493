"""Core building blocks shared by the services."""

from devicelab.core.device_run import DeviceRun
from devicelab.core.lazy import KeyedLazyCache, LazyValue
from devicelab.core.retry import RetryPolicy, call_with_retry
from devicelab.core.state_machine import (
    OutcomeSummary,
    TestMatrixState,
    is_complete,
    is_reusable,
)

__all__ = [
    "DeviceRun",
    "KeyedLazyCache",
    "LazyValue",
    "RetryPolicy",
    "call_with_retry",
    "OutcomeSummary",
    "TestMatrixState",
    "is_complete",
    "is_reusable",
]
