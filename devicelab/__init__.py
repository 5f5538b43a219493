"""Remote device-test orchestration for CI runs."""

__version__ = "0.1.0"
