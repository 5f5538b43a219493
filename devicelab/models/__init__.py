"""SQLAlchemy models."""

from devicelab.models.test_run import TestRun

__all__ = ["TestRun"]
