"""Application services."""

from devicelab.services.apk_store import ApkStore
from devicelab.services.storage_service import StorageService, storage_service
from devicelab.services.test_lab_controller import TestLabController
from devicelab.services.test_matrix_store import TestMatrixStore, TestRunKey
from devicelab.services.test_runner import TestRunner

__all__ = [
    "ApkStore",
    "StorageService",
    "storage_service",
    "TestLabController",
    "TestMatrixStore",
    "TestRunKey",
    "TestRunner",
]
