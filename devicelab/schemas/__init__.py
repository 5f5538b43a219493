"""Pydantic schemas for the remote APIs, build artifacts and run results."""

from devicelab.schemas.apk import ApkInfo, DeviceSetup, InstrumentationArgument, UploadedApk
from devicelab.schemas.github import Artifact, ArtifactsResponse
from devicelab.schemas.run import RunAccepted, RunCreate
from devicelab.schemas.test_matrix import (
    AndroidDevice,
    ClientInfo,
    EnvironmentMatrix,
    ShardingOption,
    TestEnvironmentCatalog,
    TestMatrix,
)
from devicelab.schemas.test_result import CompleteRun, IncompleteRun, parse_test_result
from devicelab.schemas.test_run_config import TestRunConfig

__all__ = [
    "ApkInfo",
    "DeviceSetup",
    "InstrumentationArgument",
    "UploadedApk",
    "Artifact",
    "ArtifactsResponse",
    "RunAccepted",
    "RunCreate",
    "AndroidDevice",
    "ClientInfo",
    "EnvironmentMatrix",
    "ShardingOption",
    "TestEnvironmentCatalog",
    "TestMatrix",
    "CompleteRun",
    "IncompleteRun",
    "parse_test_result",
    "TestRunConfig",
]
