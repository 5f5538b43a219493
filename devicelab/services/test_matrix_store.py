"""Caching layer over the test lab that avoids re-running identical tests."""

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from devicelab.config import settings
from devicelab.core.state_machine import is_reusable
from devicelab.schemas.apk import ApkInfo, DeviceSetup, UploadedApk
from devicelab.schemas.test_matrix import (
    AndroidInstrumentationTest,
    ClientInfo,
    EnvironmentMatrix,
    FileReference,
    GoogleCloudStorage,
    ResultStorage,
    ShardingOption,
    TestMatrix,
    TestSetup,
    TestSpecification,
    ToolResultsHistory,
)
from devicelab.services.test_lab_client import TestLabClient
from devicelab.services.test_run_store import TestRunStore
from devicelab.services.tools_result_store import ToolsResultStore

logger = logging.getLogger(__name__)

CachedTestMatrixFilter = Callable[[TestMatrix], bool]

# Where the androidx screenshot test rule writes its output on the device
SCREENSHOTS_DIRECTORY = "/sdcard/Android/data/{package_name}/cache/androidx_screenshots"


def _accept_all(matrix: TestMatrix) -> bool:
    return True


@dataclass(frozen=True)
class TestRunKey:
    """Digest of everything that determines the outcome of a test run."""

    value: str

    @classmethod
    def create(
        cls,
        environment: EnvironmentMatrix,
        app_apk: ApkInfo,
        test_apk: ApkInfo,
        client_info: ClientInfo | None = None,
        sharding: ShardingOption | None = None,
        device_setup: DeviceSetup | None = None,
    ) -> "TestRunKey":
        payload: dict[str, Any] = {
            "e": environment.to_api(),
            "app": app_apk.id_hash,
            "test": test_apk.id_hash,
        }
        if client_info is not None:
            payload["clientInfo"] = client_info.to_api()
        if sharding is not None:
            payload["sharding"] = sharding.to_api()
        if device_setup is not None:
            payload["deviceSetup"] = device_setup.model_dump(mode="json", exclude_none=True)

        return cls._digest(payload)

    @classmethod
    def create_for_targets(
        cls,
        base_test_matrix_id: str,
        environment: EnvironmentMatrix,
        test_targets: list[str],
        client_info: ClientInfo | None = None,
        sharding: ShardingOption | None = None,
        test_setup: TestSetup | None = None,
    ) -> "TestRunKey":
        """Key of a re-run of ``test_targets`` with the configuration of an earlier matrix."""
        payload: dict[str, Any] = {
            "e": environment.to_api(),
            "baseTestMatrixId": base_test_matrix_id,
            "testTargets": test_targets,
        }
        if client_info is not None:
            payload["clientInfo"] = client_info.to_api()
        if sharding is not None:
            payload["sharding"] = sharding.to_api()
        if test_setup is not None:
            payload["testSetup"] = test_setup.to_api()
        return cls._digest(payload)

    @classmethod
    def _digest(cls, payload: dict[str, Any]) -> "TestRunKey":
        # sorted keys keep the digest independent of field order
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return cls(value=hashlib.sha256(canonical.encode("utf-8")).hexdigest())

    def __str__(self) -> str:
        return self.value


class TestMatrixStore:
    """
    Creates test matrices, re-using an existing one when the same test already ran.

    There is no lock between looking up a key and storing a new matrix for it.
    Two callers racing on the same key may both create a matrix; each uses its
    own, and later callers re-use whichever record was written last.
    """

    def __init__(
        self,
        project_id: str,
        test_lab_client: TestLabClient,
        test_run_store: TestRunStore,
        tools_result_store: ToolsResultStore,
        results_prefix: str,
    ):
        """
        Initialize the store.

        Args:
            project_id: Cloud project the matrices are created in
            test_lab_client: Client for the test lab API
            test_run_store: Durable map of test run keys to matrix ids
            tools_result_store: History id lookup
            results_prefix: Blob URI under which each matrix gets its own result folder
        """
        self.project_id = project_id
        self.test_lab_client = test_lab_client
        self.test_run_store = test_run_store
        self.tools_result_store = tools_result_store
        self.results_prefix = results_prefix.rstrip("/")

    async def get_or_create_test_matrix(
        self,
        app_apk: UploadedApk,
        test_apk: UploadedApk,
        environment_matrix: EnvironmentMatrix,
        client_info: ClientInfo | None = None,
        sharding: ShardingOption | None = None,
        device_setup: DeviceSetup | None = None,
        pull_screenshots: bool = False,
        cached_test_matrix_filter: CachedTestMatrixFilter | None = None,
        test_targets: list[str] | None = None,
        flaky_test_attempts: int | None = None,
        test_timeout_seconds: int | None = None,
    ) -> TestMatrix:
        """
        Return a matrix for the given configuration, creating it if needed.

        Args:
            app_apk: App under test
            test_apk: Instrumentation test APK
            environment_matrix: Devices to run on
            client_info: Optional client info attached to the matrix
            sharding: Optional sharding option
            device_setup: Optional extra device setup
            pull_screenshots: Pull the screenshot test output directory
            cached_test_matrix_filter: Rejects cached matrices that shouldn't be re-used
            test_targets: Optional subset of tests to run
            flaky_test_attempts: Re-runs of failed tests, defaults to FLAKY_TEST_ATTEMPTS
            test_timeout_seconds: Matrix timeout, defaults to TEST_TIMEOUT_SECONDS

        Returns:
            The cached or newly created matrix

        Raises:
            httpx.HTTPStatusError: If the test lab rejects a request (other than a
                missing cached matrix)
        """
        key = TestRunKey.create(
            environment=environment_matrix,
            app_apk=app_apk.apk_info,
            test_apk=test_apk.apk_info,
            client_info=client_info,
            sharding=sharding,
            device_setup=device_setup,
        )
        logger.debug(f"Test run key: {key}")

        cached = await self._get_cached_test_matrix(key, cached_test_matrix_filter or _accept_all)
        if cached is not None:
            return cached

        created = await self._create_new_test_matrix(
            key=key,
            app_apk=app_apk,
            test_apk=test_apk,
            environment_matrix=environment_matrix,
            client_info=client_info,
            sharding=sharding,
            device_setup=device_setup,
            pull_screenshots=pull_screenshots,
            test_targets=test_targets,
            flaky_test_attempts=(
                flaky_test_attempts if flaky_test_attempts is not None else settings.FLAKY_TEST_ATTEMPTS
            ),
            test_timeout_seconds=test_timeout_seconds or settings.TEST_TIMEOUT_SECONDS,
        )
        await self._save(key, created)
        return created

    async def get_or_create_test_matrix_for_targets(
        self,
        base_matrix: TestMatrix,
        test_targets: list[str],
        cached_test_matrix_filter: CachedTestMatrixFilter | None = None,
        flaky_test_attempts: int = 0,
    ) -> TestMatrix:
        """
        Re-run ``test_targets`` with the configuration of ``base_matrix``.

        An empty ``test_targets`` re-runs every test and keeps the base sharding;
        a subset runs unsharded. Results go to a fresh folder but the base
        matrix's tool results history is kept.

        Raises:
            ValueError: If ``base_matrix`` has no id
        """
        if base_matrix.test_matrix_id is None:
            raise ValueError("Test matrix id for the base test matrix should not be None")
        specification = base_matrix.test_specification
        instrumentation = specification.android_instrumentation_test
        sharding = instrumentation.sharding_option if instrumentation and not test_targets else None

        key = TestRunKey.create_for_targets(
            base_test_matrix_id=base_matrix.test_matrix_id,
            environment=base_matrix.environment_matrix,
            test_targets=test_targets,
            client_info=base_matrix.client_info,
            sharding=sharding,
            test_setup=specification.test_setup,
        )
        logger.debug(f"Test run key for {base_matrix.test_matrix_id} targets: {key}")

        cached = await self._get_cached_test_matrix(key, cached_test_matrix_filter or _accept_all)
        if cached is not None:
            return cached

        if instrumentation is not None:
            specification = specification.model_copy(
                update={
                    "android_instrumentation_test": instrumentation.model_copy(
                        update={"test_targets": test_targets, "sharding_option": sharding}
                    )
                }
            )
        created = await self._submit(
            client_info=base_matrix.client_info,
            environment_matrix=base_matrix.environment_matrix,
            test_specification=specification,
            result_storage=ResultStorage(
                google_cloud_storage=GoogleCloudStorage(gcs_path=self.create_unique_result_path(key)),
                tool_results_history=base_matrix.result_storage.tool_results_history,
            ),
            flaky_test_attempts=flaky_test_attempts,
        )
        logger.info(f"Created test matrix {created.test_matrix_id} from {base_matrix.test_matrix_id}")
        await self._save(key, created)
        return created

    async def _save(self, key: TestRunKey, created: TestMatrix) -> None:
        if created.test_matrix_id is None:
            raise ValueError(f"Newly created test matrix has no id for test run {key}")
        await self.test_run_store.put(key.value, created.test_matrix_id)

    async def _get_cached_test_matrix(
        self, key: TestRunKey, cached_test_matrix_filter: CachedTestMatrixFilter
    ) -> TestMatrix | None:
        existing = await self._get_existing_test_matrix(key)
        if existing is None:
            logger.debug(f"No test run history for {key}")
            return None

        logger.info(f"Found existing test matrix {existing.test_matrix_id} with state {existing.state}")
        if not is_reusable(existing.state):
            logger.warning(
                f"Skipping cache for {existing.test_matrix_id} because its state is {existing.state}"
            )
            return None
        if not cached_test_matrix_filter(existing):
            logger.info(f"Not re-using cached matrix {existing.test_matrix_id} due to filter")
            return None
        return existing

    async def _get_existing_test_matrix(self, key: TestRunKey) -> TestMatrix | None:
        # Matrices expire on the test lab, so a stored record doesn't mean the matrix is still there.
        record = await self.test_run_store.get(key.value)
        if record is None:
            return None
        try:
            return await self.test_lab_client.get_test_matrix(record.test_matrix_id)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                logger.info(f"Cached test matrix {record.test_matrix_id} no longer exists")
                return None
            raise

    async def _create_new_test_matrix(
        self,
        key: TestRunKey,
        app_apk: UploadedApk,
        test_apk: UploadedApk,
        environment_matrix: EnvironmentMatrix,
        client_info: ClientInfo | None,
        sharding: ShardingOption | None,
        device_setup: DeviceSetup | None,
        pull_screenshots: bool,
        test_targets: list[str] | None,
        flaky_test_attempts: int,
        test_timeout_seconds: int,
    ) -> TestMatrix:
        details = await self.test_lab_client.get_apk_details(test_apk.file_reference())
        package_name = (
            details.apk_detail.apk_manifest.package_name
            if details.apk_detail and details.apk_detail.apk_manifest
            else None
        )
        if not package_name:
            raise ValueError(f"Cannot find package name for {test_apk.apk_info.file_path}")
        history_id = await self.tools_result_store.get_history_id(package_name)

        pulled_directories = (
            [SCREENSHOTS_DIRECTORY.format(package_name=package_name)] if pull_screenshots else []
        )
        if device_setup is not None:
            test_setup = device_setup.to_test_setup(extra_directories=pulled_directories)
        else:
            test_setup = TestSetup(directories_to_pull=pulled_directories or None)

        return await self._submit(
            client_info=client_info,
            environment_matrix=environment_matrix,
            test_specification=TestSpecification(
                test_timeout=f"{test_timeout_seconds}s",
                disable_video_recording=False,
                disable_performance_metrics=True,
                android_instrumentation_test=AndroidInstrumentationTest(
                    app_apk=FileReference(gcs_path=app_apk.blob_path),
                    test_apk=FileReference(gcs_path=test_apk.blob_path),
                    sharding_option=sharding,
                    test_targets=test_targets,
                ),
                test_setup=test_setup,
            ),
            result_storage=ResultStorage(
                google_cloud_storage=GoogleCloudStorage(gcs_path=self.create_unique_result_path(key)),
                tool_results_history=ToolResultsHistory(
                    project_id=self.project_id, history_id=history_id
                ),
            ),
            flaky_test_attempts=flaky_test_attempts,
        )

    async def _submit(
        self,
        client_info: ClientInfo | None,
        environment_matrix: EnvironmentMatrix,
        test_specification: TestSpecification,
        result_storage: ResultStorage,
        flaky_test_attempts: int,
    ) -> TestMatrix:
        # A fresh request id per logical create makes retried attempts idempotent.
        return await self.test_lab_client.create_test_matrix(
            TestMatrix(
                project_id=self.project_id,
                client_info=client_info,
                flaky_test_attempts=flaky_test_attempts,
                environment_matrix=environment_matrix,
                test_specification=test_specification,
                result_storage=result_storage,
            ),
            request_id=str(uuid.uuid4()),
        )

    def create_unique_result_path(self, key: TestRunKey) -> str:
        """Result folder for a new matrix; unique even for matrices sharing a key."""
        return f"{self.results_prefix}/{key.value}{uuid.uuid4()}"
