"""APK identity, uploaded APK references and device setup schemas."""

import hashlib

from pydantic import BaseModel, ConfigDict, Field

from devicelab.schemas.test_matrix import (
    Apk,
    EnvironmentVariable,
    FileReference,
    TestSetup,
)


class ApkInfo(BaseModel):
    """Identity of an APK: where it came from and the sha256 of its bytes."""

    model_config = ConfigDict(frozen=True)

    file_path: str
    id_hash: str

    @classmethod
    def create(cls, file_path: str, contents: bytes) -> "ApkInfo":
        return cls(file_path=file_path, id_hash=hashlib.sha256(contents).hexdigest())

    @property
    def file_path_without_extension(self) -> str:
        return path_without_extension(self.file_path)


class UploadedApk(BaseModel):
    """An APK stored in blob storage under its content hash."""

    model_config = ConfigDict(frozen=True)

    blob_path: str
    apk_info: ApkInfo

    def file_reference(self) -> FileReference:
        return FileReference(gcs_path=self.blob_path)


class InstrumentationArgument(BaseModel):
    """A key/value pair passed to the instrumentation runner."""

    key: str
    value: str


class DeviceSetup(BaseModel):
    """Extra setup applied to the device before the instrumentation runs."""

    additional_apks: list[UploadedApk] | None = None
    directories_to_pull: list[str] = Field(default_factory=list)
    instrumentation_arguments: list[InstrumentationArgument] | None = None

    def to_test_setup(self, extra_directories: list[str] | None = None) -> TestSetup:
        directories = list(self.directories_to_pull)
        for directory in extra_directories or []:
            if directory not in directories:
                directories.append(directory)

        return TestSetup(
            additional_apks=(
                [Apk(location=apk.file_reference()) for apk in self.additional_apks]
                if self.additional_apks is not None
                else None
            ),
            directories_to_pull=directories or None,
            environment_variables=(
                [
                    EnvironmentVariable(key=argument.key, value=argument.value)
                    for argument in self.instrumentation_arguments
                ]
                if self.instrumentation_arguments is not None
                else None
            ),
        )


def path_without_extension(file_path: str) -> str:
    """
    Drop the extension and turn remaining dots into folders.

    ``"foo/bar.debug.apk"`` becomes ``"foo/bar/debug"``.
    """
    parts = file_path.split(".")
    if len(parts) > 1:
        parts = parts[:-1]
    return "/".join(parts)
