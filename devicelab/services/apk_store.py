"""Content-addressed store for APKs."""

import logging
from pathlib import Path

from devicelab.config import settings
from devicelab.core.lazy import LazyValue
from devicelab.schemas.apk import ApkInfo, UploadedApk
from devicelab.services.storage_service import StorageService

logger = logging.getLogger(__name__)

PLACEHOLDER_APK_NAME = "placeholderApp.apk"


def relative_path_for(apk_info: ApkInfo) -> str:
    """Storage path of an APK: its path without extension, then its hash."""
    return f"{apk_info.file_path_without_extension}/{apk_info.id_hash}.apk"


class ApkStore:
    """
    Uploads APKs keyed by their content hash and de-duplicates them.

    Uploading the same bytes under the same name twice writes once; different
    bytes under the same name land at a different path.
    """

    def __init__(
        self,
        storage: StorageService,
        placeholder_apk: bytes | None = None,
    ) -> None:
        """
        Initialize APK store.

        Args:
            storage: Blob storage the APKs are uploaded to
            placeholder_apk: Bytes of the placeholder app APK. Read from
                PLACEHOLDER_APK_PATH on first use when not given.
        """
        self.storage = storage
        self._placeholder_bytes = placeholder_apk
        self._placeholder_apk = LazyValue(self._upload_placeholder_apk)

    async def upload_apk(self, name: str, data: bytes) -> UploadedApk:
        """
        Upload the given APK or return the existing one if it was uploaded before.

        Args:
            name: Name of the APK, only used to organize the storage folders
            data: APK bytes

        Returns:
            Reference to the stored APK
        """
        apk_info = ApkInfo.create(file_path=name, contents=data)
        existing = await self._get_uploaded_apk(apk_info)
        if existing is not None:
            return existing

        relative_path = relative_path_for(apk_info)
        logger.info(f"Uploading {name} to {relative_path}")
        blob_path = await self.storage.upload(
            relative_path, data, content_type="application/vnd.android.package-archive"
        )
        uploaded = UploadedApk(blob_path=blob_path, apk_info=apk_info)
        logger.info(f"Completed uploading apk: {uploaded.blob_path}")
        return uploaded

    async def get_uploaded_apk(self, name: str, sha256: str) -> UploadedApk | None:
        """Return the APK with the given name and hash if it is already stored."""
        return await self._get_uploaded_apk(ApkInfo(file_path=name, id_hash=sha256))

    async def get_placeholder_apk(self) -> UploadedApk:
        """Placeholder app APK for test APKs that don't have an app APK."""
        return await self._placeholder_apk.get()

    async def _get_uploaded_apk(self, apk_info: ApkInfo) -> UploadedApk | None:
        existing = await self.storage.existing_path(relative_path_for(apk_info))
        if existing is None:
            return None
        logger.info(f"APK exists already, returning without re-upload: {existing}")
        return UploadedApk(blob_path=existing, apk_info=apk_info)

    async def _upload_placeholder_apk(self) -> UploadedApk:
        data = self._placeholder_bytes
        if data is None:
            data = Path(settings.PLACEHOLDER_APK_PATH).read_bytes()
        return await self.upload_apk(PLACEHOLDER_APK_NAME, data)
