"""Selection of the devices a test runs on."""

import logging
from dataclasses import dataclass
from typing import Callable

from devicelab.config import ConfigurationError
from devicelab.schemas.test_matrix import AndroidDevice, TestEnvironmentCatalog

logger = logging.getLogger(__name__)

DevicePicker = Callable[[TestEnvironmentCatalog], list[AndroidDevice]]


def default_device_picker(catalog: TestEnvironmentCatalog) -> list[AndroidDevice]:
    """Pick the catalog's default model on its newest supported SDK."""
    models = catalog.android_device_catalog.models if catalog.android_device_catalog else []
    default_model = next((model for model in models if "default" in model.tags), None)
    if default_model is None:
        raise ValueError("Cannot find default model in test device catalog")

    versions = [int(version) for version in default_model.supported_version_ids if version.isdigit()]
    if not versions:
        raise ValueError(f"Cannot find supported version for {default_model.id} in test device catalog")

    return [
        AndroidDevice(
            android_model_id=default_model.id,
            android_version_id=str(max(versions)),
            locale="en_US",
            orientation="portrait",
        )
    ]


@dataclass(frozen=True)
class DeviceSpec:
    """A device model id and SDK version, written as ``<id>:<sdk>``."""

    device_id: str
    sdk: str

    @classmethod
    def parse(cls, spec: str) -> "DeviceSpec":
        parts = spec.strip().split(":")
        if len(parts) != 2:
            raise ConfigurationError(
                f"Each device spec should have two parts separated by ':'. Invalid input: {spec}"
            )
        device_id, sdk = (part.strip() for part in parts)
        if not device_id:
            raise ConfigurationError(f"Device id cannot be blank. Invalid input: {spec}")
        if not sdk:
            raise ConfigurationError(f"SDK version cannot be blank. Invalid input: {spec}")
        return cls(device_id=device_id, sdk=sdk)


def parse_device_specs(value: str) -> list[DeviceSpec]:
    """Parse a comma separated spec list such as ``"redfin:30, sailfish:25"``."""
    return [DeviceSpec.parse(spec) for spec in value.split(",")]


def create_device_picker(value: str) -> DevicePicker:
    """
    Build a picker for the given device specs.

    The specs are validated now; the devices are validated against the catalog
    when the picker runs.

    Raises:
        ConfigurationError: If the specs can't be parsed
    """
    specs = parse_device_specs(value)

    def pick(catalog: TestEnvironmentCatalog) -> list[AndroidDevice]:
        models = catalog.android_device_catalog.models if catalog.android_device_catalog else []
        devices = []
        for spec in specs:
            model = next(
                (
                    model
                    for model in models
                    if model.id == spec.device_id and spec.sdk in model.supported_version_ids
                ),
                None,
            )
            if model is None:
                raise ValueError(
                    f"Cannot find device {spec.device_id} with sdk {spec.sdk} in the test device catalog"
                )
            devices.append(
                AndroidDevice(
                    android_model_id=spec.device_id,
                    android_version_id=spec.sdk,
                    locale="en",
                    orientation="portrait",
                )
            )
        logger.info(f"Picked devices: {[f'{d.android_model_id}:{d.android_version_id}' for d in devices]}")
        return devices

    return pick
