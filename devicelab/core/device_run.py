"""Parsing of device run identifiers reported by the test lab.

Result folders are named after the device that ran them, optionally followed
by shard and rerun markers, e.g.::

    redfin-30-en-portrait
    redfin-30-en-portrait_rerun_1
    redfin-30-en-portrait-shard_0
    redfin-30-en-portrait-shard_2-rerun_2
"""

import re
from dataclasses import dataclass

_DEVICE_RUN_PATTERN = re.compile(
    r"(.*?)"
    r"(?:[_-](shard|rerun)_(\d+))?"
    r"(?:[_-](shard|rerun)_(\d+))?",
    re.IGNORECASE | re.DOTALL,
)


@dataclass(frozen=True)
class DeviceRun:
    """A single device run: device id plus its rerun number and shard index."""

    full_device_id: str
    device_id: str
    run_number: int = 0
    shard: int | None = None

    @classmethod
    def create(cls, full_device_id: str) -> "DeviceRun":
        """Parse ``full_device_id``. Never fails; unknown suffixes stay in the device id."""
        match = _DEVICE_RUN_PATTERN.fullmatch(full_device_id)
        if match is None:
            return cls(full_device_id=full_device_id, device_id=full_device_id)

        run_number = 0
        shard = None
        markers = (match.group(2, 3), match.group(4, 5))
        for marker, value in markers:
            if marker is None:
                continue
            if marker.lower() == "rerun":
                run_number = int(value)
            else:
                shard = int(value)

        return cls(
            full_device_id=full_device_id,
            device_id=match.group(1),
            run_number=run_number,
            shard=shard,
        )
