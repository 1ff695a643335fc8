from __future__ import annotations

import json
import logging
from typing import Any, Callable

from qualitysync.config.schema import QualityConfig
from qualitysync.core.exceptions import RecordDecodeError, StorageWriteError
from qualitysync.core.metadata import PersistedQualityRecord

log = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000


def _require_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise RecordDecodeError(f"{field} is not an integer: {value!r}")
    return value


def _optional_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def decode_wrapped(payload: Any) -> PersistedQualityRecord:
    if not isinstance(payload, dict) or not isinstance(payload.get("data"), str):
        raise RecordDecodeError("Missing wrapped data string")
    try:
        inner = json.loads(payload["data"])
    except json.JSONDecodeError as exc:
        raise RecordDecodeError(f"Wrapped data is not JSON: {exc}") from exc
    if not isinstance(inner, dict):
        raise RecordDecodeError("Wrapped data is not an object")
    quality = _require_int(inner.get("quality"), "quality")
    previous = _optional_int(inner.get("previousQuality"))
    return PersistedQualityRecord(
        quality=quality,
        previous_quality=quality if previous is None else previous,
        created_at=_optional_int(payload.get("creation")),
        expires_at=_optional_int(payload.get("expiration")),
        shape="wrapped",
    )


def decode_flat(payload: Any) -> PersistedQualityRecord:
    if not isinstance(payload, dict):
        raise RecordDecodeError("Flat record is not an object")
    quality = _require_int(payload.get("quality"), "quality")
    previous = _optional_int(payload.get("previousQuality"))
    return PersistedQualityRecord(
        quality=quality,
        previous_quality=quality if previous is None else previous,
        shape="flat",
    )


def decode_bare(payload: Any) -> PersistedQualityRecord:
    quality = _require_int(payload, "bare value")
    return PersistedQualityRecord(quality=quality, previous_quality=quality, shape="bare")


# Tried in order; the first decoder that does not raise wins.
RECORD_DECODERS: list[tuple[str, Callable[[Any], PersistedQualityRecord]]] = [
    ("wrapped", decode_wrapped),
    ("flat", decode_flat),
    ("bare", decode_bare),
]


def encode_record(record: PersistedQualityRecord) -> str:
    return json.dumps(
        {
            "data": json.dumps({"quality": record.quality, "previousQuality": record.previous_quality}),
            "expiration": record.expires_at,
            "creation": record.created_at,
        }
    )


class QualityStateStore:
    """Quality preference kept under every known storage key.

    Reads stop at the first key that decodes; writes go to all of them.
    """

    def __init__(self, storage, quality_config: QualityConfig, clock: Callable[[], int]) -> None:
        self.storage = storage
        self.config = quality_config
        self.clock = clock

    def read(self) -> PersistedQualityRecord | None:
        for key in self.config.storage_keys:
            raw = self._get(key)
            if not raw:
                continue
            record = self.decode(key, raw)
            if record is not None:
                return record
        return None

    def decode(self, key: str, raw: str) -> PersistedQualityRecord | None:
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            log.debug("Stored value under %s is not JSON: %s", key, exc)
            return None
        for shape, decoder in RECORD_DECODERS:
            try:
                return decoder(payload)
            except RecordDecodeError as exc:
                log.debug("Key %s did not decode as %s: %s", key, shape, exc)
        return None

    def is_converged(self, target: int) -> bool:
        record = self.read()
        return record is not None and record.quality == target

    def build_record(self, target: int) -> PersistedQualityRecord:
        now = self.clock()
        return PersistedQualityRecord(
            quality=target,
            previous_quality=target,
            created_at=now,
            expires_at=now + self.config.record_ttl_days * DAY_MS,
        )

    def write(self, target: int) -> bool:
        encoded = encode_record(self.build_record(target))
        written = 0
        for key in self.config.storage_keys:
            try:
                self.storage.set(key, encoded)
                written += 1
            except StorageWriteError as exc:
                log.warning("Failed to set quality for key %s: %s", key, exc)
        if not written:
            log.error("Failed to set quality in any storage key")
            return False
        log.info("Set quality preference to %dp under %d key(s)", target, written)
        return True

    def _get(self, key: str) -> str | None:
        try:
            return self.storage.get(key)
        except Exception as exc:  # noqa: BLE001 - an unreadable key is treated as empty.
            log.debug("Reading key %s failed: %s", key, exc)
            return None
