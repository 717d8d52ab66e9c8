"""Persistence of one pricing matrix per book size.

Every read and write funnels the administrator's book-size name through
`normalize` before it becomes a storage key; callers never build storage keys.
"""
import base64
import copy
import json
import logging
import threading
import time
from enum import Enum
from typing import Callable, Dict, List, NamedTuple, Optional, Set

from pydantic import BaseModel, Field, ValidationError

from book_pricing.models.matrix import BookSizeKey, PricingMatrix
from book_pricing.models.selection import ErrorKind, SaveResult
from book_pricing.services.alerts import AlertClient
from book_pricing.services.cache import TTLCache
from book_pricing.services.storage import StorageError
from book_pricing.utils.names import normalize

logger = logging.getLogger(__name__)

MATRIX_KEY_PREFIX = "pricing_matrix_"
DEFAULT_CLEANUP_INTERVAL_SECONDS = 3600
_MERGED_COST_SECTIONS = ("page_costs", "binding_costs")
_MAX_NAME_LENGTH = 100


def _encode_key(key: BookSizeKey) -> str:
    return MATRIX_KEY_PREFIX + base64.b64encode(key.encode("utf-8")).decode("ascii")


def _decode_key(storage_key: str) -> str:
    """Book-size name stored under `storage_key`.

    Base64 of the name is the current format; anything that does not decode to a
    printable name is read as a legacy literal key.
    """
    safe_key = storage_key[len(MATRIX_KEY_PREFIX):]
    try:
        decoded = base64.b64decode(safe_key, validate=True).decode("utf-8")
    except ValueError:
        decoded = ""
    if decoded and len(decoded) <= _MAX_NAME_LENGTH and decoded.isprintable():
        return decoded
    logger.debug("Reading legacy literal matrix key=%s", storage_key)
    return safe_key


def _deep_merge(base: dict, other: dict) -> dict:
    for key, value in other.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = copy.deepcopy(value)
    return base


class LookupStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    MALFORMED = "malformed"


class MatrixLookup(NamedTuple):
    key: BookSizeKey
    status: LookupStatus
    matrix: Optional[PricingMatrix] = None


class MigrationReport(BaseModel):
    merged: int = 0
    rewritten: int = 0
    deleted: int = 0
    errors: List[str] = Field(default_factory=list)


class MatrixStore:
    def __init__(
        self,
        store,
        parameters,
        cache: Optional[TTLCache] = None,
        alerts: Optional[AlertClient] = None,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.parameters = parameters
        self.cache = cache if cache is not None else TTLCache()
        self.alerts = alerts or AlertClient()
        self.cleanup_interval = cleanup_interval
        self._clock = clock
        self._last_cleanup: Optional[float] = None
        # normalized key -> raw value already reported as malformed
        self._reported_malformed: Dict[str, str] = {}
        self._lock = threading.Lock()

    normalize = staticmethod(normalize)

    def storage_key(self, name: str) -> str:
        return _encode_key(normalize(name))

    def save(self, name: str, matrix: PricingMatrix) -> SaveResult:
        key = normalize(name)
        if key not in self.parameters.load().size_keys():
            logger.warning("Rejected matrix save for unconfigured book_size=%s (raw=%s)", key, name)
            self.alerts.report("save_rejected", key, "book size is not in the configured parameters")
            return SaveResult(
                saved=False,
                book_size=key,
                reason=ErrorKind.NOT_CONFIGURED,
                message=f"book size {key!r} is not configured",
            )
        if len(key) > _MAX_NAME_LENGTH:
            logger.warning("Rejected matrix save for over-long book_size=%s", key)
            return SaveResult(
                saved=False,
                book_size=key,
                reason=ErrorKind.OUT_OF_RANGE,
                message=f"book size names are limited to {_MAX_NAME_LENGTH} characters",
            )

        storage_key = _encode_key(key)
        logger.debug("Saving matrix raw=%s normalized=%s storage_key=%s", name, key, storage_key)
        self.store.set(storage_key, matrix.to_storage())
        self._forget(key)
        logger.info("Saved pricing matrix book_size=%s", key)

        return SaveResult(saved=True, book_size=key, orphans_removed=self._sweep_if_due())

    def _sweep_if_due(self) -> int:
        if not self.cleanup_interval:
            return 0
        now = self._clock()
        if self._last_cleanup is not None and now - self._last_cleanup < self.cleanup_interval:
            return 0
        self._last_cleanup = now
        try:
            return self.cleanup_orphans()
        except StorageError as e:
            # the matrix is already saved; the next due sweep retries
            logger.exception("Orphan sweep after save failed")
            self.alerts.report("orphan_sweep_failed", None, str(e)[:1000])
            return 0

    def _forget(self, key: str) -> None:
        self.cache.clear(key)
        with self._lock:
            self._reported_malformed.pop(key, None)

    def lookup(self, name: str) -> MatrixLookup:
        key = normalize(name)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Matrix cache hit book_size=%s", key)
            return MatrixLookup(key, LookupStatus.FOUND, cached.model_copy(deep=True))

        raw = self.store.get(_encode_key(key))
        if raw is None:
            return MatrixLookup(key, LookupStatus.NOT_FOUND)

        try:
            matrix = PricingMatrix.model_validate_json(raw)
        except ValidationError as e:
            with self._lock:
                first_seen = self._reported_malformed.get(key) != raw
                self._reported_malformed[key] = raw
            if first_seen:
                logger.error("Malformed pricing matrix for book_size=%s: %s", key, e)
                self.alerts.report("malformed_matrix", key, str(e)[:1000])
            else:
                logger.debug("Malformed pricing matrix for book_size=%s already reported", key)
            return MatrixLookup(key, LookupStatus.MALFORMED)

        self.cache.put(key, matrix)
        return MatrixLookup(key, LookupStatus.FOUND, matrix.model_copy(deep=True))

    def get(self, name: str) -> Optional[PricingMatrix]:
        return self.lookup(name).matrix

    def delete(self, name: str) -> bool:
        key = normalize(name)
        removed = self.store.delete(_encode_key(key))
        self._forget(key)
        if removed:
            logger.info("Deleted pricing matrix book_size=%s", key)
        return removed

    def clear_cache(self, name: Optional[str] = None) -> None:
        if name is not None:
            self._forget(normalize(name))
            return
        self.cache.clear()
        with self._lock:
            self._reported_malformed.clear()

    def persisted(self) -> Dict[str, str]:
        """Storage key -> decoded book-size name, for every persisted matrix."""
        return {k: _decode_key(k) for k in self.store.list_keys(MATRIX_KEY_PREFIX)}

    def list_configured_sizes(self) -> Set[BookSizeKey]:
        # only canonical entries; others are unreachable through get() until migrated
        sizes = set()
        for storage_key, name in self.persisted().items():
            key = normalize(name)
            if _encode_key(key) == storage_key:
                sizes.add(key)
        return sizes

    def find_orphans(self) -> Dict[str, str]:
        valid = self.parameters.load().size_keys()
        return {k: name for k, name in self.persisted().items() if normalize(name) not in valid}

    def cleanup_orphans(self) -> int:
        if not self.parameters.load().size_keys():
            logger.warning("Skipping orphan cleanup: no book sizes are configured")
            return 0

        orphans = self.find_orphans()
        if not orphans:
            return 0
        for storage_key, name in orphans.items():
            logger.warning("Found orphaned pricing matrix key=%s book_size=%s", storage_key, name)

        removed = self.store.delete_many(orphans.keys())
        self.cache.clear()
        logger.info("Orphan cleanup removed %s pricing %s", removed, "matrix" if removed == 1 else "matrices")
        self.alerts.report("orphans_removed", None, sorted(orphans.values()))
        return removed

    def migrate_legacy_keys(self) -> MigrationReport:
        """Move matrices stored under non-canonical keys onto their normalized key.

        Several entries for one size are merged in key order with the
        canonical entry applied last, so the prices currently served win on
        conflict. Sizes that are not configured are left for `cleanup_orphans`.
        """
        report = MigrationReport()
        valid = self.parameters.load().size_keys()
        if not valid:
            report.errors.append("no book sizes are configured")
            return report

        groups: Dict[BookSizeKey, List[str]] = {}
        for storage_key, name in self.persisted().items():
            key = normalize(name)
            if key in valid and _encode_key(key) != storage_key:
                groups.setdefault(key, []).append(storage_key)

        for key, legacy_keys in groups.items():
            canonical_key = _encode_key(key)
            sources = []
            consumed = []
            for storage_key in legacy_keys + [canonical_key]:
                raw = self.store.get(storage_key)
                if raw is None:
                    continue
                try:
                    data = json.loads(raw)
                except json.JSONDecodeError as e:
                    report.errors.append(f"{storage_key}: invalid JSON ({e})")
                    continue
                if not isinstance(data, dict):
                    report.errors.append(f"{storage_key}: not a JSON object")
                    continue
                sources.append(data)
                if storage_key != canonical_key:
                    consumed.append(storage_key)

            if not consumed:
                continue

            merged = copy.deepcopy(sources[0])
            for data in sources[1:]:
                for section, value in data.items():
                    if section in _MERGED_COST_SECTIONS and isinstance(value, dict):
                        _deep_merge(merged.setdefault(section, {}), value)
                    elif section == "extras_costs" and isinstance(value, dict):
                        merged.setdefault(section, {}).update(copy.deepcopy(value))
                    else:
                        merged[section] = copy.deepcopy(value)

            try:
                matrix = PricingMatrix.model_validate(merged)
            except ValidationError as e:
                report.errors.append(f"{key}: merged matrix is invalid ({e.error_count()} errors)")
                continue

            self.store.set(canonical_key, matrix.to_storage())
            report.merged += 1
            report.rewritten += len(consumed)
            report.deleted += self.store.delete_many(consumed)
            logger.info("Migrated %s legacy matrix key(s) into book_size=%s", len(consumed), key)

        self.cache.clear()
        logger.info(
            "Legacy key migration complete: %s merged, %s rewritten, %s deleted, %s errors",
            report.merged, report.rewritten, report.deleted, len(report.errors),
        )
        return report
