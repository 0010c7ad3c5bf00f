"""
Scan history storage.
Keeps the most recent accepted readings, newest first, capped at MAX_SCANS.
"""
import json
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from meter_reader import config
from meter_reader.errors import NoValueFound
from meter_reader.models.scan import ScanRecord
from meter_reader.ocr.normalizer import normalize_reading

logger = logging.getLogger(__name__)


class ScanStore(ABC):
    """Append-only, length-capped history of scan records."""

    def __init__(self, max_scans: int = config.MAX_SCANS):
        if max_scans < 1:
            raise ValueError(f"max_scans must be >= 1, got {max_scans}")
        self.max_scans = max_scans
        self._lock = threading.Lock()
        self._scans: List[ScanRecord] = []

    def list(self) -> List[ScanRecord]:
        """All retained records, newest first."""
        with self._lock:
            return list(self._scans)

    def latest(self) -> Optional[ScanRecord]:
        with self._lock:
            return self._scans[0] if self._scans else None

    def add(
        self,
        raw: str,
        normalized: str,
        ocr_text: str,
        filtered_text: Optional[str] = None,
        preview_image: Optional[str] = None,
        field: str = "fr1",
        confidence: float = 0.0,
        manual: bool = False,
    ) -> ScanRecord:
        record = ScanRecord(
            id=uuid.uuid4().hex,
            raw=raw,
            normalized=normalized,
            timestamp=datetime.now(timezone.utc).isoformat(),
            ocr_text=ocr_text,
            filtered_text=filtered_text,
            preview_image=preview_image,
            field=field,
            confidence=confidence,
            manual=manual,
        )
        with self._lock:
            self._scans = [record, *self._scans][: self.max_scans]
            self._persist(self._scans)
        logger.info(f"Saved scan {record.id}: {record.normalized} ({'manual' if manual else 'ocr'})")
        return record

    def add_manual(
        self,
        value: str,
        ocr_text: str = "",
        filtered_text: Optional[str] = None,
        field: str = "fr1",
    ) -> ScanRecord:
        """Record a value entered by the user in place of the recognized one."""
        normalized = normalize_reading((value or "").strip())
        if normalized is None:
            raise NoValueFound(f"Manual value is not a number: {value!r}", raw_text=ocr_text,
                               filtered_text=filtered_text or "")
        return self.add(
            raw=value.strip(),
            normalized=normalized,
            ocr_text=ocr_text,
            filtered_text=filtered_text,
            field=field,
            confidence=1.0,
            manual=True,
        )

    @abstractmethod
    def _persist(self, scans: List[ScanRecord]) -> None:
        ...


class MemoryScanStore(ScanStore):
    def _persist(self, scans: List[ScanRecord]) -> None:
        pass


class JsonScanStore(ScanStore):
    """Store persisted as a JSON list in a single file, rewritten on every add."""

    def __init__(self, path: Path = config.HISTORY_FILE, max_scans: int = config.MAX_SCANS):
        super().__init__(max_scans)
        self.path = Path(path)
        self._scans = self._load()

    def _load(self) -> List[ScanRecord]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            scans = [ScanRecord.from_dict(item) for item in data]
        except (OSError, ValueError, TypeError, KeyError) as e:
            logger.error(f"Failed to load scans from {self.path}: {e}")
            return []
        logger.info(f"Loaded {len(scans)} scans from {self.path}")
        return scans[: self.max_scans]

    def _persist(self, scans: List[ScanRecord]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps([s.to_dict() for s in scans], indent=2), encoding="utf-8")
        tmp_path.replace(self.path)
