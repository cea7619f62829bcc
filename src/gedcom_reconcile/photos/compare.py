"""
Photo comparison capability.

The perceptual-hash service itself is external; this module defines the
interface it must satisfy, the report it returns, the URL-set fallback used
when no service is available, and ``PhotoCompareCache``: an explicit cache
value (keyed by source id and destination id) that the orchestrator owns and
persists with ``load`` / ``save``.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence, runtime_checkable

from gedcom_reconcile.logging import get_logger

log = get_logger("photo_compare")

CACHE_VERSION = 1


@dataclass(slots=True)
class SimilarPhoto:
    source_url: str
    destination_url: str
    similarity: float


@dataclass(slots=True)
class PhotoCompareReport:
    new_photos: List[str] = field(default_factory=list)
    similar_photos: List[SimilarPhoto] = field(default_factory=list)
    matched_photos: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "PhotoCompareReport":
        return cls(
            new_photos=list(data.get("new_photos", [])),
            similar_photos=[SimilarPhoto(**s) for s in data.get("similar_photos", [])],
            matched_photos=list(data.get("matched_photos", [])),
        )


@runtime_checkable
class PhotoComparisonService(Protocol):
    def compare_photos(self, source_urls: Sequence[str], destination_urls: Sequence[str]) -> PhotoCompareReport:
        ...


def compare_by_url(source_urls: Sequence[str], destination_urls: Sequence[str]) -> PhotoCompareReport:
    """Fallback: a photo is new unless the exact URL is already present."""
    existing = set(destination_urls)
    report = PhotoCompareReport()
    for url in source_urls:
        if url in existing:
            report.matched_photos.append(url)
        elif url not in report.new_photos:
            report.new_photos.append(url)
    return report


class PhotoCompareCache:
    """
    Cached photo reports keyed by ``"<source_id>|<destination_id>"``.

    Lifecycle: ``PhotoCompareCache.load(path)`` at the start of a run
    (missing file -> empty cache), ``save()`` at the end. A report is only
    reused while the URL lists it was computed from are unchanged.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self._entries: Dict[str, Dict] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _key(source_id: str, destination_id: str) -> str:
        return f"{source_id}|{destination_id}"

    @staticmethod
    def _fingerprint(source_urls: Sequence[str], destination_urls: Sequence[str]) -> List[List[str]]:
        return [sorted(source_urls), sorted(destination_urls)]

    def get(
        self,
        source_id: str,
        destination_id: str,
        source_urls: Sequence[str],
        destination_urls: Sequence[str],
    ) -> Optional[PhotoCompareReport]:
        entry = self._entries.get(self._key(source_id, destination_id))
        if entry is None or entry.get("urls") != self._fingerprint(source_urls, destination_urls):
            self.misses += 1
            return None
        self.hits += 1
        return PhotoCompareReport.from_dict(entry["report"])

    def put(
        self,
        source_id: str,
        destination_id: str,
        source_urls: Sequence[str],
        destination_urls: Sequence[str],
        report: PhotoCompareReport,
    ) -> None:
        self._entries[self._key(source_id, destination_id)] = {
            "urls": self._fingerprint(source_urls, destination_urls),
            "report": report.to_dict(),
        }

    def __len__(self) -> int:
        return len(self._entries)

    @classmethod
    def load(cls, path: str | Path) -> "PhotoCompareCache":
        cache = cls(Path(path))
        if not cache.path.exists():
            log.debug("Photo cache %s not found; starting empty", cache.path)
            return cache
        try:
            with cache.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            log.warning("Ignoring unreadable photo cache %s: %s", cache.path, exc)
            return cache
        if not isinstance(data, dict) or data.get("version") != CACHE_VERSION:
            log.warning("Ignoring photo cache %s with unsupported version %r", cache.path, data.get("version"))
            return cache
        cache._entries = dict(data.get("entries", {}))
        log.info("Loaded %d photo comparison(s) from %s", len(cache._entries), cache.path)
        return cache

    def save(self, path: str | Path | None = None) -> Path:
        target = Path(path) if path else self.path
        if target is None:
            raise ValueError("PhotoCompareCache.save() needs a path")
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("w", encoding="utf-8") as f:
            json.dump({"version": CACHE_VERSION, "entries": self._entries}, f, ensure_ascii=False, indent=2)
        log.info("Saved %d photo comparison(s) to %s", len(self._entries), target)
        return target
