"""
Field Differ: what does the source know that the destination is missing?

Additive only. A diff is emitted when the source has a value and the
destination does not, or when both have a date and the source's is strictly
more precise. Nothing is ever proposed for removal or overwrite.
"""

from __future__ import annotations

from typing import List, Optional

from gedcom_reconcile.compare.models import FieldAction, FieldDiff
from gedcom_reconcile.dates.normalizer import DateInfo
from gedcom_reconcile.logging import get_logger
from gedcom_reconcile.photos.compare import (
    PhotoCompareCache,
    PhotoCompareReport,
    PhotoComparisonService,
    compare_by_url,
)
from gedcom_reconcile.registry.entities import Gender, PersonRecord

log = get_logger("field_differ")

DEFAULT_PHOTO_SIMILARITY_THRESHOLD = 0.98

STRING_FIELDS = (
    ("FirstName", "first_name"),
    ("LastName", "last_name"),
    ("MaidenName", "maiden_name"),
    ("MiddleName", "middle_name"),
    ("Nickname", "nickname"),
    ("Suffix", "suffix"),
)

DATE_FIELDS = (
    ("BirthDate", "birth_date"),
    ("DeathDate", "death_date"),
    ("BurialDate", "burial_date"),
)

PLACE_FIELDS = (
    ("BirthPlace", "birth_place"),
    ("DeathPlace", "death_place"),
    ("BurialPlace", "burial_place"),
)


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


def diff_string(field_name: str, source_value: Optional[str], dest_value: Optional[str]) -> Optional[FieldDiff]:
    if _blank(source_value) or not _blank(dest_value):
        return None
    return FieldDiff(field_name, source_value, dest_value, FieldAction.ADD)


def diff_date(field_name: str, source_value: Optional[DateInfo], dest_value: Optional[DateInfo]) -> Optional[FieldDiff]:
    if source_value is None:
        return None
    if dest_value is None:
        return FieldDiff(field_name, str(source_value), None, FieldAction.ADD)
    if source_value.is_more_precise_than(dest_value):
        return FieldDiff(field_name, str(source_value), str(dest_value), FieldAction.UPDATE)
    return None


class FieldDiffer:
    def __init__(
        self,
        photo_service: Optional[PhotoComparisonService] = None,
        photo_cache: Optional[PhotoCompareCache] = None,
        similarity_threshold: float = DEFAULT_PHOTO_SIMILARITY_THRESHOLD,
    ):
        self.photo_service = photo_service
        self.photo_cache = photo_cache
        self.similarity_threshold = similarity_threshold

    def compare_fields(self, source: PersonRecord, dest: PersonRecord) -> List[FieldDiff]:
        diffs: List[FieldDiff] = []

        for field_name, attr in STRING_FIELDS:
            if attr == "maiden_name" and source.normalized_maiden_name and (
                source.normalized_maiden_name == dest.normalized_last_name
            ):
                # already present, filed as the destination's last name
                continue
            diff = diff_string(field_name, getattr(source, attr), getattr(dest, attr))
            if diff:
                diffs.append(diff)

        for field_name, attr in DATE_FIELDS:
            diff = diff_date(field_name, getattr(source, attr), getattr(dest, attr))
            if diff:
                diffs.append(diff)

        for field_name, attr in PLACE_FIELDS:
            diff = diff_string(field_name, getattr(source, attr), getattr(dest, attr))
            if diff:
                diffs.append(diff)

        if source.gender.is_known and dest.gender is Gender.UNKNOWN:
            diffs.append(FieldDiff("Gender", source.gender.value, None, FieldAction.ADD))

        diffs.extend(self.compare_photos(source, dest))
        return diffs

    # ------------------------------------------------------------------
    # Photos
    # ------------------------------------------------------------------

    def _photo_report(self, source: PersonRecord, dest: PersonRecord) -> PhotoCompareReport:
        src_urls, dst_urls = source.photo_urls, dest.photo_urls
        if self.photo_service is None:
            return compare_by_url(src_urls, dst_urls)

        if self.photo_cache is not None:
            cached = self.photo_cache.get(source.id, dest.id, src_urls, dst_urls)
            if cached is not None:
                return cached

        try:
            report = self.photo_service.compare_photos(src_urls, dst_urls)
        except Exception as exc:
            log.warning(
                "Photo comparison failed for %s -> %s (%s); using URL comparison",
                source.id, dest.id, exc,
            )
            return compare_by_url(src_urls, dst_urls)

        if self.photo_cache is not None:
            self.photo_cache.put(source.id, dest.id, src_urls, dst_urls, report)
        return report

    def compare_photos(self, source: PersonRecord, dest: PersonRecord) -> List[FieldDiff]:
        if not source.photo_urls:
            return []

        report = self._photo_report(source, dest)
        diffs: List[FieldDiff] = []
        for url in report.new_photos:
            diffs.append(FieldDiff("PhotoUrl", url, None, FieldAction.ADD_PHOTO, photo_url=url))
        for similar in report.similar_photos:
            if similar.similarity >= self.similarity_threshold:
                continue
            diffs.append(
                FieldDiff(
                    "PhotoUrl",
                    similar.source_url,
                    similar.destination_url,
                    FieldAction.UPDATE_PHOTO,
                    photo_url=similar.source_url,
                    photo_similarity=similar.similarity,
                )
            )
        return diffs
