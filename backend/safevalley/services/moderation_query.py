"""Moderation buckets: partitioning, counts and keyset pagination for the admin view."""

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from safevalley.core.exceptions import ValidationFailedException
from safevalley.models.hazard_report import ReportStatus
from safevalley.schemas.hazard_report import HazardReportRecord
from safevalley.services.visibility import is_expired

logger = logging.getLogger(__name__)


class ModerationBucket(str, Enum):
    """Admin-facing classification of reports."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DELETED = "deleted"
    # Only populated when expired approvals are split out of APPROVED
    EXPIRED = "expired"


_STATUS_BUCKETS = {
    ReportStatus.PENDING: ModerationBucket.PENDING,
    ReportStatus.APPROVED: ModerationBucket.APPROVED,
    ReportStatus.REJECTED: ModerationBucket.REJECTED,
    ReportStatus.DELETED: ModerationBucket.DELETED,
}


@dataclass(frozen=True)
class BucketCursor:
    """Position after the last report of a page, newest first."""

    bucket: ModerationBucket
    created_at: datetime
    report_id: str


def encode_cursor(cursor: BucketCursor) -> str:
    """Encode a cursor payload using URL-safe base64."""
    payload = {
        "b": cursor.bucket.value,
        "t": cursor.created_at.isoformat(),
        "id": cursor.report_id,
    }
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_cursor(value: str) -> BucketCursor:
    """Decode a cursor string produced by :func:`encode_cursor`."""
    try:
        raw = base64.urlsafe_b64decode(value.encode("ascii"))
        payload = json.loads(raw.decode("utf-8"))
        return BucketCursor(
            bucket=ModerationBucket(payload["b"]),
            created_at=datetime.fromisoformat(payload["t"]),
            report_id=str(payload["id"]),
        )
    except (ValueError, KeyError, TypeError, UnicodeError, binascii.Error) as exc:
        raise ValidationFailedException(
            [{"field": "cursor", "message": "invalid cursor"}]
        ) from exc


def _sort_key(report: HazardReportRecord) -> Tuple[datetime, str]:
    return report.created_at, report.id


@dataclass
class BucketPage:
    bucket: ModerationBucket
    reports: List[HazardReportRecord]
    next_cursor: Optional[str]


class ModerationQuery:
    """
    Partition of one report snapshot into moderation buckets.

    Every report lands in exactly one bucket, decided by ``status`` alone, so
    a deleted report never shows up as pending, approved or rejected whatever
    its earlier decision timestamps say. Expiry is ignored unless
    ``exclude_expired_approved`` is set, in which case approved reports past
    their expiry move to the EXPIRED bucket instead of disappearing.
    """

    def __init__(
        self,
        reports: Iterable[HazardReportRecord],
        *,
        now: Optional[datetime] = None,
        exclude_expired_approved: bool = False,
        default_page_size: int = 20,
        max_page_size: int = 100,
    ):
        if exclude_expired_approved and now is None:
            raise ValueError("now is required when expired approvals are excluded")
        self.now = now
        self.exclude_expired_approved = exclude_expired_approved
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

        self._buckets: Dict[ModerationBucket, List[HazardReportRecord]] = {
            bucket: [] for bucket in self.buckets
        }
        for report in reports:
            self._buckets[self.classify(report)].append(report)
        for members in self._buckets.values():
            members.sort(key=_sort_key, reverse=True)

    @property
    def buckets(self) -> List[ModerationBucket]:
        """Buckets making up the partition under the active policy."""
        buckets = [
            ModerationBucket.PENDING,
            ModerationBucket.APPROVED,
            ModerationBucket.REJECTED,
            ModerationBucket.DELETED,
        ]
        if self.exclude_expired_approved:
            buckets.append(ModerationBucket.EXPIRED)
        return buckets

    def classify(self, report: HazardReportRecord) -> ModerationBucket:
        bucket = _STATUS_BUCKETS[report.status]
        if (
            bucket == ModerationBucket.APPROVED
            and self.exclude_expired_approved
            and is_expired(report, self.now)
        ):
            return ModerationBucket.EXPIRED
        return bucket

    def count_by_bucket(self) -> Dict[str, int]:
        """Bucket sizes; they always sum to the snapshot size."""
        return {bucket.value: len(self._buckets[bucket]) for bucket in self.buckets}

    def get_bucket(
        self,
        bucket: ModerationBucket,
        page_size: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> BucketPage:
        """
        One page of a bucket, newest first.

        Pages are keyed on ``(created_at, id)`` rather than offsets, so a
        report inserted between two page requests neither shifts later pages
        nor repeats an item already returned.

        Raises:
            ValidationFailedException: unknown bucket, bad page size or cursor
        """
        bucket = self._parse_bucket(bucket)
        page_size = self._parse_page_size(page_size)
        members = self._buckets[bucket]

        if cursor:
            position = decode_cursor(cursor)
            if position.bucket != bucket:
                raise ValidationFailedException(
                    [{"field": "cursor", "message": "cursor belongs to another bucket"}]
                )
            after = (position.created_at, position.report_id)
            members = [r for r in members if _sort_key(r) < after]

        page = members[:page_size]
        next_cursor = None
        if len(members) > page_size:
            last = page[-1]
            next_cursor = encode_cursor(BucketCursor(bucket, last.created_at, last.id))

        return BucketPage(bucket=bucket, reports=page, next_cursor=next_cursor)

    def _parse_bucket(self, bucket) -> ModerationBucket:
        try:
            parsed = ModerationBucket(bucket)
        except ValueError:
            parsed = None
        if parsed is None or parsed not in self.buckets:
            raise ValidationFailedException(
                [{"field": "bucket", "message": f"unknown bucket: {bucket}"}]
            )
        return parsed

    def _parse_page_size(self, page_size: Optional[int]) -> int:
        if page_size is None:
            return self.default_page_size
        if not 1 <= page_size <= self.max_page_size:
            raise ValidationFailedException([{
                "field": "page_size",
                "message": f"page size must be between 1 and {self.max_page_size}",
            }])
        return page_size
