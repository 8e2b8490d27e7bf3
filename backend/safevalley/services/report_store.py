"""Report store: durable collection of hazard reports.

``SqlAlchemyReportStore`` persists to PostgreSQL/PostGIS. ``InMemoryReportStore``
keeps reports in a dict for local development and tests. Both apply a field
delta as one atomic write and report I/O failures as
``StoreUnavailableException``.
"""

import asyncio
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from geoalchemy2.shape import from_shape, to_shape
from shapely.geometry import Point
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from safevalley.core.exceptions import (
    PreconditionFailedException,
    ResourceNotFoundException,
    StoreUnavailableException,
)
from safevalley.models.hazard_report import HazardReport, ReportStatus
from safevalley.schemas.common import Coordinate
from safevalley.schemas.hazard_report import HazardReportRecord, NewReport

logger = logging.getLogger(__name__)

# Fields a delta may set. Identity, location and creation time never change.
UPDATABLE_FIELDS = frozenset({
    "hazard_type",
    "description",
    "duration",
    "radius",
    "status",
    "approved_at",
    "rejected_at",
    "deleted_at",
    "updated_at",
})

# Moderation fields a historical report may be created with
INITIAL_STATE_FIELDS = frozenset({"status", "approved_at", "rejected_at", "deleted_at"})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_delta(delta: Mapping[str, Any]) -> Dict[str, Any]:
    unknown = set(delta) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")
    return dict(delta)


def _check_initial_state(state: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    fields = dict(state or {})
    unknown = set(fields) - INITIAL_STATE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be set on creation: {sorted(unknown)}")
    fields.setdefault("status", ReportStatus.PENDING)
    return fields


def _purge_refused(required_status: ReportStatus) -> PreconditionFailedException:
    return PreconditionFailedException(
        f"Only {required_status.value} reports can be permanently deleted"
    )


class ReportStore(ABC):
    """Narrow interface the moderation core depends on."""

    @abstractmethod
    async def create_report(
        self,
        report: NewReport,
        created_at: Optional[datetime] = None,
        initial_state: Optional[Mapping[str, Any]] = None,
    ) -> HazardReportRecord:
        """Persist a new report in one write; the store assigns the id.

        New submissions are pending. ``created_at`` defaults to the store
        clock; it and ``initial_state`` (status plus decision timestamps) are
        only supplied when importing historical reports.
        """

    @abstractmethod
    async def get_report(self, report_id: str) -> Optional[HazardReportRecord]:
        """Return the report or None when the id does not resolve."""

    @abstractmethod
    async def list_reports(
        self, statuses: Optional[Iterable[ReportStatus]] = None
    ) -> List[HazardReportRecord]:
        """Snapshot of all reports, optionally restricted to some statuses."""

    @abstractmethod
    async def update_report(
        self, report_id: str, delta: Mapping[str, Any]
    ) -> HazardReportRecord:
        """Apply a field delta atomically and return the updated report."""

    @abstractmethod
    async def delete_report(
        self, report_id: str, required_status: Optional[ReportStatus] = None
    ) -> None:
        """Remove a report permanently.

        With ``required_status`` the status is checked in the same write, so
        a report whose status changed after the caller read it is kept.

        Raises:
            ResourceNotFoundException: no report has this id
            PreconditionFailedException: the report is not in ``required_status``
        """


class InMemoryReportStore(ReportStore):
    """Dict-backed store. Writes are serialized by an asyncio lock."""

    def __init__(
        self,
        reports: Optional[Iterable[HazardReportRecord]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._reports: Dict[str, HazardReportRecord] = {r.id: r for r in reports or ()}
        self._lock = asyncio.Lock()
        self._clock = clock or _utcnow

    async def create_report(
        self,
        report: NewReport,
        created_at: Optional[datetime] = None,
        initial_state: Optional[Mapping[str, Any]] = None,
    ) -> HazardReportRecord:
        record = HazardReportRecord(
            id=str(uuid.uuid4()),
            created_at=created_at or self._clock(),
            **_check_initial_state(initial_state),
            **report.model_dump(),
        )
        async with self._lock:
            self._reports[record.id] = record
        return record

    async def get_report(self, report_id: str) -> Optional[HazardReportRecord]:
        return self._reports.get(report_id)

    async def list_reports(
        self, statuses: Optional[Iterable[ReportStatus]] = None
    ) -> List[HazardReportRecord]:
        reports = list(self._reports.values())
        if statuses is not None:
            wanted = set(statuses)
            reports = [r for r in reports if r.status in wanted]
        return reports

    async def update_report(
        self, report_id: str, delta: Mapping[str, Any]
    ) -> HazardReportRecord:
        fields = _check_delta(delta)
        async with self._lock:
            current = self._reports.get(report_id)
            if current is None:
                raise ResourceNotFoundException("Report", report_id)
            updated = current.with_delta(fields)
            self._reports[report_id] = updated
        return updated

    async def delete_report(
        self, report_id: str, required_status: Optional[ReportStatus] = None
    ) -> None:
        async with self._lock:
            current = self._reports.get(report_id)
            if current is None:
                raise ResourceNotFoundException("Report", report_id)
            if required_status is not None and current.status != required_status:
                raise _purge_refused(required_status)
            del self._reports[report_id]


class SqlAlchemyReportStore(ReportStore):
    """PostgreSQL/PostGIS store over an async SQLAlchemy session factory."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or _utcnow

    @staticmethod
    def _parse_id(report_id: str) -> Optional[uuid.UUID]:
        try:
            return uuid.UUID(str(report_id))
        except ValueError:
            return None

    @staticmethod
    def to_record(row: HazardReport) -> HazardReportRecord:
        """Convert an ORM row into an immutable snapshot."""
        point = to_shape(row.location)
        return HazardReportRecord(
            id=str(row.id),
            hazard_type=row.hazard_type,
            description=row.description,
            location=Coordinate(latitude=point.y, longitude=point.x),
            duration=row.duration,
            radius=float(row.radius) if row.radius is not None else None,
            status=row.status,
            created_at=row.created_at,
            approved_at=row.approved_at,
            rejected_at=row.rejected_at,
            deleted_at=row.deleted_at,
            updated_at=row.updated_at,
            photo_url=row.photo_url,
        )

    async def _run(self, operation: str, func):
        """Run ``func(session)`` in a transaction, translating driver failures."""
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    return await func(session)
        except SQLAlchemyError as e:
            logger.error(f"Report store {operation} failed: {e}")
            raise StoreUnavailableException(f"{operation} failed: {type(e).__name__}") from e
        except OSError as e:
            logger.error(f"Report store {operation} failed: {e}")
            raise StoreUnavailableException(f"{operation} failed: {e}") from e

    async def create_report(
        self,
        report: NewReport,
        created_at: Optional[datetime] = None,
        initial_state: Optional[Mapping[str, Any]] = None,
    ) -> HazardReportRecord:
        state = _check_initial_state(initial_state)

        async def _create(session: AsyncSession) -> HazardReportRecord:
            row = HazardReport(
                id=uuid.uuid4(),
                hazard_type=report.hazard_type,
                description=report.description,
                location=from_shape(
                    Point(report.location.longitude, report.location.latitude), srid=4326
                ),
                duration=report.duration,
                radius=report.radius,
                photo_url=report.photo_url,
                created_at=created_at or self._clock(),
                **state,
            )
            session.add(row)
            await session.flush()
            return HazardReportRecord(
                id=str(row.id),
                location=report.location,
                created_at=row.created_at,
                **state,
                **report.model_dump(exclude={"location"}),
            )

        return await self._run("create", _create)

    async def get_report(self, report_id: str) -> Optional[HazardReportRecord]:
        key = self._parse_id(report_id)
        if key is None:
            return None

        async def _get(session: AsyncSession) -> Optional[HazardReportRecord]:
            result = await session.execute(select(HazardReport).where(HazardReport.id == key))
            row = result.scalar_one_or_none()
            return self.to_record(row) if row is not None else None

        return await self._run("get", _get)

    async def list_reports(
        self, statuses: Optional[Iterable[ReportStatus]] = None
    ) -> List[HazardReportRecord]:
        query = select(HazardReport).order_by(
            HazardReport.created_at.desc(), HazardReport.id.desc()
        )
        if statuses is not None:
            query = query.where(HazardReport.status.in_(list(statuses)))

        async def _list(session: AsyncSession) -> List[HazardReportRecord]:
            result = await session.execute(query)
            return [self.to_record(row) for row in result.scalars().all()]

        return await self._run("list", _list)

    async def update_report(
        self, report_id: str, delta: Mapping[str, Any]
    ) -> HazardReportRecord:
        fields = _check_delta(delta)
        key = self._parse_id(report_id)
        if key is None:
            raise ResourceNotFoundException("Report", report_id)

        async def _update(session: AsyncSession) -> Optional[HazardReportRecord]:
            # One UPDATE statement: status and its timestamps land together
            result = await session.execute(
                update(HazardReport)
                .where(HazardReport.id == key)
                .values(**fields)
                .returning(HazardReport)
                .execution_options(synchronize_session=False)
            )
            row = result.scalar_one_or_none()
            return self.to_record(row) if row is not None else None

        record = await self._run("update", _update)
        if record is None:
            raise ResourceNotFoundException("Report", report_id)
        return record

    async def delete_report(
        self, report_id: str, required_status: Optional[ReportStatus] = None
    ) -> None:
        key = self._parse_id(report_id)
        if key is None:
            raise ResourceNotFoundException("Report", report_id)

        async def _delete(session: AsyncSession) -> Tuple[int, Optional[ReportStatus]]:
            # The status guard is part of the DELETE, not a separate read
            statement = delete(HazardReport).where(HazardReport.id == key)
            if required_status is not None:
                statement = statement.where(HazardReport.status == required_status)
            result = await session.execute(statement)
            if result.rowcount:
                return result.rowcount, None

            current = await session.execute(
                select(HazardReport.status).where(HazardReport.id == key)
            )
            return 0, current.scalar_one_or_none()

        deleted, current_status = await self._run("delete", _delete)
        if deleted:
            return
        if current_status is None:
            raise ResourceNotFoundException("Report", report_id)
        raise _purge_refused(required_status)
