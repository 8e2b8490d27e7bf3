"""Import hazard reports exported from the old flag-based document store.

Usage:
    python scripts/import_legacy_reports.py hazards.json

The export is a JSON list (or an object keyed by document id) of documents
with ``type``, ``description``, ``location: {lat, lng}``, ``duration``,
optional ``radius``, ``createdAt`` and the ``isApproved`` / ``isRejected`` /
``isDeleted`` flags. Each document goes through the same field rules and
sanitization as a new submission and is written through the configured
report store with its canonical status in a single write. Documents that
break a rule are skipped and listed.
"""

import asyncio
import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from safevalley.api.deps import get_report_store
from safevalley.config import Settings, settings as default_settings
from safevalley.core.exceptions import ValidationFailedException
from safevalley.models.hazard_report import ReportStatus
from safevalley.services.lifecycle import status_from_legacy_flags
from safevalley.services.report_store import ReportStore
from safevalley.services.submission_validator import SubmissionValidator


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Accept ``{"seconds": n}`` timestamps, epoch seconds or ISO strings."""
    if value is None:
        return None
    if isinstance(value, dict) and "seconds" in value:
        return datetime.fromtimestamp(value["seconds"], tz=timezone.utc)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def moderation_state(
    document: Dict[str, Any],
    status: ReportStatus,
    created_at: datetime,
    retain_history_on_delete: bool = True,
) -> Dict[str, Any]:
    """Status plus the decision timestamps that status allows.

    Pending reports carry none. Approved and rejected reports carry only
    their own timestamp, backfilled from ``created_at`` when the document
    has none. Deleted reports may also keep the decision they held before
    deletion when history is retained.
    """
    def stamp(key: str) -> datetime:
        value = parse_timestamp(document.get(key))
        return max(value, created_at) if value else created_at

    state: Dict[str, Any] = {
        "status": status,
        "approved_at": None,
        "rejected_at": None,
        "deleted_at": None,
    }
    if status == ReportStatus.APPROVED:
        state["approved_at"] = stamp("approvedAt")
    elif status == ReportStatus.REJECTED:
        state["rejected_at"] = stamp("rejectedAt")
    elif status == ReportStatus.DELETED:
        state["deleted_at"] = stamp("deletedAt")
        if retain_history_on_delete:
            before = status_from_legacy_flags({**document, "isDeleted": False})
            if before == ReportStatus.APPROVED and document.get("approvedAt") is not None:
                state["approved_at"] = stamp("approvedAt")
            elif before == ReportStatus.REJECTED and document.get("rejectedAt") is not None:
                state["rejected_at"] = stamp("rejectedAt")
    return state


def convert_document(
    document: Dict[str, Any],
    validator: SubmissionValidator,
    retain_history_on_delete: bool = True,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Validate a legacy document and split it into the new report and its state.

    Raises:
        ValidationFailedException: a field breaks the submission rules
        ValueError: a timestamp cannot be parsed
    """
    if not isinstance(document, dict):
        raise ValueError("document is not an object")

    report = validator.build_report({
        "type": document.get("type"),
        "description": document.get("description"),
        "location": document.get("location"),
        "duration": document.get("duration"),
        "radius": document.get("radius") if document.get("radius") != "" else None,
        "photo_url": document.get("photoURL"),
    })

    created_at = parse_timestamp(document.get("createdAt")) or now or datetime.now(timezone.utc)
    status = status_from_legacy_flags(document)
    return {
        "report": report,
        "created_at": created_at,
        "state": moderation_state(document, status, created_at, retain_history_on_delete),
    }


def load_documents(path: str) -> List[Dict[str, Any]]:
    with open(path) as f:
        data = json.load(f)
    if isinstance(data, dict):
        return list(data.values())
    return data


async def import_documents(
    documents: List[Dict[str, Any]],
    store: ReportStore,
    settings: Optional[Settings] = None,
) -> Dict[str, int]:
    """Write every valid document; returns counts per status plus ``skipped``."""
    settings = settings or default_settings
    validator = SubmissionValidator.from_settings(settings)

    counts: Dict[str, int] = {"skipped": 0}
    for index, document in enumerate(documents):
        try:
            converted = convert_document(
                document, validator, settings.soft_delete_retains_history
            )
        except ValidationFailedException as e:
            messages = "; ".join(error["message"] for error in e.errors)
            print(f"  skipped document {index}: {messages}")
            counts["skipped"] += 1
            continue
        except ValueError as e:
            print(f"  skipped document {index}: {e}")
            counts["skipped"] += 1
            continue

        await store.create_report(
            converted["report"],
            created_at=converted["created_at"],
            initial_state=converted["state"],
        )
        status = converted["state"]["status"].value
        counts[status] = counts.get(status, 0) + 1

    return counts


async def main(path: str):
    documents = load_documents(path)
    print(f"Importing {len(documents)} legacy reports...")

    counts = await import_documents(documents, get_report_store())

    for status, count in sorted(counts.items()):
        print(f"  {status}: {count}")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(1)
    asyncio.run(main(sys.argv[1]))
