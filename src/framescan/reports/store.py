"""Append-only scan report store.

The store owns report identity: it assigns report_id (unless pre-allocated),
a monotonic sequence, and created_at. Only custom_domain_tags can change
after creation, by replacing the stored copy.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from framescan.reports.models import ScanReport, ScanReportDraft

logger = logging.getLogger(__name__)

REPORT_ID_PREFIX = "fsr_"


class ReportNotFoundError(Exception):
    """Raised when a report id is not in the store."""

    def __init__(self, report_id: str) -> None:
        super().__init__(f"Scan report not found: {report_id}")
        self.report_id = report_id


class DuplicateReportError(Exception):
    """Raised when a draft reuses an id that is already stored."""


def generate_report_id() -> str:
    return f"{REPORT_ID_PREFIX}{uuid.uuid4().hex[:16]}"


class ReportStore:
    """Process-local report store guarded by a lock."""

    def __init__(
        self,
        reports: list[ScanReport] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self._lock = threading.Lock()
        self._reports: dict[str, ScanReport] = {}
        self._sequence = 0
        for report in reports or []:
            self._reports[report.report_id] = report
            self._sequence = max(self._sequence, report.sequence)

    def next_report_id(self) -> str:
        """Pre-allocate a report id so a credit reservation can reference it."""
        return generate_report_id()

    def save_report(self, draft: ScanReportDraft) -> ScanReport:
        """Persist a draft as a new report.

        Raises:
            DuplicateReportError: If the draft's pre-allocated id is already stored.
        """
        with self._lock:
            report_id = draft.report_id or generate_report_id()
            if report_id in self._reports:
                raise DuplicateReportError(f"Report id already stored: {report_id}")
            self._sequence += 1
            fields = draft.model_dump(exclude={"report_id"})
            report = ScanReport(
                report_id=report_id,
                sequence=self._sequence,
                created_at=self._clock(),
                **fields,
            )
            self._reports[report_id] = report

        logger.info(
            "Saved scan report %s (seq=%d, score=%d, contacts=%s)",
            report.report_id,
            report.sequence,
            report.frame_score,
            ",".join(report.subject_contact_ids),
        )
        return report

    def get_report_by_id(self, report_id: str) -> ScanReport | None:
        with self._lock:
            return self._reports.get(report_id)

    def get_reports_for_subject(self, contact_id: str) -> list[ScanReport]:
        """Return the contact's reports, newest first by (created_at, sequence)."""
        with self._lock:
            matching = [r for r in self._reports.values() if contact_id in r.subject_contact_ids]
        return sorted(matching, key=lambda r: (r.created_at, r.sequence), reverse=True)

    def get_latest_report(self, contact_id: str | None = None) -> ScanReport | None:
        """Return the newest report overall, or for one contact."""
        if contact_id is not None:
            reports = self.get_reports_for_subject(contact_id)
            return reports[0] if reports else None
        with self._lock:
            all_reports = list(self._reports.values())
        if not all_reports:
            return None
        return max(all_reports, key=lambda r: (r.created_at, r.sequence))

    def list_reports(self) -> list[ScanReport]:
        """Return every report, newest first."""
        with self._lock:
            all_reports = list(self._reports.values())
        return sorted(all_reports, key=lambda r: (r.created_at, r.sequence), reverse=True)

    def _replace_tags(
        self, report_id: str, update: Callable[[frozenset[str]], frozenset[str]]
    ) -> ScanReport:
        with self._lock:
            report = self._reports.get(report_id)
            if report is None:
                raise ReportNotFoundError(report_id)
            updated = report.model_copy(
                update={"custom_domain_tags": update(report.custom_domain_tags)}
            )
            self._reports[report_id] = updated
        return updated

    def add_custom_domain_tag(self, report_id: str, tag: str) -> ScanReport:
        """Add a tag to a report.

        Raises:
            ReportNotFoundError: If report_id is unknown.
            ValueError: If the tag is blank.
        """
        cleaned = tag.strip()
        if not cleaned:
            raise ValueError("Tag must not be blank")
        return self._replace_tags(report_id, lambda tags: tags | {cleaned})

    def remove_custom_domain_tag(self, report_id: str, tag: str) -> ScanReport:
        """Remove a tag from a report (no-op if absent).

        Raises:
            ReportNotFoundError: If report_id is unknown.
        """
        cleaned = tag.strip()
        return self._replace_tags(report_id, lambda tags: tags - {cleaned})

    def count(self) -> int:
        with self._lock:
            return len(self._reports)

    def reset(self) -> None:
        with self._lock:
            self._reports.clear()
            self._sequence = 0

    def to_document(self) -> dict[str, Any]:
        with self._lock:
            reports = sorted(self._reports.values(), key=lambda r: r.sequence)
            return {"reports": [r.model_dump(mode="json") for r in reports]}

    @classmethod
    def from_document(
        cls,
        document: dict[str, Any],
        clock: Callable[[], datetime] | None = None,
    ) -> ReportStore:
        reports = [ScanReport.model_validate(r) for r in document.get("reports", [])]
        return cls(reports=reports, clock=clock)
