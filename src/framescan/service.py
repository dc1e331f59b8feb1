"""FrameScan service facade.

Wires the credit ledger, report store, scan pipeline, and advisory triggers
into the read/write API consumed by the HTTP layer and the CLI.

Persistence is write-behind: after each mutation the ledger and store
documents are saved to the StateBackend. A failed save is logged, the state
is marked dirty, and the next mutation (or an explicit flush) retries.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from framescan.audit.sink import AuditSink, get_audit_sink
from framescan.credits.ledger import CreditLedger
from framescan.credits.models import CreditBalance, CreditPackage, CreditTransaction, ScanTier
from framescan.persistence.backend import (
    InMemoryStateBackend,
    StateBackend,
    StateBackendError,
    get_state_backend,
)
from framescan.pipeline.domains import infer_image_domain, infer_text_domain
from framescan.pipeline.errors import InsufficientCredits, ProviderFailure
from framescan.pipeline.pipeline import ScanPipeline, ScanRequest
from framescan.pipeline.throttle import ScanThrottle
from framescan.providers.analysis_provider import AnalysisProvider, build_analysis_provider
from framescan.reports.models import CumulativeProfile, ScanReport, Trend
from framescan.reports.profile import (
    DEFAULT_TREND_WINDOW,
    compute_cumulative_profile,
    compute_trend,
)
from framescan.reports.store import ReportStore
from framescan.scoring.models import Domain, Modality
from framescan.triggers.evaluator import (
    AdvisoryEvent,
    AdvisoryType,
    ScanOutcome,
    SessionState,
    TriggerConfig,
    advance_session,
    dismiss,
    evaluate,
)

logger = logging.getLogger(__name__)

CONTACT_ZERO_ID = "contact_zero"
LEDGER_STATE_KEY = "credit_ledger"
REPORTS_STATE_KEY = "scan_reports"


@dataclass(frozen=True)
class ScanResult:
    report: ScanReport
    credits_remaining: int
    advisories: list[AdvisoryEvent] = field(default_factory=list)


@dataclass(frozen=True)
class ContactProfileView:
    profile: CumulativeProfile
    trend: Trend | None


class FrameScanService:
    """In-process API over the frame scan engine."""

    def __init__(
        self,
        ledger: CreditLedger,
        store: ReportStore,
        provider: AnalysisProvider,
        audit_sink: AuditSink,
        backend: StateBackend | None = None,
        throttle: ScanThrottle | None = None,
        trigger_config: TriggerConfig | None = None,
    ) -> None:
        self._ledger = ledger
        self._store = store
        self._backend = backend or InMemoryStateBackend()
        self._pipeline = ScanPipeline(
            ledger=ledger,
            store=store,
            provider=provider,
            audit_sink=audit_sink,
            throttle=throttle,
        )
        self._trigger_config = trigger_config or TriggerConfig()
        self._session = SessionState()
        self._session_lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self._dirty = False

    @classmethod
    def create(
        cls,
        backend: StateBackend | None = None,
        provider: AnalysisProvider | None = None,
        audit_sink: AuditSink | None = None,
        throttle: ScanThrottle | None = None,
        trigger_config: TriggerConfig | None = None,
    ) -> FrameScanService:
        """Build a service from environment configuration and any saved state.

        An empty backend yields first-run defaults (starting credits, no reports).

        Raises:
            StateBackendError: If saved state exists but cannot be loaded.
        """
        backend = backend or get_state_backend()
        ledger_doc = backend.load(LEDGER_STATE_KEY)
        reports_doc = backend.load(REPORTS_STATE_KEY)
        ledger = CreditLedger.from_document(ledger_doc) if ledger_doc else CreditLedger()
        store = ReportStore.from_document(reports_doc) if reports_doc else ReportStore()
        logger.info(
            "Loaded frame scan state: %d credits available, %d reports",
            ledger.get_available_credits(),
            store.count(),
        )
        return cls(
            ledger=ledger,
            store=store,
            provider=provider or build_analysis_provider(),
            audit_sink=audit_sink or get_audit_sink(),
            backend=backend,
            throttle=throttle,
            trigger_config=trigger_config,
        )

    # -- components --------------------------------------------------------

    @property
    def ledger(self) -> CreditLedger:
        return self._ledger

    @property
    def store(self) -> ReportStore:
        return self._store

    @property
    def pipeline(self) -> ScanPipeline:
        return self._pipeline

    @property
    def session(self) -> SessionState:
        with self._session_lock:
            return self._session

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    # -- persistence -------------------------------------------------------

    def flush(self) -> None:
        """Save ledger and store documents.

        Raises:
            StateBackendError: If the backend rejects either document.
        """
        with self._flush_lock:
            self._backend.save(LEDGER_STATE_KEY, self._ledger.to_document())
            self._backend.save(REPORTS_STATE_KEY, self._store.to_document())
            self._dirty = False

    def _flush_after_mutation(self) -> None:
        try:
            self.flush()
        except StateBackendError:
            self._dirty = True
            logger.error("State flush failed; will retry on next mutation", exc_info=True)

    # -- scans -------------------------------------------------------------

    def _run(self, request: ScanRequest) -> ScanResult:
        try:
            report = self._pipeline.run_scan(request)
        except (InsufficientCredits, ProviderFailure) as exc:
            exc.advisories = self._record_outcome(
                ScanOutcome(
                    succeeded=False,
                    tier=request.tier,
                    available_credits=self._ledger.get_available_credits(),
                )
            )
            self._flush_after_mutation()
            raise

        advisories = self._record_outcome(
            ScanOutcome(
                succeeded=True,
                tier=request.tier,
                available_credits=self._ledger.get_available_credits(),
                frame_score=report.frame_score,
                patterns=report.raw_result.diagnostics.primary_patterns,
            )
        )
        self._flush_after_mutation()
        return ScanResult(
            report=report,
            credits_remaining=self._ledger.get_available_credits(),
            advisories=advisories,
        )

    def _record_outcome(self, outcome: ScanOutcome) -> list[AdvisoryEvent]:
        with self._session_lock:
            advisories = evaluate(outcome, self._session, self._trigger_config)
            self._session = advance_session(self._session, outcome)
        for advisory in advisories:
            logger.info(
                "Advisory %s (%s) raised", advisory.advisory_type.value, advisory.priority.value
            )
        return advisories

    @staticmethod
    def _contacts(subject_contact_ids: list[str] | None) -> list[str]:
        return list(subject_contact_ids) if subject_contact_ids else [CONTACT_ZERO_ID]

    def run_text_scan(
        self,
        content: str,
        domain: Domain = Domain.GENERIC,
        subject_contact_ids: list[str] | None = None,
        title: str | None = None,
        source_ref: str | None = None,
    ) -> ScanResult:
        """Scan text in an explicit domain. Text scans never cost credits."""
        return self._run(
            ScanRequest(
                modality=Modality.TEXT,
                domain=domain,
                tier=ScanTier.BASIC,
                content=content,
                subject_contact_ids=self._contacts(subject_contact_ids),
                title=title,
                source_ref=source_ref,
            )
        )

    def run_image_scan(
        self,
        image_ref: str,
        context_label: str | None,
        domain: Domain,
        tier: ScanTier = ScanTier.BASIC,
        subject_contact_ids: list[str] | None = None,
        title: str | None = None,
        source_ref: str | None = None,
    ) -> ScanResult:
        """Scan an image in an explicit domain at the given tier."""
        return self._run(
            ScanRequest(
                modality=Modality.IMAGE,
                domain=domain,
                tier=tier,
                image_ref=image_ref,
                context_label=context_label,
                subject_contact_ids=self._contacts(subject_contact_ids),
                title=title,
                source_ref=source_ref,
            )
        )

    def run_tiered_image_scan(
        self,
        image_ref: str,
        context_label: str | None,
        tier: ScanTier,
        domain: Domain | None = None,
        subject_contact_ids: list[str] | None = None,
        title: str | None = None,
        source_ref: str | None = None,
    ) -> ScanResult:
        """Scan an image at a tier; infers the domain from the label when none is given."""
        inferred = domain is None
        if domain is None:
            domain = infer_image_domain(context_label).domain
        return self._run(
            ScanRequest(
                modality=Modality.IMAGE,
                domain=domain,
                tier=tier,
                image_ref=image_ref,
                context_label=context_label,
                subject_contact_ids=self._contacts(subject_contact_ids),
                title=title,
                source_ref=source_ref,
                domain_inferred=inferred,
            )
        )

    def run_public_text_scan(self, content: str) -> ScanResult:
        """Scan text from the public entry point; domain is inferred from keywords."""
        inference = infer_text_domain(content)
        return self._run(
            ScanRequest(
                modality=Modality.TEXT,
                domain=inference.domain,
                tier=ScanTier.BASIC,
                content=content,
                subject_contact_ids=[CONTACT_ZERO_ID],
                source_ref="public",
                domain_inferred=True,
            )
        )

    # -- credits -----------------------------------------------------------

    def purchase_credits(self, package_id: str) -> bool:
        purchased = self._ledger.purchase(package_id)
        if purchased:
            self._flush_after_mutation()
        return purchased

    def add_bonus_credits(self, amount: int, reason: str) -> CreditTransaction:
        tx = self._ledger.bonus(amount, reason)
        self._flush_after_mutation()
        return tx

    def get_available_credits(self) -> int:
        return self._ledger.get_available_credits()

    def get_credit_balance(self) -> CreditBalance:
        return self._ledger.get_balance()

    def get_credit_transactions(self, limit: int | None = None) -> list[CreditTransaction]:
        return self._ledger.get_transactions(limit)

    def get_credit_packages(self) -> list[CreditPackage]:
        return self._ledger.get_packages()

    # -- reports -----------------------------------------------------------

    def get_latest_report(self, contact_id: str | None = None) -> ScanReport | None:
        return self._store.get_latest_report(contact_id)

    def get_report_by_id(self, report_id: str) -> ScanReport | None:
        return self._store.get_report_by_id(report_id)

    def get_reports_for_contact(self, contact_id: str) -> list[ScanReport]:
        return self._store.get_reports_for_subject(contact_id)

    def get_contact_profile(
        self, contact_id: str, window: int = DEFAULT_TREND_WINDOW
    ) -> ContactProfileView:
        reports = self._store.get_reports_for_subject(contact_id)
        return ContactProfileView(
            profile=compute_cumulative_profile(contact_id, reports),
            trend=compute_trend(reports, window),
        )

    def add_custom_domain_tag(self, report_id: str, tag: str) -> ScanReport:
        report = self._store.add_custom_domain_tag(report_id, tag)
        self._flush_after_mutation()
        return report

    def remove_custom_domain_tag(self, report_id: str, tag: str) -> ScanReport:
        report = self._store.remove_custom_domain_tag(report_id, tag)
        self._flush_after_mutation()
        return report

    # -- session -----------------------------------------------------------

    def dismiss_advisory(self, advisory_type: AdvisoryType) -> None:
        with self._session_lock:
            self._session = dismiss(self._session, AdvisoryType(advisory_type))

    def reset_session(self) -> None:
        """Start a new session: clears advisory counters and the scan throttle."""
        with self._session_lock:
            self._session = SessionState()
        self._pipeline.throttle.reset()
