"""Scan pipeline: validate, gate on credits, analyze, score, persist.

Per-call state machine:

    idle -> validating -> (rejected | credit_check)
    credit_check -> (insufficient_credits | reserved)
    reserved -> invoking_provider -> (provider_failure | normalizing)
    normalizing -> scoring -> persisting -> done

Guarantees:
- InsufficientCredits is raised before the provider is ever called
- Any failure after a reservation refunds the full cost, linked to the same
  scan_report_id as the use transaction, before the error propagates
- Rejected or failed scans never create a report
- Only scan.started is fail-closed. Later audit events are best-effort so an
  audit failure never replaces the scan error or fails a persisted scan
- No retries here; the provider client owns transport retries
"""

from __future__ import annotations

import logging
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from framescan.audit.sink import AuditSink, AuditSinkError, make_event
from framescan.credits.ledger import CreditLedger
from framescan.credits.models import TEXT_SCAN_COST, ScanTier
from framescan.pipeline.errors import ContentRejected, InsufficientCredits, ProviderFailure
from framescan.pipeline.normalize import ProviderRejection, normalize_provider_result
from framescan.pipeline.precheck import check_image_context, check_text_content
from framescan.pipeline.throttle import ScanThrottle
from framescan.providers.analysis_provider import AnalysisProvider
from framescan.providers.models import ProviderRequest
from framescan.reports.models import ScanReport, ScanReportDraft
from framescan.reports.store import ReportStore
from framescan.scoring.domain_packs import get_domain_pack
from framescan.scoring.engine import InvalidAxisScore, compute_frame_score
from framescan.scoring.models import Domain, Modality, modality_for_domain

logger = logging.getLogger(__name__)

REFUND_REASON = "Scan failed - automatic refund"


class ScanState(StrEnum):
    IDLE = "idle"
    VALIDATING = "validating"
    REJECTED = "rejected"
    CREDIT_CHECK = "credit_check"
    INSUFFICIENT_CREDITS = "insufficient_credits"
    RESERVED = "reserved"
    INVOKING_PROVIDER = "invoking_provider"
    PROVIDER_FAILURE = "provider_failure"
    NORMALIZING = "normalizing"
    SCORING = "scoring"
    PERSISTING = "persisting"
    DONE = "done"


class ScanRequest(BaseModel):
    """One scan to run. The domain is always explicit at this layer."""

    model_config = ConfigDict(frozen=True)

    modality: Modality
    domain: Domain
    tier: ScanTier = ScanTier.BASIC
    subject_contact_ids: list[str] = Field(..., min_length=1)
    content: str | None = None
    image_ref: str | None = None
    context_label: str | None = None
    title: str | None = None
    source_ref: str | None = None
    domain_inferred: bool = False

    @model_validator(mode="after")
    def _validate_domain(self) -> ScanRequest:
        if modality_for_domain(self.domain) != self.modality:
            raise ValueError(
                f"Domain {self.domain.value} is not valid for {self.modality.value} scans"
            )
        return self


class ScanPipeline:
    """Runs one scan at a time per call; safe to share across threads."""

    def __init__(
        self,
        ledger: CreditLedger,
        store: ReportStore,
        provider: AnalysisProvider,
        audit_sink: AuditSink,
        throttle: ScanThrottle | None = None,
    ) -> None:
        self._ledger = ledger
        self._store = store
        self._provider = provider
        self._audit_sink = audit_sink
        self._throttle = throttle or ScanThrottle()

    @property
    def throttle(self) -> ScanThrottle:
        return self._throttle

    def cost_for(self, request: ScanRequest) -> int:
        """Credits a request will reserve. Text scans are always free."""
        if request.modality == Modality.TEXT:
            return TEXT_SCAN_COST
        return self._ledger.get_cost_for_tier(request.tier)

    def _transition(self, report_id: str | None, state: ScanState) -> None:
        logger.debug("scan %s -> %s", report_id or "-", state.value)

    def _emit(self, event_type: str, request: ScanRequest, **fields: object) -> None:
        self._audit_sink.emit(
            make_event(
                event_type,
                modality=request.modality.value,
                domain=request.domain.value,
                tier=request.tier.value,
                **fields,
            )
        )

    def _emit_best_effort(self, event_type: str, request: ScanRequest, **fields: object) -> None:
        try:
            self._emit(event_type, request, **fields)
        except AuditSinkError:
            logger.error("Could not record audit event %s", event_type, exc_info=True)

    def run_scan(self, request: ScanRequest) -> ScanReport:
        """Run a scan end to end.

        Returns:
            The persisted ScanReport.

        Raises:
            ScanThrottled: Session scan limit reached.
            ContentRejected: Pre-check or provider found too little context.
            InsufficientCredits: Balance cannot cover the tier.
            ProviderFailure: Provider error, malformed payload, or invalid axes.
            AuditSinkError: The scan.started event could not be recorded.
        """
        self._transition(None, ScanState.IDLE)
        self._emit("scan.started", request)

        self._transition(None, ScanState.VALIDATING)
        self._throttle.enforce()
        try:
            report, cost = self._run_admitted(request)
        except BaseException:
            self._throttle.release()
            raise

        self._throttle.record_scan()
        self._transition(report.report_id, ScanState.DONE)
        logger.info(
            "Scan %s completed: score=%d frame=%s cost=%d",
            report.report_id,
            report.frame_score,
            report.score.overall_frame.value,
            cost,
        )
        self._emit_best_effort(
            "scan.completed",
            request,
            scan_report_id=report.report_id,
            frame_score=report.frame_score,
            overall_frame=report.score.overall_frame.value,
            cost=cost,
        )
        return report

    def _run_admitted(self, request: ScanRequest) -> tuple[ScanReport, int]:
        """Run a scan that holds a throttle slot. Returns the report and its cost."""
        try:
            if request.modality == Modality.TEXT:
                check_text_content(request.content)
            else:
                check_image_context(request.image_ref, request.context_label)
        except ContentRejected as exc:
            self._transition(None, ScanState.REJECTED)
            logger.warning("Scan rejected before analysis: %s", exc.reason)
            self._emit_best_effort("scan.rejected", request, reason=exc.reason, stage="precheck")
            raise

        self._transition(None, ScanState.CREDIT_CHECK)
        cost = self.cost_for(request)
        report_id = self._store.next_report_id()
        if cost > 0:
            if not self._ledger.has_credits_for(request.tier) or not self._ledger.reserve_and_use(
                request.tier, scan_report_id=report_id
            ):
                available = self._ledger.get_available_credits()
                self._transition(report_id, ScanState.INSUFFICIENT_CREDITS)
                self._emit_best_effort(
                    "scan.insufficient_credits", request, required=cost, available=available
                )
                raise InsufficientCredits(request.tier, cost, available)
        self._transition(report_id, ScanState.RESERVED)

        provider_request = ProviderRequest(
            domain=request.domain,
            modality=request.modality,
            tier=request.tier,
            content=request.content,
            image_ref=request.image_ref,
            context_label=request.context_label,
        )
        try:
            self._transition(report_id, ScanState.INVOKING_PROVIDER)
            raw = self._provider.analyze(provider_request)

            self._transition(report_id, ScanState.NORMALIZING)
            result = normalize_provider_result(raw, provider_request)

            self._transition(report_id, ScanState.SCORING)
            pack = get_domain_pack(request.domain)
            score = compute_frame_score(result.axes, pack)

            self._transition(report_id, ScanState.PERSISTING)
            title = request.title or result.title or f"{pack.label} scan"
            report = self._store.save_report(
                ScanReportDraft(
                    report_id=report_id,
                    title=title,
                    domain=request.domain,
                    domain_inferred=request.domain_inferred,
                    modality=request.modality,
                    tier=request.tier,
                    subject_contact_ids=request.subject_contact_ids,
                    score=score,
                    raw_result=result,
                    source_ref=request.source_ref,
                )
            )
        except ProviderRejection as exc:
            self._transition(report_id, ScanState.REJECTED)
            self._refund(request, report_id, cost)
            logger.warning("Provider rejected scan %s: %s", report_id, exc.reason)
            self._emit_best_effort(
                "scan.rejected",
                request,
                reason=exc.reason,
                stage="provider",
                scan_report_id=report_id,
                refunded=cost > 0,
            )
            raise ContentRejected(exc.reason) from exc
        except Exception as exc:
            self._transition(report_id, ScanState.PROVIDER_FAILURE)
            refund_tx_id = self._refund(request, report_id, cost)
            if isinstance(exc, InvalidAxisScore):
                reason = f"Invalid axis scores: {exc}"
            else:
                reason = f"{type(exc).__name__}: {exc}"
            logger.error("Scan %s failed: %s", report_id, reason, exc_info=True)
            self._emit_best_effort(
                "scan.failed",
                request,
                reason=reason,
                scan_report_id=report_id,
                refunded=refund_tx_id is not None,
            )
            raise ProviderFailure(
                reason,
                refunded=refund_tx_id is not None,
                refund_transaction_id=refund_tx_id,
            ) from exc

        return report, cost

    def _refund(self, request: ScanRequest, report_id: str, cost: int) -> str | None:
        """Refund a reservation, if one was made. Returns the refund transaction id."""
        if cost <= 0:
            return None
        tx = self._ledger.refund(cost, REFUND_REASON, scan_report_id=report_id)
        self._emit_best_effort(
            "credits.refunded",
            request,
            scan_report_id=report_id,
            amount=cost,
            transaction_id=tx.transaction_id,
        )
        return tx.transaction_id
