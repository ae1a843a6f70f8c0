"""Approval workflow engine - amount bands, decisions, escalation, role separation"""

from dataclasses import replace
from datetime import datetime, timedelta
from typing import AbstractSet, List, Mapping, Optional, Tuple
from credit_engine.domain.models import ApprovalBand, ApprovalRequest
from credit_engine.domain.policy import ApprovalPolicy
from credit_engine.domain.states import (
    ApprovalModule,
    ApprovalStatus,
    DecisionOutcome,
    Duty,
    ensure_approval_transition,
)
from credit_engine.domain.exceptions import (
    BandConfigurationGapError,
    IllegalTransitionError,
    InsufficientApprovalAuthorityError,
    InvalidAmountError,
    RoleSeparationViolationError,
    SecondApproverNotIndependentError,
    SelfApprovalForbiddenError,
)
from credit_engine.utils.date_utils import as_utc, utc_now

# user_id -> duties already held on one subject
DutyHistory = Mapping[str, AbstractSet[Duty]]

SUBMISSION_DUTIES = {
    ApprovalModule.SALES_ORDER: Duty.BOOKING,
    ApprovalModule.EXPENSE: Duty.BOOKING,
    ApprovalModule.PURCHASE_ORDER: Duty.PO_ORDERING,
}


class ApprovalWorkflowEngine:
    """
    State machine for approval requests.

    Holds one immutable policy snapshot and never touches storage: every
    operation returns a new ``ApprovalRequest`` for the caller to persist.
    """

    def __init__(self, policy: ApprovalPolicy):
        self.policy = policy

    def bands_for(self, module: ApprovalModule) -> Tuple[ApprovalBand, ...]:
        bands = self.policy.bands.get(module)
        if not bands:
            raise BandConfigurationGapError(module.value, "no bands configured")
        return bands

    def _band_index(self, module: ApprovalModule, amount_cents: int) -> int:
        for index, band in enumerate(self.bands_for(module)):
            if band.contains(amount_cents):
                return index
        raise BandConfigurationGapError(module.value, f"amount {amount_cents} matches no band")

    def resolve_band(self, module: ApprovalModule, amount_cents: int) -> ApprovalBand:
        """Linear scan of the module's ordered bands; max=None matches anything >= min"""
        return self.bands_for(module)[self._band_index(module, amount_cents)]

    def required_role(self, module: ApprovalModule, amount_cents: int) -> str:
        return self.resolve_band(module, amount_cents).role

    def requires_approval(self, module: ApprovalModule, amount_cents: int, on_credit: bool = False) -> bool:
        """
        False only when the module toggle is off, the amount is under the
        module's no-approval threshold, or the matching band is auto-approve.

        The threshold exemption covers cash-settled submissions only; a sale
        on credit below the threshold is still routed.
        """
        if not self.policy.require_approval.get(module, True):
            return False

        threshold = self.policy.thresholds_cents.get(module, 0)
        if threshold and amount_cents < threshold and not on_credit:
            return False

        return not self.resolve_band(module, amount_cents).auto_approve

    def _separation_rules(self) -> List[Tuple[str, Duty, Duty]]:
        rules = []
        if self.policy.booking_cannot_cashier:
            rules.append(("booking_cannot_cashier", Duty.BOOKING, Duty.CASHIER))
        if self.policy.cashier_cannot_accountant:
            rules.append(("cashier_cannot_accountant", Duty.CASHIER, Duty.ACCOUNTING))
        if self.policy.same_user_cannot_receive_po:
            rules.append(("same_user_cannot_receive_po", Duty.PO_ORDERING, Duty.PO_RECEIVING))
        return rules

    def check_role_separation(
        self,
        user_id: str,
        duty: Duty,
        subject_id: str,
        duties: Optional[DutyHistory] = None,
    ) -> None:
        """Fail closed if ``user_id`` already holds a duty that conflicts with ``duty``"""
        held = (duties or {}).get(user_id, frozenset())
        for rule, first, second in self._separation_rules():
            if (duty == first and second in held) or (duty == second and first in held):
                raise RoleSeparationViolationError(rule, user_id, subject_id)

    def _check_authority(self, request: ApprovalRequest, decider_role: Optional[str]) -> None:
        hierarchy = self.policy.role_hierarchy
        if decider_role == request.required_role:
            return
        if (
            decider_role in hierarchy
            and request.required_role in hierarchy
            and hierarchy.index(decider_role) >= hierarchy.index(request.required_role)
        ):
            return
        raise InsufficientApprovalAuthorityError(
            f"Role {decider_role!r} cannot decide request requiring {request.required_role!r}"
        )

    def submit(
        self,
        module: ApprovalModule,
        subject_id: str,
        amount_cents: int,
        submitted_by: str,
        duties: Optional[DutyHistory] = None,
        now: datetime | None = None,
    ) -> ApprovalRequest:
        """Create a pending request at the role of the band containing the amount"""
        if amount_cents <= 0:
            raise InvalidAmountError(f"Approval amount must be positive, got {amount_cents}")

        self.check_role_separation(submitted_by, SUBMISSION_DUTIES[module], subject_id, duties)
        now = now or utc_now()

        return ApprovalRequest(
            id=None,
            module=module,
            subject_id=subject_id,
            amount_cents=amount_cents,
            required_role=self.required_role(module, amount_cents),
            submitted_by=submitted_by,
            submitted_at=now,
            pending_since=now,
            status=ApprovalStatus.PENDING,
            escalation_level=0,
        )

    def requires_dual_approval(self, request: ApprovalRequest) -> bool:
        threshold = self.policy.require_dual_approval_above_cents
        return bool(threshold) and request.amount_cents >= threshold

    def decide(
        self,
        request: ApprovalRequest,
        decided_by: str,
        outcome: DecisionOutcome,
        decider_role: Optional[str] = None,
        reason: Optional[str] = None,
        duties: Optional[DutyHistory] = None,
        now: datetime | None = None,
    ) -> ApprovalRequest:
        """
        Apply an approve/reject decision.

        Approvals at or above the dual-approval threshold stop in
        AWAITING_SECOND_APPROVAL until a second, independent approver
        (neither the first approver nor the submitter) signs off.
        """
        if not request.is_open:
            raise IllegalTransitionError("approval request", request.status.value, outcome.value)

        if self.policy.creator_cannot_approve and decided_by == request.submitted_by:
            raise SelfApprovalForbiddenError(
                f"{decided_by} submitted approval request {request.id} and cannot decide it"
            )

        self._check_authority(request, decider_role)
        self.check_role_separation(decided_by, Duty.ACCOUNTING, request.subject_id, duties)
        now = now or utc_now()

        if outcome == DecisionOutcome.REJECT:
            return replace(
                request,
                status=ensure_approval_transition(request.status, ApprovalStatus.REJECTED),
                decided_by=decided_by,
                decided_at=now,
                decision_reason=reason,
            )

        if request.status == ApprovalStatus.AWAITING_SECOND_APPROVAL:
            if decided_by in (request.first_approved_by, request.submitted_by):
                raise SecondApproverNotIndependentError(
                    f"Second approval of request {request.id} must come from another approver"
                )
            target = ApprovalStatus.APPROVED
        elif self.requires_dual_approval(request):
            return replace(
                request,
                status=ensure_approval_transition(request.status, ApprovalStatus.AWAITING_SECOND_APPROVAL),
                first_approved_by=decided_by,
                decision_reason=reason,
            )
        else:
            target = ApprovalStatus.APPROVED

        return replace(
            request,
            status=ensure_approval_transition(request.status, target),
            decided_by=decided_by,
            decided_at=now,
            decision_reason=reason,
        )

    def is_stale(self, request: ApprovalRequest, now: datetime | None = None) -> bool:
        now = now or utc_now()
        cutoff = timedelta(hours=self.policy.auto_escalate_after_hours)
        return as_utc(now) - as_utc(request.pending_since) > cutoff

    def can_escalate(self, request: ApprovalRequest, now: datetime | None = None) -> bool:
        return (
            request.status in (ApprovalStatus.PENDING, ApprovalStatus.ESCALATED)
            and request.escalation_level < self.policy.max_approval_levels
            and self.is_stale(request, now)
        )

    def escalate(self, request: ApprovalRequest, now: datetime | None = None) -> ApprovalRequest:
        """
        Raise a stale pending request to the next band's role and restart its clock.

        The role index is capped at the top band; the level at max_approval_levels.
        """
        now = now or utc_now()
        if not self.can_escalate(request, now):
            raise IllegalTransitionError("approval request", request.status.value, ApprovalStatus.ESCALATED.value)

        bands = self.bands_for(request.module)
        level = request.escalation_level + 1
        base_index = self._band_index(request.module, request.amount_cents)
        role = bands[min(base_index + level, len(bands) - 1)].role

        return replace(
            request,
            status=ensure_approval_transition(request.status, ApprovalStatus.ESCALATED),
            escalation_level=level,
            required_role=role,
            pending_since=now,
        )
