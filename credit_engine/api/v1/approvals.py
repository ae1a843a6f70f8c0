"""Approval workflow endpoints - submit, decide, escalate, inspect"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query

from credit_engine.api.v1.schemas import (
    ActorRoleRequest,
    ApprovalDecisionRequest,
    ApprovalSchema,
    ApprovalSubmitRequest,
    ApprovalSubmitResponse,
    EscalationResponse,
    PurchaseOrderReceiptRequest,
)
from credit_engine.api.dependencies import get_orchestrator
from credit_engine.domain.states import ApprovalModule
from credit_engine.services.orchestrator import TransactionOrchestrator

router = APIRouter()


@router.post("/approvals", response_model=ApprovalSubmitResponse)
def submit_for_approval(
    body: ApprovalSubmitRequest,
    orchestrator: TransactionOrchestrator = Depends(get_orchestrator),
):
    """Route an expense, purchase order or sales order to the band's approver role"""
    request = orchestrator.submit_for_approval(
        body.module, body.subject_id, body.amount_cents, body.submitted_by
    )
    if request is None:
        return ApprovalSubmitResponse(approval_required=False)
    return ApprovalSubmitResponse(approval_required=True, approval=ApprovalSchema.model_validate(request))


@router.get("/approvals", response_model=List[ApprovalSchema])
def list_open_approvals(
    module: Optional[ApprovalModule] = Query(None, description="Filter by module"),
    orchestrator: TransactionOrchestrator = Depends(get_orchestrator),
):
    return [ApprovalSchema.model_validate(r) for r in orchestrator.list_open_approvals(module)]


@router.get("/approvals/{request_id}", response_model=ApprovalSchema)
def get_approval(request_id: int, orchestrator: TransactionOrchestrator = Depends(get_orchestrator)):
    return ApprovalSchema.model_validate(orchestrator.get_approval(request_id))


@router.post("/approvals/{request_id}/decision", response_model=ApprovalSchema)
def decide_approval(
    request_id: int,
    body: ApprovalDecisionRequest,
    orchestrator: TransactionOrchestrator = Depends(get_orchestrator),
):
    """
    Approve or reject a request.

    Returns 403 for self-approval, missing authority or a role separation
    conflict, and 409 when the request is already closed or changed
    concurrently.
    """
    decided = orchestrator.decide_approval(request_id, body.decided_by, body.outcome, body.reason)
    return ApprovalSchema.model_validate(decided)


@router.post("/approvals/escalations", response_model=EscalationResponse)
def escalate_stale_approvals(orchestrator: TransactionOrchestrator = Depends(get_orchestrator)):
    """Sweep invoked by an external scheduler"""
    escalated = orchestrator.escalate_stale_approvals()
    return EscalationResponse(escalated=[ApprovalSchema.model_validate(r) for r in escalated])


@router.post("/purchase-orders/{po_id}/receipt", status_code=204)
def record_po_receipt(
    po_id: str,
    body: PurchaseOrderReceiptRequest,
    orchestrator: TransactionOrchestrator = Depends(get_orchestrator),
):
    orchestrator.record_po_receipt(po_id, body.received_by)


@router.put("/actors/{user_id}/role", status_code=204)
def assign_role(
    user_id: str,
    body: ActorRoleRequest,
    orchestrator: TransactionOrchestrator = Depends(get_orchestrator),
):
    """Approver authority is checked against this role and the configured role hierarchy"""
    orchestrator.assign_role(user_id, body.role)
