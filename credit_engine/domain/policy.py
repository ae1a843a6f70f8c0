"""Immutable business configuration snapshots.

Each orchestrator operation works against one ``EngineConfig`` built from the
settings store, so a reload between two operations can never be observed
half-way through one of them.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Tuple
from credit_engine.domain.exceptions import BandConfigurationGapError
from credit_engine.domain.models import ApprovalBand
from credit_engine.domain.states import ApprovalModule

# Band amounts are in cents (original workflow amounts x 100)
DEFAULT_WORKFLOW: Dict[str, list] = {
    ApprovalModule.SALES_ORDER.value: [
        {"min": 0, "max": 10_000_000, "role": "Manager"},
        {"min": 10_000_001, "max": 50_000_000, "role": "Finance"},
        {"min": 50_000_001, "max": None, "role": "Admin"},
    ],
    ApprovalModule.PURCHASE_ORDER.value: [
        {"min": 0, "max": 10_000_000, "role": "Manager"},
        {"min": 10_000_001, "max": 50_000_000, "role": "Finance"},
        {"min": 50_000_001, "max": None, "role": "Admin"},
    ],
    ApprovalModule.EXPENSE.value: [
        {"min": 0, "max": 5_000_000, "role": "Manager"},
        {"min": 5_000_001, "max": 20_000_000, "role": "Finance"},
        {"min": 20_000_001, "max": None, "role": "Admin"},
    ],
}

APPROVAL_DEFAULTS: Dict[str, Any] = {
    "sales_order_require_approval": True,
    "sales_order_threshold": 0,
    "purchase_order_require_approval": True,
    "purchase_order_threshold": 0,
    "expense_require_approval": True,
    "expense_threshold": 0,
    "require_dual_approval_above": 200_000_000,
    "auto_escalate_after_hours": 24,
    "max_approval_levels": 2,
    "creator_cannot_approve": True,
    "booking_cannot_cashier": True,
    "cashier_cannot_accountant": True,
    "same_user_cannot_receive_po": True,
    "notify_on_pending_approval": True,
    "notify_on_approval_complete": True,
    "notify_on_rejection": True,
    "role_hierarchy": ["Manager", "Finance", "Admin"],
    "workflow": DEFAULT_WORKFLOW,
}

CREDIT_DEFAULTS: Dict[str, Any] = {
    "enable_credit_sales": True,
    "default_credit_limit": 50_000_000,
    "credit_period_days": 30,
    "auto_block_overdue": True,
    "overdue_block_days": 7,
    "credit_alert_threshold": 80,
    "hold_overpayment_as_credit": False,
}

SCORING_DEFAULTS: Dict[str, Any] = {
    "on_time_weight": "0.40",
    "utilization_weight": "0.20",
    "overdue_weight": "0.25",
    "account_age_weight": "0.15",
    "neutral_on_time_ratio": "0.5",
    "severity_horizon_days": 90,
    "account_age_saturation_days": 180,
    "excellent_score": 900,
    "excellent_on_time_ratio": "0.95",
    "very_good_score": 800,
    "fair_score": 600,
    "poor_score": 400,
}


def parse_bands(module: str, raw_bands: list) -> Tuple[ApprovalBand, ...]:
    """Build and validate an ordered band list for one module.

    Bands must start at 0, be contiguous (min of band n = max of band n-1 + 1)
    and end with an unbounded band.
    """
    if not raw_bands:
        raise BandConfigurationGapError(module, "no bands configured")

    bands = tuple(
        ApprovalBand(
            min_cents=int(b["min"]),
            max_cents=None if b.get("max") is None else int(b["max"]),
            role=str(b["role"]),
            auto_approve=bool(b.get("auto_approve", False)),
        )
        for b in raw_bands
    )

    if bands[0].min_cents != 0:
        raise BandConfigurationGapError(module, f"first band starts at {bands[0].min_cents}, not 0")

    for previous, current in zip(bands, bands[1:]):
        if previous.max_cents is None:
            raise BandConfigurationGapError(module, "unbounded band is not the last band")
        if current.min_cents != previous.max_cents + 1:
            raise BandConfigurationGapError(
                module, f"gap or overlap between {previous.max_cents} and {current.min_cents}"
            )

    for band in bands:
        if band.max_cents is not None and band.max_cents < band.min_cents:
            raise BandConfigurationGapError(module, f"band {band.min_cents}-{band.max_cents} is inverted")

    if bands[-1].max_cents is not None:
        raise BandConfigurationGapError(module, f"amounts above {bands[-1].max_cents} are not covered")

    return bands


@dataclass(frozen=True)
class ApprovalPolicy:
    bands: Mapping[ApprovalModule, Tuple[ApprovalBand, ...]]
    require_approval: Mapping[ApprovalModule, bool]
    thresholds_cents: Mapping[ApprovalModule, int]
    require_dual_approval_above_cents: int = 0
    auto_escalate_after_hours: int = 24
    max_approval_levels: int = 2
    creator_cannot_approve: bool = True
    booking_cannot_cashier: bool = True
    cashier_cannot_accountant: bool = True
    same_user_cannot_receive_po: bool = True
    notify_on_pending_approval: bool = True
    notify_on_approval_complete: bool = True
    notify_on_rejection: bool = True
    role_hierarchy: Tuple[str, ...] = ("Manager", "Finance", "Admin")

    @classmethod
    def from_settings(cls, values: Mapping[str, Any]) -> "ApprovalPolicy":
        merged = {**APPROVAL_DEFAULTS, **values}
        workflow = {**DEFAULT_WORKFLOW, **(merged.get("workflow") or {})}

        return cls(
            bands={m: parse_bands(m.value, workflow.get(m.value, [])) for m in ApprovalModule},
            require_approval={m: bool(merged[f"{m.value}_require_approval"]) for m in ApprovalModule},
            thresholds_cents={m: int(merged[f"{m.value}_threshold"] or 0) for m in ApprovalModule},
            require_dual_approval_above_cents=int(merged["require_dual_approval_above"] or 0),
            auto_escalate_after_hours=int(merged["auto_escalate_after_hours"]),
            max_approval_levels=int(merged["max_approval_levels"]),
            creator_cannot_approve=bool(merged["creator_cannot_approve"]),
            booking_cannot_cashier=bool(merged["booking_cannot_cashier"]),
            cashier_cannot_accountant=bool(merged["cashier_cannot_accountant"]),
            same_user_cannot_receive_po=bool(merged["same_user_cannot_receive_po"]),
            notify_on_pending_approval=bool(merged["notify_on_pending_approval"]),
            notify_on_approval_complete=bool(merged["notify_on_approval_complete"]),
            notify_on_rejection=bool(merged["notify_on_rejection"]),
            role_hierarchy=tuple(merged["role_hierarchy"]),
        )


@dataclass(frozen=True)
class CreditPolicy:
    enable_credit_sales: bool = True
    default_credit_limit_cents: int = 50_000_000
    credit_period_days: int = 30
    auto_block_overdue: bool = True
    overdue_block_days: int = 7
    credit_alert_threshold_pct: int = 80
    hold_overpayment_as_credit: bool = False

    @classmethod
    def from_settings(cls, values: Mapping[str, Any]) -> "CreditPolicy":
        merged = {**CREDIT_DEFAULTS, **values}
        return cls(
            enable_credit_sales=bool(merged["enable_credit_sales"]),
            default_credit_limit_cents=int(merged["default_credit_limit"]),
            credit_period_days=int(merged["credit_period_days"]),
            auto_block_overdue=bool(merged["auto_block_overdue"]),
            overdue_block_days=int(merged["overdue_block_days"]),
            credit_alert_threshold_pct=int(merged["credit_alert_threshold"]),
            hold_overpayment_as_credit=bool(merged["hold_overpayment_as_credit"]),
        )


@dataclass(frozen=True)
class ScoringPolicy:
    """Weights and tier thresholds for the credit scorer (score range 0-1000)"""

    on_time_weight: Decimal = Decimal("0.40")
    utilization_weight: Decimal = Decimal("0.20")
    overdue_weight: Decimal = Decimal("0.25")
    account_age_weight: Decimal = Decimal("0.15")
    neutral_on_time_ratio: Decimal = Decimal("0.5")
    severity_horizon_days: int = 90
    account_age_saturation_days: int = 180
    excellent_score: int = 900
    excellent_on_time_ratio: Decimal = Decimal("0.95")
    very_good_score: int = 800
    fair_score: int = 600
    poor_score: int = 400

    @classmethod
    def from_settings(cls, values: Mapping[str, Any]) -> "ScoringPolicy":
        merged = {**SCORING_DEFAULTS, **values}
        return cls(
            on_time_weight=Decimal(str(merged["on_time_weight"])),
            utilization_weight=Decimal(str(merged["utilization_weight"])),
            overdue_weight=Decimal(str(merged["overdue_weight"])),
            account_age_weight=Decimal(str(merged["account_age_weight"])),
            neutral_on_time_ratio=Decimal(str(merged["neutral_on_time_ratio"])),
            severity_horizon_days=int(merged["severity_horizon_days"]),
            account_age_saturation_days=int(merged["account_age_saturation_days"]),
            excellent_score=int(merged["excellent_score"]),
            excellent_on_time_ratio=Decimal(str(merged["excellent_on_time_ratio"])),
            very_good_score=int(merged["very_good_score"]),
            fair_score=int(merged["fair_score"]),
            poor_score=int(merged["poor_score"]),
        )


@dataclass(frozen=True)
class EngineConfig:
    approvals: ApprovalPolicy
    credit: CreditPolicy = field(default_factory=CreditPolicy)
    scoring: ScoringPolicy = field(default_factory=ScoringPolicy)

    @classmethod
    def from_groups(cls, groups: Optional[Mapping[str, Mapping[str, Any]]] = None) -> "EngineConfig":
        groups = groups or {}
        return cls(
            approvals=ApprovalPolicy.from_settings(groups.get("approvals", {})),
            credit=CreditPolicy.from_settings(groups.get("credit", {})),
            scoring=ScoringPolicy.from_settings(groups.get("scoring", {})),
        )
