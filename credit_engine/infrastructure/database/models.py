"""SQLAlchemy ORM models for credit accounts, receivables and approvals"""

from sqlalchemy import (
    Column,
    String,
    BigInteger,
    Boolean,
    Float,
    DateTime,
    Date,
    Integer,
    ForeignKey,
    Text,
    JSON,
    UniqueConstraint,
    CheckConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class CustomerRecord(Base):
    """Customer credit facility; version column guards concurrent balance updates"""

    __tablename__ = "customer"
    __table_args__ = (
        CheckConstraint("outstanding_balance_cents >= 0", name="outstanding_non_negative"),
    )

    id = Column(String(64), primary_key=True)
    name = Column(Text, nullable=False, default="")
    credit_limit_cents = Column(BigInteger, nullable=False, default=0)
    outstanding_balance_cents = Column(BigInteger, nullable=False, default=0)
    unapplied_credit_cents = Column(BigInteger, nullable=False, default=0)
    credit_blocked = Column(Boolean, nullable=False, default=False)
    payment_terms_days = Column(Integer, nullable=False, default=30)
    credit_since = Column(Date, nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    transactions = relationship("CreditTransactionRecord", back_populates="customer")

    __mapper_args__ = {"version_id_col": version}


class CreditTransactionRecord(Base):
    """Receivable created by a credit sale"""

    __tablename__ = "credit_transaction"
    __table_args__ = (
        CheckConstraint("balance_cents >= 0", name="balance_non_negative"),
        CheckConstraint("balance_cents <= original_amount_cents", name="balance_within_original"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    customer_id = Column(String(64), ForeignKey("customer.id"), nullable=False, index=True)
    origin_ref = Column(Text, nullable=False, index=True)
    original_amount_cents = Column(BigInteger, nullable=False)
    balance_cents = Column(BigInteger, nullable=False)
    transaction_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    paid_date = Column(Date, nullable=True)
    status = Column(Text, nullable=False, default="open", index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    customer = relationship("CustomerRecord", back_populates="transactions")
    payments = relationship("CreditPaymentRecord", back_populates="transaction")


class CreditPaymentRecord(Base):
    """Payment leg against one receivable (write-once)"""

    __tablename__ = "credit_payment"

    id = Column(Integer, primary_key=True, autoincrement=True)
    credit_transaction_id = Column(Integer, ForeignKey("credit_transaction.id"), nullable=False, index=True)
    customer_id = Column(String(64), ForeignKey("customer.id"), nullable=False, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    payment_date = Column(Date, nullable=False)
    method = Column(Text, nullable=False, default="cash")
    reference = Column(Text, nullable=True)
    is_on_time = Column(Boolean, nullable=False, default=True)
    days_late = Column(Integer, nullable=False, default=0)
    received_by = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    transaction = relationship("CreditTransactionRecord", back_populates="payments")


class CreditScoreRecord(Base):
    """Latest score snapshot per customer"""

    __tablename__ = "credit_score"

    customer_id = Column(String(64), ForeignKey("customer.id"), primary_key=True)
    score = Column(Integer, nullable=False)
    risk_level = Column(Text, nullable=False)
    recommended_limit_cents = Column(BigInteger, nullable=False)
    recommended_terms_days = Column(Integer, nullable=False)
    on_time_ratio = Column(Float, nullable=False, default=0.0)
    utilization = Column(Float, nullable=False, default=0.0)
    overdue_severity = Column(Float, nullable=False, default=0.0)
    account_age_factor = Column(Float, nullable=False, default=0.0)
    factors = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    computed_at = Column(DateTime(timezone=True), nullable=False)


class ApprovalRequestRecord(Base):
    """Approval workflow item; version column serialises concurrent decisions"""

    __tablename__ = "approval_request"

    id = Column(Integer, primary_key=True, autoincrement=True)
    module = Column(Text, nullable=False, index=True)
    subject_id = Column(Text, nullable=False, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    status = Column(Text, nullable=False, default="pending", index=True)
    required_role = Column(Text, nullable=False)
    submitted_by = Column(Text, nullable=False)
    submitted_at = Column(DateTime(timezone=True), nullable=False)
    pending_since = Column(DateTime(timezone=True), nullable=False)
    escalation_level = Column(Integer, nullable=False, default=0)
    first_approved_by = Column(Text, nullable=True)
    decided_by = Column(Text, nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)
    decision_reason = Column(Text, nullable=True)
    # Provisional receivable a sales-order request gates
    credit_transaction_id = Column(Integer, ForeignKey("credit_transaction.id"), nullable=True, unique=True)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class SubjectDutyRecord(Base):
    """Who did what on a subject, consumed by role separation checks"""

    __tablename__ = "subject_duty"
    __table_args__ = (UniqueConstraint("module", "subject_id", "user_id", "duty", name="uq_subject_duty"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    module = Column(Text, nullable=False)
    subject_id = Column(Text, nullable=False, index=True)
    user_id = Column(Text, nullable=False)
    duty = Column(Text, nullable=False)
    recorded_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class ActorRecord(Base):
    """Actor directory: user to role"""

    __tablename__ = "actor"

    user_id = Column(String(64), primary_key=True)
    role = Column(Text, nullable=False)


class SettingRecord(Base):
    """Hot-reloadable business settings, one JSON value per (group, key)"""

    __tablename__ = "setting"
    __table_args__ = (UniqueConstraint("group", "key", name="uq_setting_group_key"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    group = Column(Text, nullable=False, index=True)
    key = Column(Text, nullable=False)
    value = Column(JSON, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
