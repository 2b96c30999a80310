"""
models.py — All database table definitions for the NCH onboarding backend.

payment_status is deliberately absent from Client: it is always derived
from the Payment rows (see services.payments.reconcile).
"""

from datetime import datetime, timezone
from database import db
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, JSON,
    ForeignKey, Numeric, Enum as PgEnum, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
import uuid
import enum


# ─────────────────────────────────────────────
# Enums
# ─────────────────────────────────────────────

class AdminRole(enum.Enum):
    admin = "admin"
    super_admin = "super_admin"


class Offer(enum.Enum):
    basic = "basic"
    premium = "premium"
    gold = "gold"


class ClientStatus(enum.Enum):
    pending = "pending"
    processing = "processing"
    approved = "approved"
    rejected = "rejected"
    completed = "completed"


class PaymentType(enum.Enum):
    initial = "initial"
    second = "second"


class PaymentMethod(enum.Enum):
    cib = "cib"
    baridimob = "baridimob"
    manual = "manual"
    pending = "pending"
    refund = "refund"


class PaymentState(enum.Enum):
    pending = "pending"
    paid = "paid"
    verified = "verified"
    rejected = "rejected"
    completed = "completed"
    failed = "failed"


class StageStatus(enum.Enum):
    not_started = "not_started"
    in_progress = "in_progress"
    pending_review = "pending_review"
    completed = "completed"


class RegistrationStatus(enum.Enum):
    pending_verification = "pending_verification"
    approved = "approved"
    rejected = "rejected"
    expired = "expired"


# ─────────────────────────────────────────────
# Helper
# ─────────────────────────────────────────────

def utcnow():
    return datetime.now(timezone.utc)


def new_uuid():
    return str(uuid.uuid4())


# ─────────────────────────────────────────────
# 1. Admins
# ─────────────────────────────────────────────

class Admin(db.Model):
    __tablename__ = "admins"

    admin_id = Column(String(36), primary_key=True, default=new_uuid)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(PgEnum(AdminRole, name="admin_role_enum"), nullable=False, default=AdminRole.admin)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    audit_logs = relationship("AuditLog", back_populates="performed_by_admin")

    def __repr__(self):
        return f"<Admin {self.email} ({self.role.value})>"


# ─────────────────────────────────────────────
# 2. Clients
# ─────────────────────────────────────────────

class Client(db.Model):
    __tablename__ = "clients"

    client_id = Column(String(36), primary_key=True, default=new_uuid)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    phone = Column(String(30), nullable=True)
    wilaya = Column(String(100), nullable=True)
    diploma = Column(String(255), nullable=True)
    selected_offer = Column(PgEnum(Offer, name="offer_enum"), nullable=False, default=Offer.basic)
    selected_countries = Column(JSON, nullable=False, default=list)     # no cardinality limit
    status = Column(
        PgEnum(ClientStatus, name="client_status_enum"),
        nullable=False,
        default=ClientStatus.pending
    )
    documents = Column(JSON, nullable=False, default=dict)              # type -> {url, fileId, name, size, type}
    password_hash = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    payments = relationship(
        "Payment", back_populates="client", cascade="all, delete-orphan",
        order_by="Payment.created_at"
    )
    stages = relationship(
        "Stage", back_populates="client", cascade="all, delete-orphan",
        order_by="Stage.stage_number"
    )

    __table_args__ = (
        Index("ix_clients_email", "email"),
        Index("ix_clients_status", "status"),
    )

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self):
        return f"<Client {self.email} — {self.full_name}>"


# ─────────────────────────────────────────────
# 3. Payments (the ledger)
# ─────────────────────────────────────────────

class Payment(db.Model):
    __tablename__ = "payments"

    payment_id = Column(String(36), primary_key=True, default=new_uuid)
    client_id = Column(String(36), ForeignKey("clients.client_id", ondelete="CASCADE"), nullable=False)
    payment_type = Column(PgEnum(PaymentType, name="payment_type_enum"), nullable=False)
    payment_method = Column(PgEnum(PaymentMethod, name="payment_method_enum"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)                     # negative for refunds
    status = Column(
        PgEnum(PaymentState, name="payment_state_enum"),
        nullable=False,
        default=PaymentState.pending
    )
    receipt_url = Column(String(1024), nullable=True)
    verified_by = Column(String(36), ForeignKey("admins.admin_id", ondelete="SET NULL"), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    client = relationship("Client", back_populates="payments")

    __table_args__ = (
        Index("ix_payments_client_id", "client_id"),
        Index("ix_payments_status", "status"),
    )

    def __repr__(self):
        return f"<Payment {self.payment_type.value} {self.amount} ({self.status.value})>"


# ─────────────────────────────────────────────
# 4. Stages (fixed 6-step checklist)
# ─────────────────────────────────────────────

class Stage(db.Model):
    __tablename__ = "client_stages"

    stage_id = Column(String(36), primary_key=True, default=new_uuid)
    client_id = Column(String(36), ForeignKey("clients.client_id", ondelete="CASCADE"), nullable=False)
    stage_number = Column(Integer, nullable=False)                      # 1..6
    stage_name = Column(String(255), nullable=False)
    status = Column(
        PgEnum(StageStatus, name="stage_status_enum"),
        nullable=False,
        default=StageStatus.not_started
    )
    required_documents = Column(JSON, nullable=False, default=list)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    client = relationship("Client", back_populates="stages")

    __table_args__ = (
        UniqueConstraint("client_id", "stage_number", name="uq_client_stage_number"),
        Index("ix_client_stages_client_id", "client_id"),
    )

    def __repr__(self):
        return f"<Stage {self.stage_number} ({self.status.value}) for client {self.client_id}>"


# ─────────────────────────────────────────────
# 5. Pending registrations (awaiting receipt check)
# ─────────────────────────────────────────────

class PendingRegistration(db.Model):
    __tablename__ = "pending_registrations"

    registration_id = Column(String(36), primary_key=True, default=new_uuid)
    session_token = Column(String(128), unique=True, nullable=False)
    registration_data = Column(JSON, nullable=False)                    # applicant fields + hashed password
    payment_details = Column(JSON, nullable=True)                       # payer info, amount, receipt
    status = Column(
        PgEnum(RegistrationStatus, name="registration_status_enum"),
        nullable=False,
        default=RegistrationStatus.pending_verification
    )
    rejection_reason = Column(Text, nullable=True)
    reviewed_by = Column(String(36), ForeignKey("admins.admin_id", ondelete="SET NULL"), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_pending_registrations_status", "status"),
    )

    def __repr__(self):
        return f"<PendingRegistration {self.registration_id} ({self.status.value})>"


# ─────────────────────────────────────────────
# 6. Audit Log
# ─────────────────────────────────────────────

class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    log_id = Column(String(36), primary_key=True, default=new_uuid)
    action = Column(Text, nullable=False)
    performed_by = Column(String(36), ForeignKey("admins.admin_id", ondelete="SET NULL"), nullable=True)
    record_type = Column(String(100), nullable=True)            # e.g. "client", "payment"
    record_id = Column(String(36), nullable=True)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    details = Column("metadata", JSON, nullable=True)           # extra structured detail

    performed_by_admin = relationship("Admin", back_populates="audit_logs")

    __table_args__ = (
        Index("ix_audit_logs_timestamp", "timestamp"),
        Index("ix_audit_logs_record_id", "record_id"),
    )

    def __repr__(self):
        return f"<AuditLog {self.action} at {self.timestamp}>"
