"""SQLAlchemy models for the lease workflow tables."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    Float,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    TIMESTAMP,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lease_agent.database.base import Base


class LeaseRequestRecord(Base):
    """Lease request header row."""

    __tablename__ = "lease_requests"

    id: Mapped[str] = mapped_column(String(16), primary_key=True)
    property_id: Mapped[str] = mapped_column(String, nullable=False)
    property_address: Mapped[str] = mapped_column(Text, nullable=False)
    tenant_name: Mapped[str] = mapped_column(String, nullable=False, index=True)
    tenant_abn: Mapped[str | None] = mapped_column(String(14), nullable=True)
    tenant_acn: Mapped[str | None] = mapped_column(String(11), nullable=True)
    requestor_email: Mapped[str | None] = mapped_column(String, nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String, nullable=True)
    special_conditions: Mapped[str | None] = mapped_column(Text, nullable=True)
    lease_term: Mapped[int] = mapped_column(Integer, nullable=False)  # months
    commencement_date: Mapped[date] = mapped_column(Date, nullable=False)
    rent_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    security_deposit: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=0)
    status: Mapped[str] = mapped_column(String, nullable=False, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    # Relationships
    documents: Mapped[list["LeaseDocumentRecord"]] = relationship(
        "LeaseDocumentRecord",
        back_populates="lease_request",
        order_by="LeaseDocumentRecord.position",
    )
    workflow_steps: Mapped[list["WorkflowStepRecord"]] = relationship(
        "WorkflowStepRecord",
        back_populates="lease_request",
        order_by="WorkflowStepRecord.step_number",
    )
    audit_entries: Mapped[list["AuditEntryRecord"]] = relationship(
        "AuditEntryRecord",
        back_populates="lease_request",
        order_by="AuditEntryRecord.sequence",
    )


class LeaseDocumentRecord(Base):
    """Document attached to a lease request."""

    __tablename__ = "lease_documents"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    lease_request_id: Mapped[str] = mapped_column(
        String(16), ForeignKey("lease_requests.id"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String, nullable=False)
    document_type: Mapped[str] = mapped_column(
        String, nullable=False
    )  # solicitor_instructions | asic_extract | lease_agreement | property_plan | other
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    mime_type: Mapped[str | None] = mapped_column(String, nullable=True)
    extracted_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    confidence_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    lease_request: Mapped["LeaseRequestRecord"] = relationship(
        "LeaseRequestRecord", back_populates="documents"
    )


class WorkflowStepRecord(Base):
    """Progress of one catalog step for one lease request."""

    __tablename__ = "workflow_steps"
    __table_args__ = (
        UniqueConstraint("lease_request_id", "step_number", name="uq_workflow_steps_request_step"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    lease_request_id: Mapped[str] = mapped_column(
        String(16), ForeignKey("lease_requests.id"), nullable=False, index=True
    )
    step_number: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(
        String, nullable=False, default="pending"
    )  # pending | processing | review_required | completed | failed
    started_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    assigned_to: Mapped[str | None] = mapped_column(String, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    confidence_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    requires_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    corrected_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    lease_request: Mapped["LeaseRequestRecord"] = relationship(
        "LeaseRequestRecord", back_populates="workflow_steps"
    )


class AuditEntryRecord(Base):
    """Append-only audit trail row. Never updated or deleted."""

    __tablename__ = "audit_entries"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    lease_request_id: Mapped[str] = mapped_column(
        String(16), ForeignKey("lease_requests.id"), nullable=False, index=True
    )
    timestamp: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False)
    performed_by: Mapped[str] = mapped_column(String, nullable=False)
    details: Mapped[str] = mapped_column(Text, nullable=False, default="")
    step_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    confidence_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    sla_breached: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    lease_request: Mapped["LeaseRequestRecord"] = relationship(
        "LeaseRequestRecord", back_populates="audit_entries"
    )
