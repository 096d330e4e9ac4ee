"""Job (service record) and photo models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_recon.models.base import Base, JSONType, TimestampMixin


class Job(Base, TimestampMixin):
    """Scheduled service visit."""

    __tablename__ = "job"

    job_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    # Employee ids as strings, in assignment order
    assigned_employees: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    # Legacy display status: "Scheduled", "In Progress", "Pending Approval", "Completed", ...
    status: Mapped[str | None] = mapped_column(String, nullable=True)
    service_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    location_id: Mapped[UUID | None] = mapped_column(nullable=True)
    location_name: Mapped[str | None] = mapped_column(String, nullable=True)
    client_profile_id: Mapped[UUID | None] = mapped_column(nullable=True)

    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payroll_processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    photos: Mapped[list[Photo]] = relationship(back_populates="job")

    @property
    def assigned_employee_ids(self) -> list[UUID]:
        return [UUID(str(e)) for e in (self.assigned_employees or []) if e]


class Photo(Base, TimestampMixin):
    """Photo attached to a job, optionally visible to the client."""

    __tablename__ = "job_photo"

    photo_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    job_id: Mapped[UUID] = mapped_column(
        ForeignKey("job.job_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    is_client_visible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    job: Mapped[Job] = relationship(back_populates="photos")
