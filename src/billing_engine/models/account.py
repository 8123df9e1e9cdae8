"""Company, user and client models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from billing_engine.models.base import Base, TimestampMixin


class Company(Base, TimestampMixin):
    """Tenant company.

    ``owner_id`` points at the user whose plan governs every member of the
    company. It is a plain column to keep the user/company cycle out of DDL.
    """

    __tablename__ = "company"

    company_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    owner_id: Mapped[UUID | None] = mapped_column(nullable=True, index=True)

    # Relationships
    users: Mapped[list[User]] = relationship(back_populates="company")
    clients: Mapped[list[Client]] = relationship(back_populates="company")


class User(Base, TimestampMixin):
    """Application user with plan and trial state."""

    __tablename__ = "app_user"

    user_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    role: Mapped[str] = mapped_column(String, nullable=False, default="USER")
    company_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("company.company_id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    plan_tier: Mapped[str] = mapped_column(String, nullable=False, default="FREE")
    pro_trial_ends_at: Mapped[datetime | None] = mapped_column(nullable=True)
    pro_trial_reminder_sent: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    # Set once when a trial is granted and never cleared; one trial per user
    pro_trial_granted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    stripe_subscription_id: Mapped[str | None] = mapped_column(String, nullable=True)
    subscription_cancel_at: Mapped[datetime | None] = mapped_column(nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("role IN ('USER', 'ADMIN', 'OWNER')", name="user_role_check"),
        CheckConstraint(
            "plan_tier IN ('FREE', 'PRO', 'PRO_TRIAL')", name="user_plan_tier_check"
        ),
    )
    __mapper_args__ = {"version_id_col": version}

    # Relationships
    company: Mapped[Company | None] = relationship(back_populates="users")


class Client(Base, TimestampMixin):
    """A customer record owned by a company."""

    __tablename__ = "client"

    client_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(
        ForeignKey("company.company_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Relationships
    company: Mapped[Company] = relationship(back_populates="clients")
