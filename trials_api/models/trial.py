"""SQLAlchemy models for trials and the entities they reference."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from sqlalchemy import Column, Date, DateTime, ForeignKey, String, Table, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trials_api.database import Base
from trials_api.models.location import Location


trials_interventions = Table(
    "trials_interventions",
    Base.metadata,
    Column("trial_id", String(36), ForeignKey("trials.id", ondelete="CASCADE"), primary_key=True),
    Column("intervention_id", String(36), ForeignKey("interventions.id", ondelete="CASCADE"), primary_key=True),
)

trials_problems = Table(
    "trials_problems",
    Base.metadata,
    Column("trial_id", String(36), ForeignKey("trials.id", ondelete="CASCADE"), primary_key=True),
    Column("problem_id", String(36), ForeignKey("problems.id", ondelete="CASCADE"), primary_key=True),
)


class Intervention(Base):
    """Drug, device or procedure under study."""

    __tablename__ = "interventions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)


class Problem(Base):
    """Condition or disease a trial targets."""

    __tablename__ = "problems"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Person(Base):
    __tablename__ = "persons"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)


class Organisation(Base):
    __tablename__ = "organisations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)


class TrialLocation(Base):
    """Trial to location link carrying the site role (e.g. recruitment_countries)."""

    __tablename__ = "trials_locations"

    trial_id: Mapped[str] = mapped_column(String(36), ForeignKey("trials.id", ondelete="CASCADE"), primary_key=True)
    location_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("locations.id", ondelete="CASCADE"), primary_key=True
    )
    role: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    location: Mapped[Location] = relationship(Location)


class TrialPerson(Base):
    __tablename__ = "trials_persons"

    trial_id: Mapped[str] = mapped_column(String(36), ForeignKey("trials.id", ondelete="CASCADE"), primary_key=True)
    person_id: Mapped[str] = mapped_column(String(36), ForeignKey("persons.id", ondelete="CASCADE"), primary_key=True)
    role: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    person: Mapped[Person] = relationship(Person)


class TrialOrganisation(Base):
    __tablename__ = "trials_organisations"

    trial_id: Mapped[str] = mapped_column(String(36), ForeignKey("trials.id", ondelete="CASCADE"), primary_key=True)
    organisation_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("organisations.id", ondelete="CASCADE"), primary_key=True
    )
    role: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    organisation: Mapped[Organisation] = relationship(Organisation)


class Trial(Base):
    """Registered clinical trial with its denormalizable relations."""

    __tablename__ = "trials"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    public_title: Mapped[str] = mapped_column(Text, nullable=False)
    brief_summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    registration_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
        index=True,
    )

    interventions = relationship(Intervention, secondary=trials_interventions, order_by=Intervention.name)
    problems = relationship(Problem, secondary=trials_problems, order_by=Problem.name)
    locations = relationship(TrialLocation, cascade="all, delete-orphan", order_by=TrialLocation.location_id)
    persons = relationship(TrialPerson, cascade="all, delete-orphan", order_by=TrialPerson.person_id)
    organisations = relationship(
        TrialOrganisation,
        cascade="all, delete-orphan",
        order_by=TrialOrganisation.organisation_id,
    )
