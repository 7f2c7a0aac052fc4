"""SQLAlchemy model exports."""

from __future__ import annotations

from trials_api.models.location import Location
from trials_api.models.trial import (
    Intervention,
    Organisation,
    Person,
    Problem,
    Trial,
    TrialLocation,
    TrialOrganisation,
    TrialPerson,
    trials_interventions,
    trials_problems,
)

__all__ = [
    "Trial",
    "Location",
    "Intervention",
    "Problem",
    "Person",
    "Organisation",
    "TrialLocation",
    "TrialPerson",
    "TrialOrganisation",
    "trials_interventions",
    "trials_problems",
]
