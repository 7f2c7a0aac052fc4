"""Projection of ORM rows into search index documents."""

from __future__ import annotations

from typing import Any

from trials_api.models.location import Location
from trials_api.models.trial import Intervention, Organisation, Person, Problem, Trial
from trials_api.services.index_schema import ENTITY_TYPE_FIELD


def resource_url(base_url: str, collection: str, entity_id: str) -> str:
    """Build the canonical API URL for one resource."""
    return f"{base_url.rstrip('/')}/{collection}/{entity_id}"


def aggregate_names(related: list[dict[str, Any]]) -> list[str]:
    """Collect nested ``attributes.name`` values into one searchable text list."""
    names: list[str] = []
    for item in related:
        name = (item.get("attributes") or {}).get("name")
        if name:
            names.append(name)
    return names


def _attributes(entity: Intervention | Problem | Person | Organisation | Location) -> dict[str, Any]:
    attributes: dict[str, Any] = {"id": entity.id, "name": entity.name}
    entity_type = getattr(entity, "type", None)
    if entity_type is not None:
        attributes["type"] = entity_type
    return attributes


def serialize_trial(trial: Trial, *, base_url: str) -> dict[str, Any]:
    """Serialize a trial with its related entities embedded.

    ``intervention``, ``location`` and ``problem`` hold the names of the
    nested entities so one query string can match across all of them.
    """
    interventions = [{"attributes": _attributes(item)} for item in trial.interventions]
    problems = [{"attributes": _attributes(item)} for item in trial.problems]
    locations = [{"attributes": _attributes(link.location), "role": link.role} for link in trial.locations]
    persons = [{"attributes": _attributes(link.person), "role": link.role} for link in trial.persons]
    organisations = [
        {"attributes": _attributes(link.organisation), "role": link.role} for link in trial.organisations
    ]

    return {
        ENTITY_TYPE_FIELD: "trial",
        "id": trial.id,
        "url": resource_url(base_url, "trials", trial.id),
        "public_title": trial.public_title,
        "brief_summary": trial.brief_summary,
        "registration_date": trial.registration_date.isoformat() if trial.registration_date else None,
        "interventions": interventions,
        "intervention": aggregate_names(interventions),
        "problems": problems,
        "problem": aggregate_names(problems),
        "locations": locations,
        "location": aggregate_names(locations),
        "persons": persons,
        "organisations": organisations,
    }


def serialize_location(location: Location, *, base_url: str) -> dict[str, Any]:
    return {
        ENTITY_TYPE_FIELD: "location",
        "id": location.id,
        "url": resource_url(base_url, "locations", location.id),
        "name": location.name,
        "type": location.type,
    }
