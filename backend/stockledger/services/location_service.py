# Overview: Location collaborator; explicit default-location lookup per tenant.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import LocationNotFoundError
from ..models import Location


DEFAULT_LOCATION_NAME = "Main Warehouse"


def get_location(location_id: int) -> Location | None:
    return db.session.get(Location, location_id)


def get_default_location(merchant_id: int) -> Location:
    """
    Resolve the merchant's default location.

    Order of preference:
    1. active location flagged is_default
    2. oldest active location
    3. a newly created "Main Warehouse" (flushed, committed with the caller's transaction)
    """
    location = (
        db.session.query(Location)
        .filter_by(merchant_id=merchant_id, is_default=True, is_active=True)
        .order_by(Location.id.asc())
        .first()
    )
    if location:
        return location

    location = (
        db.session.query(Location)
        .filter_by(merchant_id=merchant_id, is_active=True)
        .order_by(Location.created_at.asc(), Location.id.asc())
        .first()
    )
    if location:
        return location

    location = Location(
        merchant_id=merchant_id,
        name=DEFAULT_LOCATION_NAME,
        is_default=True,
        is_active=True,
    )
    db.session.add(location)
    db.session.flush()
    current_app.logger.info(
        "Created default location %s for merchant %s", location.id, merchant_id
    )
    return location


def resolve_location(merchant_id: int, location_id: int | None, *, label: str = "Location") -> Location:
    """
    Return the requested location (or the default) after checking tenant ownership.

    Missing and foreign locations raise the same error so ids of other
    tenants are not revealed.
    """
    if location_id is None:
        return get_default_location(merchant_id)

    location = get_location(location_id)
    if location is None or location.merchant_id != merchant_id:
        raise LocationNotFoundError(
            f"{label} not found or access denied",
            details={"location_id": location_id},
        )
    return location
