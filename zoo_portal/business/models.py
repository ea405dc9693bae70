"""
Domain records for the zoo portal using pydantic v2.

Records are serialized with camelCase aliases so stored collections and API
payloads keep the field names the browser client already uses
(``visitorName``, ``feedingSchedule`` and so on), while Python code works with
snake_case attributes.

Models:
- CatalogRecord: one animal of the catalog; unknown keys are preserved
- BookingRecord: a confirmed visit booking
- MembershipRecord: a membership registration
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class FormClass(str, Enum):
    """Guarded form classes; each has its own rate limiter."""

    BOOKING = 'booking'
    MEMBERSHIP = 'membership'
    ANIMAL = 'animal'


class PortalModel(BaseModel):
    """Base model providing alias-aware population and serialization."""

    model_config = ConfigDict(
        populate_by_name=True,
        validate_assignment=True,
    )

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict using camelCase aliases."""
        return self.model_dump(by_alias=True, mode='json')


class Location(PortalModel):
    lat: float = Field(allow_inf_nan=False)
    lng: float = Field(allow_inf_nan=False)


class CatalogRecord(PortalModel):
    """
    Animal record as served by the catalog backend.

    The submission layer treats records as opaque payload, so keys this model
    does not declare are kept and round-trip through :meth:`to_payload`.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        validate_assignment=True,
        extra='allow',
    )

    id: int
    name: str
    species: str
    status: Optional[str] = None
    health: Optional[str] = None
    location: Optional[Location] = None
    image: Optional[str] = None
    feeding_schedule: List[Any] = Field(default_factory=list, alias='feedingSchedule')
    maintenance_records: List[Any] = Field(default_factory=list, alias='maintenanceRecords')


class BookingRecord(PortalModel):
    visitor_name: str = Field(alias='visitorName', min_length=1)
    contact: str
    selected_animal: str = Field(alias='selectedAnimal', min_length=1)
    date_time: str = Field(alias='dateTime', min_length=1)
    group_size: int = Field(alias='groupSize', ge=1)
    submitted_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        alias='submittedAt'
    )


class MembershipRecord(PortalModel):
    name: str = Field(min_length=1)
    email: str
    membership_type: str = Field(alias='membershipType', min_length=1)
    start_date: str = Field(alias='startDate', min_length=1)
    emergency_contact: str = Field(alias='emergencyContact')
    photo_data_url: Optional[str] = Field(default=None, alias='photoDataUrl')
    submitted_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        alias='submittedAt'
    )


__all__ = [
    'FormClass',
    'PortalModel',
    'Location',
    'CatalogRecord',
    'BookingRecord',
    'MembershipRecord',
]
