"""
Flow event model definition for daily period logs.
"""
from enum import Enum
from datetime import date
from typing import Optional
from uuid import uuid4
from pydantic import BaseModel, Field, field_validator

from flowtracker.utils.dates import to_calendar_date

class FlowIntensity(str, Enum):
    """
    Logged flow intensity for a single day.
    """
    SPOTTING = "spotting"
    LIGHT = "light"
    MEDIUM = "medium"
    HEAVY = "heavy"

class FlowSource(str, Enum):
    """
    Provenance of a flow event.
    """
    USER = "user"  # Logged explicitly
    AUTO = "auto"  # Written by period auto-fill

class FlowEvent(BaseModel):
    """
    Represents one day's logged flow, optionally linked to its cycle.
    """
    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    cycle_id: Optional[str] = None
    date: date
    intensity: FlowIntensity
    source: FlowSource = FlowSource.USER

    @field_validator("date", mode="before")
    @classmethod
    def normalize_date(cls, value):
        return to_calendar_date(value)

    @property
    def is_spotting(self) -> bool:
        """Spotting never counts as a period day."""
        return self.intensity == FlowIntensity.SPOTTING

    @property
    def is_auto(self) -> bool:
        return self.source == FlowSource.AUTO
