"""
Cycle model definition for tracked period intervals.
"""
from datetime import date
from typing import Optional
from uuid import uuid4
from pydantic import BaseModel, Field, field_validator, model_validator

from flowtracker.utils.dates import to_calendar_date

class Cycle(BaseModel):
    """
    Represents one period interval. An open cycle has no end date yet.
    """
    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    start_date: date
    end_date: Optional[date] = None
    notes: Optional[str] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def normalize_dates(cls, value):
        if value is None:
            return None
        return to_calendar_date(value)

    @model_validator(mode="after")
    def check_end_after_start(self) -> "Cycle":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError(
                f"end_date {self.end_date} precedes start_date {self.start_date}"
            )
        return self

    @property
    def is_open(self) -> bool:
        """Check if the period is still ongoing."""
        return self.end_date is None

    def contains(self, target: date) -> bool:
        """
        Check whether a date falls inside this cycle.

        An open cycle extends indefinitely into the future.
        """
        if target < self.start_date:
            return False
        return self.end_date is None or target <= self.end_date
