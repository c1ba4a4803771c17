"""
Result model returned by period lifecycle operations.
"""
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field

from flowtracker.models.cycle import Cycle
from flowtracker.models.flow import FlowEvent

class RejectionReason(str, Enum):
    """
    Why a lifecycle operation left the store unchanged.
    """
    ALREADY_STARTED = "already_started"
    CYCLE_NOT_FOUND = "cycle_not_found"
    END_BEFORE_START = "end_before_start"
    DUPLICATE_END_DATE = "duplicate_end_date"
    OVERLAPS_NEXT_CYCLE = "overlaps_next_cycle"
    START_INSIDE_EXISTING_CYCLE = "start_inside_existing_cycle"
    START_BEFORE_LATEST_CYCLE = "start_before_latest_cycle"

class OperationResult(BaseModel):
    """
    Outcome of a lifecycle operation.

    A rejected operation has ``applied=False``, carries the unchanged cycle
    (when one is involved) and a ``rejection`` reason. Nothing was written.
    """
    applied: bool
    cycle: Optional[Cycle] = None
    event: Optional[FlowEvent] = None
    rejection: Optional[RejectionReason] = None
    created_events: List[FlowEvent] = Field(default_factory=list)
    removed_events: List[FlowEvent] = Field(default_factory=list)

    @classmethod
    def rejected(cls, reason: RejectionReason, cycle: Optional[Cycle] = None) -> "OperationResult":
        return cls(applied=False, cycle=cycle, rejection=reason)
