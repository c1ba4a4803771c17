"""
Phase and prediction model definitions.
"""
from enum import Enum
from datetime import date
from typing import List, Optional
from pydantic import BaseModel, Field

class CyclePhase(str, Enum):
    """
    Menstrual cycle phases.
    """
    PERIOD = "period"
    FOLLICULAR = "follicular"
    OVULATION = "ovulation"
    LUTEAL = "luteal"
    UNKNOWN = "unknown"  # No period start logged on or before the date

class Confidence(str, Enum):
    """
    Which data source backed a length estimate.
    """
    LOGGED = "logged"
    USER = "user"
    DEFAULT = "default"

class CycleAverages(BaseModel):
    """
    Averages derived from logged flow events.
    """
    avg_cycle_length: int
    avg_period_length: int
    cycles_count: int

class PredictionLengths(BaseModel):
    """
    Cycle and period lengths chosen for predictions, with their source.
    """
    cycle_length: int = Field(..., ge=1)
    period_length: int = Field(..., ge=1)
    confidence: Confidence

class PredictedPeriod(BaseModel):
    """
    A predicted future period window (inclusive).
    """
    start_date: date
    end_date: date

class Prediction(BaseModel):
    """
    Summary of the next expected cycle for a user.
    """
    lengths: PredictionLengths
    next_period_start: Optional[date] = None
    fertile_window: List[date] = Field(default_factory=list)
    ovulation_date: Optional[date] = None
