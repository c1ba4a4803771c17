"""
Settings models: per-user preferences and engine-wide configuration.
"""
import os
from typing import Optional
from pydantic import BaseModel, Field

from flowtracker.services.constants import (
    DEFAULT_CYCLE_LENGTH,
    DEFAULT_PERIOD_LENGTH,
    MIN_CYCLES_FOR_AVERAGE,
    PERIOD_GAP_TOLERANCE,
)

class UserSettings(BaseModel):
    """
    Cycle and period lengths configured by the user.

    Either length may be unset, in which case the engine default applies.
    """
    user_id: str
    cycle_length: Optional[int] = Field(None, ge=1, le=120)
    period_length: Optional[int] = Field(None, ge=1, le=30)

    @property
    def is_configured(self) -> bool:
        return self.cycle_length is not None or self.period_length is not None

class EngineConfig(BaseModel):
    """
    Engine-wide defaults used when there is not enough logged data.

    Attributes:
        default_cycle_length: Cycle length used without data or user setting
        default_period_length: Period length used without data or user setting
        min_cycles_for_average: Period starts needed to trust logged averages
        period_gap_tolerance: Max days between logs still counted as one period
    """
    default_cycle_length: int = Field(DEFAULT_CYCLE_LENGTH, ge=1)
    default_period_length: int = Field(DEFAULT_PERIOD_LENGTH, ge=1)
    min_cycles_for_average: int = Field(MIN_CYCLES_FOR_AVERAGE, ge=1)
    period_gap_tolerance: int = Field(PERIOD_GAP_TOLERANCE, ge=1)

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """
        Build a config from FLOWTRACKER_* environment variables.

        Unset variables keep their defaults.
        """
        env_map = {
            "default_cycle_length": "FLOWTRACKER_DEFAULT_CYCLE_LENGTH",
            "default_period_length": "FLOWTRACKER_DEFAULT_PERIOD_LENGTH",
            "min_cycles_for_average": "FLOWTRACKER_MIN_CYCLES_FOR_AVERAGE",
            "period_gap_tolerance": "FLOWTRACKER_PERIOD_GAP_TOLERANCE",
        }
        values = {
            field: os.environ[var]
            for field, var in env_map.items()
            if os.environ.get(var)
        }
        return cls(**values)
