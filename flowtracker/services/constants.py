"""
Constants shared by the cycle services.
"""

DEFAULT_CYCLE_LENGTH = 28
DEFAULT_PERIOD_LENGTH = 5
MIN_CYCLES_FOR_AVERAGE = 2

# Logs up to this many days apart still belong to the same period
PERIOD_GAP_TOLERANCE = 2

# Ovulation is placed this many days before the next expected period
LUTEAL_PHASE_LENGTH = 14

# Fertile window around ovulation day, in cycle days
FERTILE_DAYS_BEFORE_OVULATION = 5
FERTILE_DAYS_AFTER_OVULATION = 1

UPCOMING_PERIODS_COUNT = 3
