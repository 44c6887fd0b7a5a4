"""
Constants used throughout the telemetry_backend application.
"""

# --- Time ---
MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MINUTES_PER_DAY = 24 * 60

# --- Point descriptors ---
DELTA_TRANSFORM = "d"  # point_info.transform for lifetime counters
ENERGY_METRIC = "energy"

# --- Quality ---
DEFAULT_QUALITY = "actual"
ABSENT_SYMBOL = "."  # overview character for a period without data
UNKNOWN_SYMBOL = "?"  # overview character for an unmapped quality label

# --- Completeness labels ---
COMPLETENESS_NONE = "none"
COMPLETENESS_MIXED = "mixed"
COMPLETENESS_ALL_PREFIX = "all-"

# --- Database Field Sizes ---
MAX_NAME_LENGTH = 255
MAX_ORIGIN_ID_LENGTH = 128
MAX_QUALITY_LENGTH = 32
MAX_METRIC_LENGTH = 32
