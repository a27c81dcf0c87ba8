"""Dive insight constants: model parameters, thresholds, labels and fixed texts."""

from core.config import settings

PROMPT_VERSION = "dive-insight-v2"

MODEL = settings.DIVE_INSIGHT_MODEL
MODEL_SEED = 42
MODEL_TEMPERATURE = 0.2
MODEL_MAX_TOKENS = 400
PROVIDER_TIMEOUT_S = settings.DIVE_INSIGHT_PROVIDER_TIMEOUT_S

SYSTEM_PROMPT = "You generate concise scuba dive insights and always return strict JSON."

# Minimum sample sizes before a baseline is exposed
GLOBAL_BASELINE_MIN = 5
LOCATION_BASELINE_MIN = 3
RECENT_BASELINE_MIN = 3

RECENT_WINDOW_DAYS = 30
RECENT_FALLBACK_WINDOW_DAYS = 90

LOCATION_KEY_MAX_LENGTH = 120

# Comparison thresholds
DEPTH_DELTA_THRESHOLD_METERS = 1
DURATION_DELTA_THRESHOLD_MINUTES = 5
GAS_EFFICIENCY_DELTA_THRESHOLD_RATIO = 0.1

# Mean depth of a recreational multilevel profile relative to its max depth
AVERAGE_DEPTH_ESTIMATE_RATIO = 0.6

EARLY_EXPERIENCE_MAX_DIVES = 25

AI_CREDIT_DAILY_LIMIT = settings.AI_CREDIT_DAILY_LIMIT

# Fixed texts the model and the policy layer must use verbatim
NO_MEANINGFUL_INSIGHT_TEXT = "Not enough information for a meaningful insight beyond the recap."
NO_BASELINE_COMPARISON = "No historical baseline available for comparison."
NO_SPECIFIC_RECOMMENDATIONS = "No specific recommendations."
DETERMINISTIC_COMPARISON_EVIDENCE = "deterministic baseline comparison"

MAX_RECAP_SENTENCES = 2
MAX_EVIDENCE_ITEMS = 6
MAX_RECOMMENDATIONS = 3

UNKNOWN_LOCATION = "an unknown site"
UNKNOWN_DATE = "an unknown date"
NO_NOTES = "No additional notes."

DIVE_TYPE_LABELS = {
    "reef": "Reef",
    "wreck": "Wreck",
    "wall": "Wall",
    "cave": "Cave",
    "drift": "Drift",
    "night": "Night",
    "training": "Training",
    "lake_river": "Lake/River",
}

VISIBILITY_LABELS = {
    "poor": "Poor",
    "fair": "Fair",
    "good": "Good",
    "excellent": "Excellent",
}

WATER_TYPE_LABELS = {
    "fresh": "Fresh water",
    "salt": "Salt water",
}

EXPOSURE_LABELS = {
    "wet-2mm": "Wetsuit (2mm)",
    "wet-3mm": "Wetsuit (3mm)",
    "wet-5mm": "Wetsuit (5mm)",
    "wet-7mm": "Wetsuit (7mm)",
    "semi-dry": "Semi-dry suit",
    "dry": "Dry suit",
}

CURRENT_LABELS = {
    "calm": "Calm",
    "mild": "Mild",
    "moderate": "Moderate",
    "strong": "Strong",
}

GAS_LABELS = {
    "air": "Air",
    "nitrox": "Nitrox",
}
