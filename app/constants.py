"""Domain constants shared by models, validation and services."""

SUPPORTED_SPORTS = (
    "basketball",
    "football",
    "tennis",
    "volleyball",
    "badminton",
    "table_tennis",
    "hockey",
    "futsal",
    "handball",
    "other",
)

GAME_FORMATS = ("3x3", "5x5", "freestyle", "training", "other")

SKILL_LEVELS = ("beginner", "intermediate", "advanced", "any")

COURT_STATUSES = ("active", "inactive", "maintenance")

MIN_DURATION_MINUTES = 30
MAX_DURATION_MINUTES = 480

MIN_CAPACITY = 2
MAX_CAPACITY = 50

MAX_DESCRIPTION_LENGTH = 500

# Minutes in a calendar day; a slot may end exactly at midnight.
MINUTES_PER_DAY = 24 * 60

# Default radius for nearby searches, in metres.
DEFAULT_NEARBY_RADIUS_M = 5000
