SCHEMA_VERSION = 1
STATE_RECORD_KEY = "GM_STATE_V1"

MAX_DEBUG_EVENTS = 50
MAX_INTENT_HISTORY = 20

ENTRANCE_COOLDOWN_TURNS = 60
ENTRANCE_TOWN_ENTRY_PERIOD = 4
HINT_COOLDOWN_TURNS = 80
HINT_TOWN_ENTRY_PERIOD = 4

BOREDOM_SMOOTHING_ALPHA = 0.15
MAX_TURNS_BORED = 200
MOOD_TRANSIENT_DECAY = 0.9

MECH_RECENT_TURNS = 200
MECH_DISINTEREST_DISMISS = 3
MECH_DISINTEREST_AGE = 600

GUARD_FINE_HEAT_TURNS = 300

GM_RNG_ALGO = "mulberry32"
GM_SEED_SALT = 0x4D475F30
GOLDEN_RATIO_32 = 0x9E3779B9
UINT32_MASK = 0xFFFFFFFF

SCHEDULER_MIN_AUTO_SPACING = 20
SCHEDULER_WINDOW_TURNS = 200
SCHEDULER_MAX_PER_WINDOW = 4
SCHEDULER_HISTORY_LIMIT = 200

TRAIT_MIN_SAMPLES = 3
TRAIT_MIN_SCORE = 0.4
TRAIT_FORGET_TURNS = 300

PROFILE_TOP_MODES = 3
PROFILE_TOP_STANDINGS = 5

TOWN_SCOPES = ("town", "tavern")
