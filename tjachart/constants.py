# Framing
WINDOW_SIZE = 1024
HOP_SIZE = 512

# Onset picking
SMOOTH_RADIUS = 3
THRESHOLD_LOW_PERCENTILE = 0.6
THRESHOLD_HIGH_PERCENTILE = 0.9
SENSITIVITY_RANGE = (0.2, 0.9)
SENSITIVITY_CLAMP = (0.2, 0.95)

# Tempo
MIN_INTERVAL_SEC = 0.2
MAX_INTERVAL_SEC = 2.0
MIN_BPM = 80.0
MAX_BPM = 200.0
BPM_RESOLUTION = 0.5

# Classification
KATSU_BIAS_RANGE = (-0.6, 0.6)
KATSU_BASE_QUANTILE = 0.65
KATSU_QUANTILE_RANGE = (0.35, 0.85)
BIG_LOW_PERCENTILE = 0.85
BIG_HIGH_PERCENTILE = 0.95
BIG_BASE_BLEND = 0.55
BIG_BLEND_RANGE = (0.35, 0.75)
RATIO_EPSILON = 1e-6
MIN_NOTES_FOR_CATEGORY_COVERAGE = 4
MIN_NOTES_FOR_BIG_COVERAGE = 8

# Chart grid
BEATS_PER_MEASURE = 4
DEFAULT_DIVISIONS = 16

# Note types and their chart tokens
DON = "don"
KATSU = "katsu"
DON_BIG = "don-big"
KATSU_BIG = "katsu-big"
NOTE_TYPES = (DON, KATSU, DON_BIG, KATSU_BIG)
TOKEN_TO_TYPE = {"1": DON, "2": KATSU, "3": DON_BIG, "4": KATSU_BIG}
TYPE_TO_TOKEN = {v: k for k, v in TOKEN_TO_TYPE.items()}

# Courses, low to high
COURSE_ORDER = ("Easy", "Normal", "Hard", "Oni", "Ura")
