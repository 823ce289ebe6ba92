"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

DEFAULT_HISTORY_LIMIT = 30
DEFAULT_STATS_DAYS = 30
DEFAULT_TREND_LENGTH = 7

DATE_KEY_FORMAT = "%Y-%m-%d"
HOURS_PRECISION = 2

# Face descriptors
DESCRIPTOR_LENGTH = 128
FACE_MATCH_THRESHOLD = 0.45
MARGINAL_MATCH_CEILING = 0.55
STRONG_MISMATCH_FLOOR = 0.70

# Detection
MIN_DETECTION_SCORE = 0.3
DETECTOR_INPUT_SIZE = 320
DETECTION_THROTTLE = 2
FRAME_INTERVAL_SECONDS = 1 / 30

# Hold-to-verify protocol
HOLD_DURATION_SECONDS = 2.0
SUCCESS_CLOSE_DELAY_SECONDS = 0.8
NO_SIGNAL_GUIDANCE_EVERY = 60
NO_SIGNAL_FRAMES_PER_SECOND = 30
DETECTION_ERROR_LOG_EVERY = 60

# Camera acquisition
CAMERA_ACQUIRE_ATTEMPTS = 10
CAMERA_RETRY_DELAY_SECONDS = 0.1
FIRST_FRAME_TIMEOUT_SECONDS = 5.0
DEFAULT_CAMERA_WIDTH = 640
DEFAULT_CAMERA_HEIGHT = 480
