"""Config values."""
from pathlib import Path

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent.parent
RESOURCES_DIR = PROJECT_ROOT / "resources"
MODELS_DIR = RESOURCES_DIR / "models"

# Camera settings
DEFAULT_CAMERA_INDEX = 0
FRAME_WIDTH = 640
FRAME_HEIGHT = 480

# Model weights, keyed by the model id passed to the inference backend.
# General-object and classifier weights are fetched by ultralytics on first use.
HAZARD_MODEL = MODELS_DIR / "hazard_detector.pt"
OBSTACLE_MODEL = MODELS_DIR / "indoor_obstacles.pt"
GENERAL_MODEL = "yolov8n.pt"
CLASSIFIER_MODEL = "yolov8n-cls.pt"
PERSONAL_MODEL = MODELS_DIR / "personal_items.pt"
SCENE_MODEL = MODELS_DIR / "scene_classifier.pt"

MODEL_PATHS = {
    "hazard": HAZARD_MODEL,
    "obstacle": OBSTACLE_MODEL,
    "general": GENERAL_MODEL,
    "classifier": CLASSIFIER_MODEL,
    "personal": PERSONAL_MODEL,
    "scene": SCENE_MODEL,
}
INFERENCE_DEVICE = "cpu"

# Fusion thresholds
HAZARD_CONFIDENCE = 0.6
OBSTACLE_CONFIDENCE = 0.5
GENERAL_CONFIDENCE = 0.35
CLASSIFIER_CONFIDENCE = 0.30
PERSONAL_CONFIDENCE = 0.7
CLASSIFIER_MAX_RESULTS = 6
CLASSIFIER_TOP_K = 10
PERSONAL_MAX_RESULTS = 3
FUSION_MAX_DETECTIONS = 10
# Indoor obstacle model is disabled until its accuracy improves
OBSTACLE_DETECTOR_ENABLED = False
FUSION_WORKERS = 4

# Direction thresholds (normalized box center x)
DIRECTION_LEFT_THRESHOLD = 0.33
DIRECTION_RIGHT_THRESHOLD = 0.67

# Frame sampling
PROCESS_EVERY_N_FRAMES = 30

# Stability tracking
STABILITY_THRESHOLD = 3

# Scene & lighting monitor
CROP_START = 0.4
CROP_END = 0.6
MOTION_DELTA_THRESHOLD = 0.15
TOO_DARK_THRESHOLD = 0.2
DIM_THRESHOLD = 0.4

# Announcements
ANNOUNCE_INTERVAL_SECONDS = 4.0
UTTERANCE_SPACING_SECONDS = 2.0
ANNOUNCE_COOLDOWN_SECONDS = 10.0
MAX_HAZARDS = 2
MAX_PERSONAL_ITEMS = 2
MAX_ITEMS_PER_DIRECTION = 3
MAX_DIRECTION_GROUPS = 2
MERGE_SOFT_CAP = 100
PERSONAL_PREFIX = "my_"
SCENE_KEY_PREFIX = "scene|"

# Audio/TTS settings
AUDIO_ENABLED = True
TTS_LANGUAGE = "en"
TTS_QUEUE_SIZE = 10
# Stereo pan for speech about objects on the left (-) or right (+)
SPEECH_PAN = 0.7
SPEECH_RATE = 0.5
ANNOUNCE_DISTANCE = True
HAPTIC_FEEDBACK = True

# Depth (requires the 'advanced' extra)
DEPTH_ENABLED = False
DEPTH_MODEL = "Intel/dpt-hybrid-midas"
DEPTH_MAX_FEET = 13.0

# Display settings
DISPLAY_FPS = True
BOX_COLORS = {
    "hazard": (0, 0, 255),
    "obstacle": (0, 255, 0),
    "general": (0, 255, 255),
    "personal": (255, 0, 255),
}
BOUNDING_BOX_THICKNESS = 2
HINT_TEXT = "Space:Announce T:Test Q:Quit"
