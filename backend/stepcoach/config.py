"""
StepCoach Configuration

Module-level settings read from the environment (and an optional .env file).
Scoring constants live here too so they can be tuned without code changes.
"""

import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Logging Configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# API Configuration
API_VERSION = "1.0.0"
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173",
    ).split(",")
    if origin.strip()
]

# Session Store Configuration
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "sql")  # "sql" or "memory"
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///stepcoach.db")  # any SQLAlchemy URL
STORAGE_QUOTA_BYTES = int(os.getenv("STORAGE_QUOTA_BYTES", str(5 * 1024 * 1024)))  # 5 MiB
COLLECTION_PREFIX = "sessions:"

# Verification (mock backend)
VERIFY_DELAY_SECONDS = float(os.getenv("VERIFY_DELAY_SECONDS", "1.5"))

# Landmark Model Sizes (MediaPipe)
BODY_LANDMARK_COUNT = 33
HAND_LANDMARK_MAX = 21

# Posture Scoring
# Weights must add up to 1.0
POSTURE_WEIGHTS = {
    "spine": 0.40,
    "shoulder": 0.40,
    "arm": 0.20,
}
SPINE_MAX_DEVIATION = 0.5     # nose-to-hip-midpoint offset, in shoulder widths
SHOULDER_MAX_TILT = 0.25      # shoulder height difference, in shoulder widths
ARM_TARGET_SPREAD = 1.6       # elbow-to-elbow distance, in shoulder widths
ARM_SPREAD_TOLERANCE = 1.0    # distance from target at which the arm score hits 0

# Expression Classification (ratios of face height / width)
MOUTH_OPEN_THRESHOLD = 0.08   # above -> Surprise
SMILE_WIDTH_THRESHOLD = 0.5   # above -> Joy
BROW_ANGER_THRESHOLD = 0.12   # below -> Anger

# Session Summary
TREND_THRESHOLD = 5  # score points between first and last third of a session
