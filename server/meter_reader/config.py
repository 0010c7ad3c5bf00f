import os
from pathlib import Path

# Storage
DATA_DIR = Path(os.getenv("METER_READER_DATA_DIR", Path(__file__).parent.parent / "data"))
HISTORY_FILE = Path(os.getenv("METER_READER_HISTORY_FILE", DATA_DIR / "scans.json"))
MAX_SCANS = int(os.getenv("METER_READER_MAX_SCANS", "10"))

# Logging
LOG_LEVEL = os.getenv("METER_READER_LOG_LEVEL", "INFO")

# Recognizer: "tesseract" or "easyocr"
RECOGNIZER_ENGINE = os.getenv("METER_READER_ENGINE", "tesseract").lower()
TESSERACT_CMD = os.getenv("TESSERACT_CMD")
# Seconds; 0 disables the timeout
RECOGNIZER_TIMEOUT = float(os.getenv("METER_READER_RECOGNIZER_TIMEOUT", "20"))
USE_GPU = os.getenv("METER_READER_USE_GPU", "0") == "1"

# Stop trying strategies once a result is above this confidence (0-1)
ACCEPTANCE_THRESHOLD = float(os.getenv("METER_READER_ACCEPTANCE_THRESHOLD", "0.70"))

# Live quality monitoring
MONITOR_INTERVAL = float(os.getenv("METER_READER_MONITOR_INTERVAL", "0.5"))
AUTO_CAPTURE_SCORE = float(os.getenv("METER_READER_AUTO_CAPTURE_SCORE", "85"))

# Quality gate (all values are fractions 0-1)
MIN_SHARPNESS = float(os.getenv("METER_READER_MIN_SHARPNESS", "0.1"))
MIN_BRIGHTNESS = float(os.getenv("METER_READER_MIN_BRIGHTNESS", "0.2"))
MAX_GLARE = float(os.getenv("METER_READER_MAX_GLARE", "0.4"))

# HTTP server
HOST = os.getenv("METER_READER_HOST", "0.0.0.0")
PORT = int(os.getenv("METER_READER_PORT", "8000"))
CORS_ORIGINS = [o.strip() for o in os.getenv("METER_READER_CORS_ORIGINS", "*").split(",") if o.strip()]
