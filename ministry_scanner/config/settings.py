import os

# Camera
FRAME_WIDTH = 640
FRAME_HEIGHT = 480
FACING_MODE = "environment"  # Prefer the back camera when labels allow it
MAX_CAMERA_INDEX = 4  # Highest OpenCV device index tried during enumeration

# Scanning
SCAN_INTERVAL = 0.1  # seconds between sampled frames
PLAYBACK_TIMEOUT = 10  # seconds to wait for the first frame before giving up

# Search
SEARCH_MIN_LENGTH = 2
SEARCH_LIMIT = 20

# Admin API (used by the HTTP profile store)
API_BASE_URL = os.environ.get("MINISTRY_API_URL", "http://localhost:3000")
API_TIMEOUT = 15  # seconds

# PDF export
CHURCH_NAME = "I AM REDEEMER AND MASTER EVANGELICAL CHURCH"
PDF_PAGE_SIZE = (8.27, 11.69)  # A4 in inches
PDF_LINES_PER_PAGE = 40

# QR images
QR_BOX_SIZE = 10
QR_BORDER = 4

# Where profiles are read from: "sqlite" (local database) or "http" (admin API)
PROFILE_SOURCE = os.environ.get("MINISTRY_PROFILE_SOURCE", "sqlite")
