import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[2]

# Scans, exports and the database live under one data root, movable via env
DATA_DIR = Path(os.environ.get("MINISTRY_DATA_DIR", BASE_DIR / "data"))
DB_DIR = DATA_DIR / "database"
QR_CODES_DIR = DATA_DIR / "qr_codes"
EXPORTS_DIR = DATA_DIR / "exports"
LOG_DIR = BASE_DIR / "logs"

DB_PATH = DB_DIR / "ministry.db"
LOG_FILE = LOG_DIR / "scanner.log"

for directory in (DB_DIR, QR_CODES_DIR, EXPORTS_DIR, LOG_DIR):
    directory.mkdir(parents=True, exist_ok=True)
