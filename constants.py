import os
from pathlib import Path

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3000))
RELOAD = os.getenv("RELOAD", "false").lower() in ("1", "true", "yes")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

STATIC_DIR = Path(os.getenv("STATIC_DIR", Path(__file__).parent / "public"))

ANONYMOUS_NAME = os.getenv("ANONYMOUS_NAME", "Anonymous")
SYSTEM_SENDER = "System"

# Room codes are 4-digit, human-typeable strings
ROOM_CODE_MIN = 1000
ROOM_CODE_MAX = 9999

# Frames queued per connection before further sends to it are dropped
OUTBOX_MAXSIZE = int(os.getenv("OUTBOX_MAXSIZE", 256))
