"""
Runtime settings read from the environment. A '.env' file placed in the
project root (one level above src) is loaded first.
"""
import os
from dotenv import load_dotenv
from utils import BASE_DIR

load_dotenv(os.path.join(BASE_DIR, "../.env"))


def _int_setting(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except ValueError:
        return default


BOT_TOKEN = os.getenv("BOT_TOKEN")

DB_FILENAME = os.getenv("DB_FILENAME", "bazaraki.db")
DB_PATH = DB_FILENAME if os.path.isabs(DB_FILENAME) else os.path.join(BASE_DIR, "..", DB_FILENAME)

# Milliseconds between two polling cycles
POLL_INTERVAL = _int_setting("POLL_INTERVAL", 300000)

PAGE_WORKERS = _int_setting("PAGE_WORKERS", 4)
SUBSCRIPTION_WORKERS = _int_setting("SUBSCRIPTION_WORKERS", 4)
MAX_CONNECTIONS = _int_setting("MAX_CONNECTIONS", 6)
REQUEST_TIMEOUT = _int_setting("REQUEST_TIMEOUT", 30)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", os.path.join(BASE_DIR, "../log.log"))
LOG_TIMEZONE = os.getenv("LOG_TIMEZONE", "Asia/Nicosia")
