import os
from pathlib import Path

from dotenv import load_dotenv

# Load the .env file sitting next to this package, then the project root one
load_dotenv(Path(__file__).parent / ".env")
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

DATABASE_URL = os.getenv("DATABASE_URL")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Public site, used for class links inside calendar invites
SITE_URL = os.getenv("SITE_URL", "http://localhost:3000").rstrip("/")
FRONTEND_ORIGINS = [
    origin.strip()
    for origin in os.getenv("FRONTEND_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

# Offline cache
CACHE_DIR = Path(os.getenv("CACHE_DIR", "offline_cache"))
CACHE_VERSION = os.getenv("CACHE_VERSION", "v1")
FETCH_TIMEOUT_SECONDS = float(os.getenv("FETCH_TIMEOUT_SECONDS", "10"))
GONG_AUDIO_URL = os.getenv(
    "GONG_AUDIO_URL",
    "https://jsltdgvipylqrgesphet.supabase.co/storage/v1/object/public/audio//gong-79191.mp3",
)

# Countdown client
API_URL = os.getenv("API_URL", "http://localhost:8000").rstrip("/")
AUDIO_PLAYER_COMMAND = os.getenv("AUDIO_PLAYER_COMMAND", "mpv --no-video")

SETTINGS_FILE = Path(os.getenv("SETTINGS_FILE", "settings.json"))

# Invite emails are skipped when SMTP_HOST is empty
SMTP_HOST = os.getenv("SMTP_HOST")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASS = os.getenv("SMTP_PASS")
EMAIL_FROM = os.getenv("EMAIL_FROM", "classes@stevenzeiler.com")

DEFAULT_INSTRUCTOR = os.getenv("DEFAULT_INSTRUCTOR", "Steven Zeiler")
