import os
import tempfile

# configure the app before any backend module reads the environment
_TMP_DIR = tempfile.mkdtemp(prefix="yoga-tests-")
os.environ["DATABASE_URL"] = "sqlite:///" + os.path.join(_TMP_DIR, "test.db")
os.environ["CACHE_DIR"] = os.path.join(_TMP_DIR, "offline_cache")
os.environ["SETTINGS_FILE"] = os.path.join(_TMP_DIR, "settings.json")
os.environ["SITE_URL"] = "https://stevenzeiler.com"
os.environ["SMTP_HOST"] = ""
