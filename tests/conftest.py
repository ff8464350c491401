import os
import tempfile


# Ensure sensible defaults for tests before app import
_DB_FILE = os.path.abspath("./test_fleetmarket.db")
if os.path.exists(_DB_FILE):
    os.remove(_DB_FILE)

os.environ.setdefault("ENV", "dev")
os.environ.setdefault("DB_URL", f"sqlite:///{_DB_FILE}")
os.environ.setdefault("AUTO_CREATE_SCHEMA", "true")
os.environ.setdefault("RL_DISABLED", "true")
os.environ.setdefault("MEDIA_ROOT", tempfile.mkdtemp(prefix="fleetmarket-media-"))
os.environ.setdefault("NOTIFY_WEBHOOK_URL", "")
