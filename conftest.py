import os
import sys
import tempfile
from pathlib import Path

REPO_ROOT = Path(__file__).parent

# Scratch space for the SQLite database and the local originals bucket
_TEST_ROOT = Path(tempfile.mkdtemp(prefix="findspot-tests-"))

# Set environment variables BEFORE importing findspot modules; settings are cached
os.environ["APP_ENV"] = "test"
os.environ["JWT_SECRET"] = "test-secret-key-for-pytest-only-12345"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_ROOT / 'test.db'}"
os.environ["STORAGE_PROVIDER"] = "local"
os.environ["LOCAL_STORAGE_PATH"] = str(_TEST_ROOT / "storage")
os.environ["PAGE_DELAY_MS"] = "0"
os.environ["ALLOWED_HOSTS"] = "*"
os.environ.pop("SENTRY_DSN", None)

# Add the backend directory to sys.path so imports work without an install
BACKEND_PATH = REPO_ROOT / "backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.insert(0, str(BACKEND_PATH))
