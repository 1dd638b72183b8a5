#!/usr/bin/env python
"""
Move inline image payloads into object storage.

Usage:
    python scripts/migrate_images_to_storage.py --dry-run
"""

from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
BACKEND_PATH = REPO_ROOT / "backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.insert(0, str(BACKEND_PATH))

from findspot.migration import main  # noqa: E402


if __name__ == "__main__":
    raise SystemExit(main())
