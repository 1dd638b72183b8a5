#!/usr/bin/env python
"""
Generate thumbnails for photos that have none.

Usage:
    python scripts/generate_thumbnails.py --limit 10
"""

from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
BACKEND_PATH = REPO_ROOT / "backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.insert(0, str(BACKEND_PATH))

from findspot.thumbnails import main_generate  # noqa: E402


if __name__ == "__main__":
    raise SystemExit(main_generate())
