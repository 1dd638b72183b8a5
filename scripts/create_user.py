#!/usr/bin/env python
"""
Create a user (optionally admin) and print an access token.

Usage:
    python scripts/create_user.py --email me@example.com --admin
"""

from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
BACKEND_PATH = REPO_ROOT / "backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.insert(0, str(BACKEND_PATH))

from findspot.admin_cli import main_create_user  # noqa: E402


if __name__ == "__main__":
    raise SystemExit(main_create_user())
