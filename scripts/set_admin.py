#!/usr/bin/env python
"""
Grant or revoke the admin claim for a user.

Usage:
    python scripts/set_admin.py --email me@example.com
"""

from pathlib import Path
import sys

REPO_ROOT = Path(__file__).resolve().parents[1]
BACKEND_PATH = REPO_ROOT / "backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.insert(0, str(BACKEND_PATH))

from findspot.admin_cli import main_set_admin  # noqa: E402


if __name__ == "__main__":
    raise SystemExit(main_set_admin())
