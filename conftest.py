"""Test-session environment shared by every test directory.

Settings are read once and cached, so the environment must be in place before
any ``loyalty`` module is imported.
"""
from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

TEST_DATABASE_PATH = Path(tempfile.gettempdir()) / f"loyalty_test_suite_{os.getpid()}.db"

os.environ["DATABASE_URL"] = f"sqlite+pysqlite:///{TEST_DATABASE_PATH}"
os.environ["ENABLE_TRACING"] = "false"
os.environ["ANALYTICS_CACHE_ENABLED"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-suite-secret"
os.environ["QUERY_TIMEOUT_SECONDS"] = "5"
