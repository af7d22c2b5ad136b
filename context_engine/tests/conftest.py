from __future__ import annotations

"""Shared pytest fixtures and test environment defaults."""

import os
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("CONTEXT_ALLOW_ANONYMOUS", "true")
os.environ.pop("CONTEXT_API_KEYS", None)
os.environ.pop("CONTEXT_API_KEY_MAP", None)
os.environ.pop("CONTEXT_CATEGORY_WEIGHTS", None)
os.environ["CONTEXT_USAGE_BACKEND"] = "json"
os.environ.setdefault("CONTEXT_LOG_LEVEL", "WARNING")
