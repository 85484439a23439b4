"""Root conftest: pins the environment before settings are imported."""
from __future__ import annotations

import os
from pathlib import Path

_env_test = Path(__file__).resolve().parent / ".env.test"
if _env_test.exists():
    for raw in _env_test.read_text().splitlines():
        entry = raw.strip()
        if entry and not entry.startswith("#"):
            key, _, value = entry.partition("=")
            os.environ.setdefault(key.strip(), value.strip())

# Tests never reach a real push service or token.
for name in ("REALTIME_URL", "REALTIME_KEY", "API_TOKEN"):
    os.environ.setdefault(name, "")
