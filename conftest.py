"""Root conftest: pins settings for the test run before group_sync is imported."""
from __future__ import annotations

import os

_TEST_ENV = {
    "ACCESS_TOKEN": "",
    "JWT_SECRET": "test-secret",
    "BACKEND_API_URL": "http://backend.test/api",
    "REDIS_URL": "redis://localhost:6379/15",
    "WS_HEARTBEAT_SECONDS": "3600",
}

for key, value in _TEST_ENV.items():
    os.environ.setdefault(key, value)
