"""Root conftest — shared test configuration."""

import os

# Ensure tests never reach a real database or probe one at import time
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)
os.environ.setdefault("TRANSACTION_MODE", "atomic")
os.environ.setdefault("LOG_FORMAT", "text")
