"""Global pytest configuration."""

import os

# Required settings must exist before backend.app.main is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DATABASE_PUBLIC_KEY", "test-public-key")
os.environ.setdefault("IDENTITY_URL", "http://identity.test")
