import os

# Default to an in-memory SQLite database and a non-default secret for tests
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "x" * 32)
os.environ.setdefault("ENVIRONMENT", "test")
