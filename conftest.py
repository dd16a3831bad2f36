import os

# Tests build their own engines and redis clients; keep the module-level app
# off any real database or server.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("ENV", "test")
