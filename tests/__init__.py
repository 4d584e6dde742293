import os

# Settings are read at import time; keep the default engine in memory
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "x" * 48)
os.environ.setdefault("LOG_LEVEL", "WARNING")
