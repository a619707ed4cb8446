import os

# --- Config ---
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:3000")
DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "smartform")
# "mongo" or "memory"; memory keeps everything in-process
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "mongo" if DATABASE_URL else "memory")
STORAGE_COLLECTION = os.getenv("STORAGE_COLLECTION", "kv")
PROGRESS_SAVE_DELAY = float(os.getenv("PROGRESS_SAVE_DELAY", "2"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
# Builder and fill sessions kept in memory per kind; the oldest is dropped past this
MAX_SESSIONS = int(os.getenv("MAX_SESSIONS", "200"))
