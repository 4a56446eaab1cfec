from turnstile_lite.store.sqlite_store import SQLiteStore

__all__ = ["SQLiteStore"]
