"""Drops cached settings, categories, trucks, and parts."""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from field_stock.config import Config
from field_stock.database.cache import TieredCache
from field_stock.database.connection import DatabaseConnection
from field_stock.database.schema import initialize_database
from field_stock.database.store import KeyValueStore


def purge_cache():
    """Remove every cached table; login lockout state is kept."""
    db_path = Config.DATABASE_PATH
    if not db_path.exists():
        print(f"Database not found at {db_path}")
        return

    db = DatabaseConnection(db_path)
    initialize_database(db)
    cache = TieredCache(KeyValueStore(db))
    keys = cache.cached_keys()
    cache.purge()
    print(f"Purged {len(keys)} cached table(s): {', '.join(keys) or 'none'}")


if __name__ == "__main__":
    purge_cache()
