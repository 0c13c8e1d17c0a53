"""Prints low-stock alerts for every active location."""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from field_stock.app import build_services, render_report
from field_stock.config import Config
from field_stock.database.connection import DatabaseConnection
from field_stock.database.schema import initialize_database
from field_stock.inventory.alerts import evaluate_low_stock


def main():
    if not Config.REMOTE_URL:
        print("REMOTE_URL is not configured (set it in .env)")
        sys.exit(1)

    user_truck = sys.argv[1] if len(sys.argv) > 1 else None

    db = DatabaseConnection(Config.DATABASE_PATH)
    initialize_database(db)
    services = build_services(db)
    try:
        services.synchronizer.load()
        report = evaluate_low_stock(services.mirror, user_truck)
        print("\n".join(render_report(report)))
    finally:
        services.remote.close()


if __name__ == "__main__":
    main()
