"""Entry point: PIN login, initial load, then one command or background polling."""

import getpass
import logging
import signal
import sys
from dataclasses import dataclass

from PySide6.QtCore import QCoreApplication, QTimer

from field_stock.auth.lockout import PinAuthenticator
from field_stock.auth.session import Session
from field_stock.commands import CommandRunner
from field_stock.config import Config
from field_stock.database.cache import TieredCache
from field_stock.database.connection import DatabaseConnection
from field_stock.database.mirror import InventoryMirror
from field_stock.database.schema import initialize_database
from field_stock.database.store import KeyValueStore
from field_stock.errors import FieldStockError
from field_stock.inventory.admin import CatalogAdmin
from field_stock.inventory.alerts import AlertReport, evaluate_low_stock
from field_stock.inventory.transfers import TransferEngine
from field_stock.remote.client import RemoteStore
from field_stock.sync.scheduler import SyncScheduler
from field_stock.sync.synchronizer import QuantitySynchronizer
from field_stock.utils.constants import APP_NAME, APP_ORGANIZATION, APP_VERSION
from field_stock.utils.formatters import format_currency, format_quantity
from field_stock.utils.location import DeviceLocationProvider

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """The long-lived objects one signed-in run needs."""
    remote: RemoteStore
    store: KeyValueStore
    mirror: InventoryMirror
    synchronizer: QuantitySynchronizer
    authenticator: PinAuthenticator


def build_services(db: DatabaseConnection,
                   remote: RemoteStore | None = None) -> Services:
    remote = remote or RemoteStore()
    store = KeyValueStore(db)
    mirror = InventoryMirror()
    return Services(
        remote=remote,
        store=store,
        mirror=mirror,
        synchronizer=QuantitySynchronizer(remote, mirror, TieredCache(store)),
        authenticator=PinAuthenticator(remote, store),
    )


def render_report(report: AlertReport) -> list[str]:
    """Plain-text lines for a low-stock report."""
    lines = [report.message]
    for section in report.sections:
        title = section.label + (" (your truck)" if section.is_user_truck else "")
        lines.append(f"\n{title}")
        for item in section.items:
            flag = "!!" if item.critical else "  "
            lines.append(
                f" {flag} {item.part.name} [{item.part.id}]  "
                f"{format_quantity(item.current, item.minimum)} / "
                f"{item.minimum}  need {item.needed}"
                f" ({format_currency(item.needed * item.part.price)})"
            )
    return lines


def build_runner(services: Services, session: Session) -> CommandRunner:
    """Transfer engine and catalog admin acting as ``session``."""
    engine = TransferEngine(
        services.remote, services.mirror, session,
        locator=DeviceLocationProvider(),
    )
    admin = CatalogAdmin(services.synchronizer, session)
    return CommandRunner(engine, admin)


def _login(services: Services) -> Session | None:
    pin = getpass.getpass("PIN: ")
    try:
        session, users = services.authenticator.login(pin)
    except FieldStockError as e:
        print(e)
        return None
    services.mirror.users = users
    return session


def main():
    """Log in and load, then run one command or keep quantities fresh.

    ``field-stock <command> ...`` runs a single stock or catalog command
    (``field-stock help`` lists them). Without a command the low-stock
    report is printed and quantities are polled until Ctrl+C; ``--once``
    exits after the first report.
    """
    logging.basicConfig(
        level=Config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("%s %s starting", APP_NAME, APP_VERSION)
    if not Config.REMOTE_URL:
        print("REMOTE_URL is not configured (set it in .env)")
        sys.exit(1)
    command = [a for a in sys.argv[1:] if a != "--once"]

    db = DatabaseConnection(Config.DATABASE_PATH)
    initialize_database(db)

    app = QCoreApplication(sys.argv)
    app.setApplicationName(APP_NAME)
    app.setOrganizationName(APP_ORGANIZATION)

    services = build_services(db)
    session = _login(services)
    if session is None:
        services.remote.close()
        sys.exit(1)

    try:
        services.synchronizer.load()
    except FieldStockError as e:
        print(f"Could not load inventory: {e}")
        services.authenticator.logout(session)
        services.remote.close()
        sys.exit(1)

    print(f"Signed in as {session.name}")
    if command:
        runner = build_runner(services, session)
        status = 0
        if command[0] in ("help", "--help"):
            print("Commands:")
            print("\n".join(runner.usage()))
        else:
            try:
                print("\n".join(runner.run(command)))
            except FieldStockError as e:
                print(e)
                status = 1
        services.authenticator.logout(session)
        services.remote.close()
        sys.exit(status)

    def _print_report():
        report = evaluate_low_stock(services.mirror, session.truck_id)
        print("\n".join(render_report(report)))

    _print_report()
    if "--once" in sys.argv:
        services.authenticator.logout(session)
        services.remote.close()
        sys.exit(0)

    scheduler = SyncScheduler(services.synchronizer)
    scheduler.synced.connect(_print_report)
    scheduler.failed.connect(lambda msg: logger.warning("Sync: %s", msg))
    scheduler.start()

    # Ctrl+C ends the run; the idle timer lets Python see the signal
    signal.signal(signal.SIGINT, lambda *_: app.quit())
    idle = QTimer()
    idle.timeout.connect(lambda: None)
    idle.start(500)
    app.exec()

    scheduler.stop()
    services.authenticator.logout(session)
    services.remote.close()
    sys.exit(0)


if __name__ == "__main__":
    main()
