import argparse
import logging
import logging_config  # noqa: F401
import sys
import time

from ad_store import AdStore
from bot_handlers import CommandHandler, UpdateListener
from config import BOT_TOKEN, DB_PATH, POLL_INTERVAL
from database_manager import DatabaseManager
from errors import PersistenceFailure
from notification_manager import Messenger
from poller import Poller
from subscription_registry import SubscriptionRegistry


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Bazaraki Radar - Notify Telegram subscribers about new ads.")
    parser.add_argument(
        "--interval",
        type=float,
        default=POLL_INTERVAL / 1000,
        help="Interval in seconds between polling cycles (default: POLL_INTERVAL from the environment)"
    )
    parser.add_argument(
        "--db",
        default=DB_PATH,
        help="Path of the SQLite database file (default: DB_FILENAME from the environment)"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single polling cycle and exit, without listening for commands"
    )
    return parser.parse_args(argv)


def run_forever(poller: Poller, interval_seconds: float) -> None:
    """
    Runs a cycle right away, then one per interval measured from the start
    of the previous cycle.
    """
    while True:
        started = time.monotonic()
        try:
            poller.run_cycle()
        except Exception as e:
            logging.error(f"An unexpected error occurred: {e}")
        sleep_time = max(0.0, interval_seconds - (time.monotonic() - started))
        logging.info(f"Cycle completed. Sleeping for {sleep_time:.0f} seconds...")
        time.sleep(sleep_time)


def main(argv=None) -> int:
    """
    Main function. Opens the database, starts listening for chat commands
    and polls every subscription on a fixed interval.
    """
    args = parse_args(argv)
    if not BOT_TOKEN:
        logging.critical("BOT_TOKEN is not set. Add it to the environment or the .env file.")
        return 1

    try:
        database = DatabaseManager(args.db)
    except PersistenceFailure as error:
        logging.critical(f"Cannot initialize the database at {args.db}: {error}")
        return 1

    registry = SubscriptionRegistry(database)
    ad_store = AdStore(database)
    messenger = Messenger(BOT_TOKEN)
    poller = Poller(registry, ad_store, messenger)

    if args.once:
        poller.run_cycle()
        return 0

    handler = CommandHandler(poller, registry, messenger)
    listener = UpdateListener(messenger, handler)
    listener.start()
    logging.info(f"Starting Bazaraki Radar. Poll interval: {args.interval:.0f} seconds.")
    try:
        run_forever(poller, args.interval)
    except KeyboardInterrupt:
        logging.info("Stopping Bazaraki Radar...")
        listener.stop()
        handler.close(wait=False)
    return 0


if __name__ == "__main__":
    sys.exit(main())
