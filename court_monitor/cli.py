import argparse
import logging
import sys
import time

from court_monitor import config, messages, run, telegram_notifier
from court_monitor.exceptions import ConfigurationError

# --- Logging Setup ---

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool):
    """Configures logging to stderr with local time."""
    level = logging.DEBUG if verbose else logging.INFO
    handler = logging.StreamHandler(sys.stderr)
    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s]: %(name)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    # Use local time instead of UTC for logging
    formatter.converter = time.localtime
    handler.setFormatter(formatter)

    logging.basicConfig(
        level=level,
        handlers=[handler],
    )


def parse_arguments():
    """Parses command line arguments."""
    parser = argparse.ArgumentParser(description="Monitor court availability and notify via Telegram.")
    parser.add_argument("--once", action="store_true", help="Run a single manual check and exit.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging.")
    return parser.parse_args()


def main():
    args = parse_arguments()
    setup_logging(args.verbose)

    try:
        config.validate()
    except ConfigurationError as e:
        logger.error(f"Error starting monitoring: {e}")
        # Best effort; skipped when the Telegram settings are what is missing
        telegram_notifier.send_telegram_message(messages.startup_error(e))
        sys.exit(1)

    if args.once:
        sys.exit(0 if run.run_once() else 1)
    run.run()


if __name__ == "__main__":
    main()
