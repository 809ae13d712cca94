import logging
import sys


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure logging for scheduled/cron output."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
    )
    # urllib3 logs every retry/connection at DEBUG; keep it quiet unless asked.
    if level.upper() != "DEBUG":
        logging.getLogger("urllib3").setLevel(logging.WARNING)
    return logging.getLogger("hubsync")
