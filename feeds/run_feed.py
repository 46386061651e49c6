import argparse
import json
import logging
import os
import signal
import sys
import threading
from typing import Iterable, Optional

from .config import SOURCES, get_source
from .db import get_engine
from .pipeline import STATUS_ERROR, IngestionPipeline
from .utils.env import load_env
from .utils.http import make_session
from .utils.logger_utils import setup_logging

LOG = logging.getLogger("feeds.run_feed")


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run one scheduled market data feed")
    parser.add_argument(
        "source",
        nargs="?",
        choices=sorted(SOURCES),
        help="Registered source name (see --list)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle (ignoring business hours) and exit",
    )
    mode.add_argument(
        "--stats",
        action="store_true",
        help="Print the stored row count and the newest record, then exit",
    )
    mode.add_argument(
        "--list",
        action="store_true",
        help="List the registered sources and exit",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("FEEDS_LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )
    args = parser.parse_args(list(argv) if argv is not None else None)
    if not args.list and not args.source:
        parser.error("a source is required unless --list is given")
    return args


def _list_sources() -> None:
    for name in sorted(SOURCES):
        config = SOURCES[name]
        print(
            f"{name:<16} table={config.table:<18} every={config.interval_minutes}min "
            f"window={config.window.label()}  {config.description}"
        )


def _install_signal_handlers(stop: threading.Event, *, exit_now: bool = False) -> None:
    """First SIGINT/SIGTERM finishes the running cycle; a second one exits at once.

    With ``exit_now`` (``--once`` and ``--stats``) the first signal exits.
    """

    def _handle(signum, _frame):
        name = signal.Signals(signum).name
        if exit_now or stop.is_set():
            stop.set()
            LOG.warning("[WARN] FEED_SIGNAL_FORCE signal=%s", name)
            raise SystemExit(0)
        LOG.info("[INFO] FEED_SIGNAL signal=%s stopping after current cycle", name)
        stop.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        signal.signal(signum, _handle)


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(argv)
    if args.list:
        _list_sources()
        return 0

    config = get_source(args.source)
    loaded_files, missing_keys = load_env()
    logger = setup_logging(config.name, str(args.log_level).upper())
    files_repr = f"[{', '.join(loaded_files)}]" if loaded_files else "[]"
    LOG.info("[INFO] ENV_LOADED files=%s", files_repr)
    if missing_keys:
        LOG.warning("[WARN] ENV_MISSING_KEYS=%s", f"[{', '.join(missing_keys)}]")

    stop = threading.Event()
    _install_signal_handlers(stop, exit_now=args.once or args.stats)
    session = make_session()
    try:
        pipeline = IngestionPipeline(config, session=session, engine=get_engine())
        if args.stats:
            print(json.dumps(pipeline.stats(), indent=2, default=str, ensure_ascii=False))
            return 0
        if args.once:
            summary = pipeline.tick()
            return 1 if summary.status == STATUS_ERROR else 0
        pipeline.run_forever(stop)
    except KeyboardInterrupt:
        logger.info("[INFO] FEED_INTERRUPTED source=%s", config.name)
    except Exception:
        logger.exception("[ERROR] FEED_FATAL source=%s", config.name)
        return 1
    finally:
        session.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
