# PURPOSE: Main entry point for the application. Run this file (as root for packet capture).
# ==============================================================================
import argparse
import logging
from dataclasses import dataclass
from typing import Optional
from threading import Event, Thread

import uvicorn

from dashboard.api import create_app
from dashboard.processes import PROCESS_PREFIX, ProcessList

logger = logging.getLogger("vsmtop")


@dataclass
class Settings:
    host: str = "127.0.0.1"
    port: int = 8000
    interval: float = 1.0
    prefix: str = PROCESS_PREFIX
    show_all: bool = False
    log_level: str = "INFO"
    log_file: Optional[str] = None


def parse_args(argv=None) -> Settings:
    parser = argparse.ArgumentParser(description="Storage server process monitor with per-process network rates")
    parser.add_argument("--host", default=Settings.host, help="Address to serve the dashboard on")
    parser.add_argument("--port", type=int, default=Settings.port)
    parser.add_argument("--interval", type=float, default=Settings.interval,
                        help="Refresh interval in seconds (default: 1)")
    parser.add_argument("--prefix", default=Settings.prefix,
                        help=f"Track processes whose name starts with this (default: {PROCESS_PREFIX})")
    parser.add_argument("--all", dest="show_all", action="store_true", help="Track every process")
    parser.add_argument("--log-level", default=Settings.log_level,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--log-file", default=None, help="Write logs here instead of stderr")
    args = parser.parse_args(argv)
    return Settings(
        host=args.host, port=args.port, interval=max(0.1, args.interval),
        prefix=args.prefix, show_all=args.show_all,
        log_level=args.log_level, log_file=args.log_file,
    )


def main(argv=None):
    settings = parse_args(argv)
    logging.basicConfig(
        filename=settings.log_file,
        level=settings.log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    # --- Initialization ---
    processes = ProcessList(prefix=settings.prefix, interval=settings.interval, show_all=settings.show_all)

    # --- Start Background Tasks ---
    stop = Event()
    ticker_thread = Thread(target=processes.run, args=(stop,), name="ticker", daemon=True)
    ticker_thread.start()

    print("\n--- vsmtop ---")
    print(f"==> Open your browser to: http://{settings.host}:{settings.port} <==")
    print("--------------")

    try:
        uvicorn.run(create_app(processes), host=settings.host, port=settings.port,
                    log_level=settings.log_level.lower())
    finally:
        stop.set()
        processes.close()
        print("Monitoring stopped.")


if __name__ == '__main__':
    main()
