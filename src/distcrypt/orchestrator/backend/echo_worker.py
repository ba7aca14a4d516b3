"""Local demo worker that idles on its bind address until terminated."""

from __future__ import annotations

import argparse
import signal
import sys
import time


def main(argv: list[str] | None = None) -> int:
    """Announce the address, then sleep until SIGTERM/SIGINT."""

    parser = argparse.ArgumentParser()
    parser.add_argument("address")
    args = parser.parse_args(argv)

    stop_requested = False

    def _handler(signum: int, _: object | None) -> None:
        nonlocal stop_requested
        stop_requested = True

    signal.signal(signal.SIGTERM, _handler)
    signal.signal(signal.SIGINT, _handler)

    print(f"Worker listening on {args.address}", flush=True)
    while not stop_requested:
        time.sleep(0.05)
    print(f"Worker on {args.address} shutting down", flush=True)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
