"""Local demo master that "processes" a file by copying it."""

from __future__ import annotations

import argparse
import shutil
import sys
from pathlib import Path


def main(argv: list[str] | None = None) -> int:
    """Copy input to output and report the workers it was given."""

    parser = argparse.ArgumentParser()
    parser.add_argument("mode", choices=("encrypt", "decrypt"))
    parser.add_argument("input")
    parser.add_argument("output")
    parser.add_argument("workers", nargs="*")
    args = parser.parse_args(argv)

    print(f"Master {args.mode}: {args.input} -> {args.output}", flush=True)
    print(f"Workers: {', '.join(args.workers) or '-'}", flush=True)
    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(args.input, output)
    print(f"Wrote {output.stat().st_size} bytes", flush=True)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
