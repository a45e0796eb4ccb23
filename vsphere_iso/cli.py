#!/usr/bin/env python3
"""CLI for building vSphere VMs from an ISO."""
import argparse
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Callable

from dotenv import load_dotenv

from vsphere_iso.config.loader import load_build_config
from vsphere_iso.config.models import ConfigError
from vsphere_iso.core.build.models import Build, BuildStatus
from vsphere_iso.worker import Worker

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_CANCELLED = 130

EXIT_CODES = {
    BuildStatus.COMPLETED: EXIT_OK,
    BuildStatus.FAILED: EXIT_FAILED,
    BuildStatus.HALTED: EXIT_FAILED,
    BuildStatus.CANCELLED: EXIT_CANCELLED,
}


def setup_logging(debug: bool) -> None:
    level = "DEBUG" if debug else os.getenv("LOG_LEVEL", "WARNING")
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser("vsphere-iso", description="Build vSphere VMs from an ISO")
    parser.add_argument("--debug", action="store_true", help="verbose logging")

    sub = parser.add_subparsers(dest="command", required=True)

    build = sub.add_parser("build", help="run a build")
    build.add_argument("config", type=Path, help="build definition (yaml)")

    validate = sub.add_parser("validate", help="check a build definition")
    validate.add_argument("config", type=Path, help="build definition (yaml)")

    return parser


def install_signal_handlers(worker: Worker) -> Callable[[], None]:
    """
    First SIGINT/SIGTERM cancels the build cooperatively (cleanup runs).
    A second Ctrl-C raises KeyboardInterrupt at once, skipping cleanup.
    Returns a function that puts the previous handlers back.
    """
    previous = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}

    def _handler(signum, frame):
        print("\n⚠️  Interrupt received, cancelling build (cleanup will run)...", file=sys.stderr)
        print("⚠️  Press Ctrl-C again to abort without cleanup.", file=sys.stderr)
        worker.cancel()
        signal.signal(signal.SIGINT, signal.default_int_handler)

    for sig in previous:
        signal.signal(sig, _handler)

    def restore() -> None:
        for sig, handler in previous.items():
            signal.signal(sig, handler if handler is not None else signal.SIG_DFL)

    return restore


def run_build(config_path: Path, worker: Worker) -> int:
    config = load_build_config(str(config_path))

    build = Build(config_path=str(config_path), vm_name=config.create.vm_name)
    restore_signals = install_signal_handlers(worker)
    try:
        result = worker.submit(build, config)
    finally:
        restore_signals()

    print("\n=== BUILD RESULT ===")
    print(f"id: {result.id}")
    print(f"status: {result.status.value}")
    if result.artifact is not None:
        print(f"✅ artifact: {result.artifact}")
    if result.error:
        print(f"❌ error: {result.error}")

    return EXIT_CODES[result.status]


def main(argv=None, worker: Worker = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    setup_logging(args.debug)

    try:
        if args.command == "validate":
            load_build_config(str(args.config))
            print(f"✅ {args.config} is valid")
            return EXIT_OK

        return run_build(args.config, worker or Worker())

    except ConfigError as e:
        print(f"❌ {e}", file=sys.stderr)
        return EXIT_CONFIG


if __name__ == "__main__":
    sys.exit(main())
