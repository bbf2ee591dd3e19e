"""
PlanSync entry point.

Runs one sync command against the local task cache, or stays resident and
catches up pending changes whenever the device is online.
"""

from __future__ import annotations

import argparse
import getpass
import logging
import signal
import sys

from plansync.bootstrap import build_coordinator, build_identity
from plansync.config import Settings, load_settings
from plansync.logging_setup import setup_logging

logger = logging.getLogger("plansync.main")

ONE_SHOT_COMMANDS = {
    "pull": "load_tasks_for_user",
    "sync": "sync_pending_tasks",
    "export": "export_to_backup",
    "import": "import_from_backup",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="plansync", description="Offline-first task sync")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="show cached and pending task counts")
    for name in ONE_SHOT_COMMANDS:
        sub.add_parser(name, help=f"run '{name}' once and exit")
    sub.add_parser("run", help="stay resident and sync periodically")
    login = sub.add_parser("login", help="sign in with email and password")
    login.add_argument("email")
    sub.add_parser("logout", help="forget the stored session")
    reset = sub.add_parser("reset-password", help="send a password reset email")
    reset.add_argument("email")
    return parser


def _run_resident(settings: Settings, coordinator) -> int:
    from PyQt6.QtCore import QCoreApplication

    from plansync.sync_worker import SyncScheduler, SyncWorker

    app = QCoreApplication(sys.argv)
    app.setApplicationName("PlanSync")
    worker = SyncWorker(coordinator)
    worker.notice.connect(lambda text: logger.info("%s", text))
    worker.sync_error.connect(lambda text: logger.warning("%s", text))
    scheduler = SyncScheduler(worker, interval_ms=settings.sync_interval_ms)
    scheduler.start()
    worker.initial_sync()

    signal.signal(signal.SIGINT, lambda *_: app.quit())
    try:
        return app.exec()
    finally:
        scheduler.stop()
        coordinator.shutdown()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    setup_logging(str(settings.data_dir), settings.log_level)

    if args.command in ("login", "logout", "reset-password"):
        identity = build_identity(settings)
        if args.command == "logout":
            identity.sign_out()
            return 0
        if args.command == "reset-password":
            return 0 if identity.send_password_reset(args.email) else 1
        return 0 if identity.sign_in(args.email, getpass.getpass("Password: ")) else 1

    coordinator = build_coordinator(settings)
    if args.command == "run":
        return _run_resident(settings, coordinator)

    try:
        if args.command == "status":
            print(f"user:    {coordinator.identity.current_user_id() or 'guest'}")
            print(f"tasks:   {len(coordinator.get_all_tasks())}")
            print(f"today:   {len(coordinator.get_today_tasks())}")
            print(f"pending: {coordinator.get_pending_sync_count()}")
            print(f"backup:  {coordinator.get_backup_bin_id() or '-'}")
            return 0

        operation = getattr(coordinator, ONE_SHOT_COMMANDS[args.command])
        result = operation().result()
        print(result.message or result.status.value)
        return 0 if result.ok else 1
    finally:
        coordinator.shutdown()


if __name__ == "__main__":
    sys.exit(main())
