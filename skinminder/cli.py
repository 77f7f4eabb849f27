#!/usr/bin/env python3
"""
Skinminder Command Line Interface

Main entry point for the `skinminder` command.

Usage:
    skinminder prefs show                              # Current reminder preferences
    skinminder prefs enable routine_reminder           # Turn a category on
    skinminder prefs frequency progress_reminder weekly
    skinminder prefs time 08:30                        # Preferred reminder time
    skinminder auth request                            # Ask for notification permission
    skinminder reconcile                               # Re-sync pending reminders
    skinminder test daily_photo_reminder               # Send a reminder right now
    skinminder pending                                 # List pending reminders
    skinminder parse --file reply.txt                  # Extract routine steps
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from skinminder import __version__
from skinminder.config_models import load_notifications_config, parse_clock_time
from skinminder.logging_config import bind_context, get_logger, setup_logging
from skinminder.notifications.delivery import SqliteDeliveryAuthority
from skinminder.notifications.engine import NotificationEngine
from skinminder.notifications.models import (
    DispatchError,
    Frequency,
    NotificationCategory,
    PersistError,
)
from skinminder.routines.parser import RoutinePlan, parse_routine_text


CATEGORY_CHOICES = [category.value for category in NotificationCategory]
FREQUENCY_CHOICES = [frequency.value for frequency in Frequency]

logger = get_logger(__name__)


def _print(payload: dict) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _build_engine(args) -> NotificationEngine:
    config = getattr(args, "config", None) or load_notifications_config()
    engine = NotificationEngine.create(config=config, db_path=args.db)
    asyncio.run(engine.authorization.refresh())
    return engine


def _preferences_payload(engine: NotificationEngine) -> dict:
    return {
        "success": True,
        "preferences": engine.load_preferences().to_dict(),
        "authorization": engine.current_authorization_state().value,
        "unsaved": engine.store.dirty,
    }


def cmd_version(args):
    """Print the installed version."""
    print(f"skinminder {__version__}")


def cmd_prefs(args):
    """Show or change reminder preferences."""
    engine = _build_engine(args)
    category = NotificationCategory(args.category) if getattr(args, "category", None) else None

    if args.prefs_command == "enable":
        engine.set_category_enabled(category, True)
    elif args.prefs_command == "disable":
        engine.set_category_enabled(category, False)
    elif args.prefs_command == "frequency":
        engine.set_category_frequency(category, Frequency(args.frequency))
    elif args.prefs_command == "time":
        try:
            preferred = parse_clock_time(args.time)
        except ValueError as e:
            _print({"success": False, "error": str(e)})
            return 1
        engine.set_preferred_time(preferred)
    elif args.prefs_command == "reset":
        engine.reset_preferences()

    payload = _preferences_payload(engine)
    if engine.last_report is not None:
        payload["reconcile"] = engine.last_report.to_dict()
    _print(payload)


def cmd_auth(args):
    """Show or request notification permission."""
    engine = _build_engine(args)

    if args.auth_command == "request":
        granted = asyncio.run(engine.request_authorization())
        _print({
            "success": True,
            "granted": granted,
            "authorization": engine.current_authorization_state().value,
        })
        return

    _print({"success": True, "authorization": engine.current_authorization_state().value})


def cmd_reconcile(args):
    """Bring pending reminders in line with preferences."""
    engine = _build_engine(args)
    report = engine.reconcile()
    _print({"success": True, "report": report.to_dict()})


def cmd_test(args):
    """Send a category's reminder immediately."""
    engine = _build_engine(args)
    try:
        delivery_id = engine.send_test_notification(NotificationCategory(args.category))
    except DispatchError as e:
        _print({"success": False, "error": str(e)})
        return 1
    _print({"success": True, "delivery_id": delivery_id})


def cmd_pending(args):
    """List reminders waiting to fire."""
    engine = _build_engine(args)
    pending = engine.pending_notifications()
    _print({
        "success": True,
        "count": len(pending),
        "pending": [delivery.to_dict() for delivery in pending],
    })


def cmd_fire_due(args):
    """Fire reminders whose time has passed, then schedule their next cycle."""
    engine = _build_engine(args)
    authority = engine.dispatcher.authority
    if not isinstance(authority, SqliteDeliveryAuthority):
        _print({"success": False, "error": "Delivery authority does not support firing"})
        return 1

    fired = authority.fire_due(engine.dispatcher.clock())
    report = engine.reconcile()
    _print({
        "success": True,
        "fired": [delivery.to_dict() for delivery in fired],
        "report": report.to_dict(),
    })


def cmd_cancel_all(args):
    """Cancel every pending reminder."""
    engine = _build_engine(args)
    removed = engine.cancel_all_notifications()
    _print({"success": True, "cancelled": removed})


def cmd_parse(args):
    """Extract routine steps from a reply (file or stdin)."""
    if args.file:
        text = Path(args.file).read_text(encoding="utf-8")
    else:
        text = sys.stdin.read()

    result = parse_routine_text(text)
    if isinstance(result, RoutinePlan):
        _print({"success": True, "kind": "routine", "routine": result.to_dict()})
    else:
        _print({"success": True, "kind": "plain", "text": result.text})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="skinminder",
        description="Skinminder - local skincare reminders and routine extraction",
    )
    parser.add_argument(
        "--version", "-V", action="store_true", help="Show version and exit"
    )
    parser.add_argument(
        "--db", default=None, help="Database file (default: from args/notifications.yaml)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # prefs subcommand
    prefs_parser = subparsers.add_parser("prefs", help="Reminder preferences")
    prefs_subparsers = prefs_parser.add_subparsers(dest="prefs_command", help="Preference commands")

    prefs_show = prefs_subparsers.add_parser("show", help="Show current preferences")
    prefs_show.set_defaults(func=cmd_prefs)

    for name, help_text in (("enable", "Enable a category"), ("disable", "Disable a category")):
        toggle = prefs_subparsers.add_parser(name, help=help_text)
        toggle.add_argument("category", choices=CATEGORY_CHOICES)
        toggle.set_defaults(func=cmd_prefs)

    prefs_frequency = prefs_subparsers.add_parser("frequency", help="Set a category's cadence")
    prefs_frequency.add_argument("category", choices=CATEGORY_CHOICES)
    prefs_frequency.add_argument("frequency", choices=FREQUENCY_CHOICES)
    prefs_frequency.set_defaults(func=cmd_prefs)

    prefs_time = prefs_subparsers.add_parser("time", help="Set preferred reminder time (HH:MM)")
    prefs_time.add_argument("time")
    prefs_time.set_defaults(func=cmd_prefs)

    prefs_reset = prefs_subparsers.add_parser("reset", help="Restore default preferences")
    prefs_reset.set_defaults(func=cmd_prefs)

    # auth subcommand
    auth_parser = subparsers.add_parser("auth", help="Notification permission")
    auth_subparsers = auth_parser.add_subparsers(dest="auth_command", help="Permission commands")
    auth_status = auth_subparsers.add_parser("status", help="Show permission state")
    auth_status.set_defaults(func=cmd_auth)
    auth_request = auth_subparsers.add_parser("request", help="Ask for permission")
    auth_request.set_defaults(func=cmd_auth)

    reconcile_parser = subparsers.add_parser("reconcile", help="Re-sync pending reminders")
    reconcile_parser.set_defaults(func=cmd_reconcile)

    test_parser = subparsers.add_parser("test", help="Send a test reminder now")
    test_parser.add_argument("category", choices=CATEGORY_CHOICES)
    test_parser.set_defaults(func=cmd_test)

    pending_parser = subparsers.add_parser("pending", help="List pending reminders")
    pending_parser.set_defaults(func=cmd_pending)

    fire_parser = subparsers.add_parser("fire-due", help="Fire reminders that are due")
    fire_parser.set_defaults(func=cmd_fire_due)

    cancel_parser = subparsers.add_parser("cancel-all", help="Cancel every pending reminder")
    cancel_parser.set_defaults(func=cmd_cancel_all)

    parse_parser = subparsers.add_parser("parse", help="Extract routine steps from text")
    parse_parser.add_argument("--file", "-f", help="Read text from file instead of stdin")
    parse_parser.set_defaults(func=cmd_parse)

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        cmd_version(args)
        return

    if not args.command or not hasattr(args, "func"):
        parser.print_help()
        return

    args.config = load_notifications_config()
    setup_logging(
        level=args.config.logging.level,
        json_output=args.config.logging.format == "json",
    )
    bind_context(command=args.command)

    try:
        result = args.func(args)
    except (DispatchError, PersistError) as e:
        logger.error("command_failed", error=str(e))
        _print({"success": False, "error": str(e)})
        result = 1

    # Commands may return an exit code
    if isinstance(result, int) and result != 0:
        sys.exit(result)


if __name__ == "__main__":
    main()
