"""Command line entry point for the ad watchdog."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import json
import os
import sys
import time
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from pydantic import ValidationError

from adwatch.config.environment import EnvironmentConfig
from adwatch.config.exceptions import ConfigurationError
from adwatch.config.loader import load_config
from adwatch.config.models import AppConfig
from adwatch.domain.models import AdEvent
from adwatch.logging import get_logger
from adwatch.logging.config import configure_logging
from adwatch.matching.engine import CriteriaMatcher
from adwatch.notifications import NotificationDispatcher, SMTPMailTransport
from adwatch.persistence.database import close_database, init_database
from adwatch.users import UserDirectoryError, UserServiceClient
from adwatch.watchdog import (
    EventWorkerPool,
    WatchdogCoordinator,
    WatchdogError,
    error_response,
    registration_response,
)

logger = get_logger(__name__, component="cli")

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="adwatch",
        description="Ad Watchdog - alerts VIP users about new listings matching their watchdogs",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml or config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=LOG_LEVELS,
        help="Log level (overrides config and environment)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    register = subparsers.add_parser("register", help="Set up a watchdog for a user")
    register.add_argument("--owner", required=True, help="Owning user id")
    register.add_argument("--keyword", default=None, help="Keyword to look for")
    register.add_argument("--category", type=int, default=None, help="Category id")
    register.add_argument("--price-min", type=float, default=None, help="Minimum price")
    register.add_argument("--price-max", type=float, default=None, help="Maximum price")

    list_cmd = subparsers.add_parser("list", help="List a user's watchdogs")
    list_cmd.add_argument("--owner", required=True, help="Owning user id")
    list_cmd.add_argument(
        "--all", action="store_true", help="Include watchdogs deactivated after a privilege loss"
    )

    delete = subparsers.add_parser("delete", help="Delete one of a user's watchdogs")
    delete.add_argument("--owner", required=True, help="Owning user id")
    delete.add_argument("--id", required=True, dest="criteria_id", help="Watchdog id")

    process = subparsers.add_parser(
        "process-events", help="Evaluate ad events read from a JSON-lines file"
    )
    process.add_argument(
        "--events", type=Path, required=True, help="File with one ad event JSON object per line"
    )

    return parser


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and resolve the effective log level.

    Log level priority: CLI > LOG_LEVEL environment variable > config file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level or "INFO"

    return app_config, env_config


def build_coordinator(app_config: AppConfig, env_config: EnvironmentConfig) -> WatchdogCoordinator:
    """Wire the user directory, mail transport, dispatcher and coordinator."""
    user_directory = UserServiceClient(
        base_url=app_config.user_directory.base_url,
        timeout=app_config.user_directory.http_request_timeout,
        user_agent=app_config.user_directory.user_agent,
        token=env_config.user_service_token,
        elevated_role=app_config.watchdog.elevated_role,
    )
    transport = SMTPMailTransport(
        user_directory=user_directory,
        env_config=env_config,
        use_tls=app_config.email.use_tls,
    )
    dispatcher = NotificationDispatcher(transport=transport, email_config=app_config.email)

    return WatchdogCoordinator(
        user_directory=user_directory,
        dispatcher=dispatcher,
        matcher=CriteriaMatcher(),
        config=app_config.watchdog,
    )


def read_events(path: Path) -> Tuple[List[AdEvent], int]:
    """
    Parse a JSON-lines file of ad events.

    Blank lines are ignored. Malformed lines are logged and counted, not fatal.

    Returns:
        Tuple of (parsed events, number of malformed lines)
    """
    events = []
    invalid = 0

    with open(path, "r", encoding="utf-8") as f:
        for line_number, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                events.append(AdEvent.model_validate_json(line))
            except ValidationError as e:
                invalid += 1
                logger.error(
                    f"Skipping malformed event on line {line_number}: {e.error_count()} error(s)",
                    extra={
                        "event": "cli.events.invalid",
                        "line": line_number,
                        "errors": [err["msg"] for err in e.errors()],
                    },
                )

    return events, invalid


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def cmd_register(args, coordinator: WatchdogCoordinator) -> int:
    proposal = {
        "keyword": args.keyword,
        "category_id": args.category,
        "price_min": args.price_min,
        "price_max": args.price_max,
    }
    try:
        criteria = coordinator.register_criteria(args.owner, proposal)
    except WatchdogError as e:
        _print_json(error_response(e))
        return 1

    _print_json({**registration_response(criteria), "id": criteria.id})
    return 0


def cmd_list(args, coordinator: WatchdogCoordinator) -> int:
    criteria = coordinator.list_criteria(args.owner, include_inactive=args.all)
    _print_json([c.model_dump(mode="json") for c in criteria])
    return 0


def cmd_delete(args, coordinator: WatchdogCoordinator) -> int:
    try:
        coordinator.delete_criteria(args.owner, args.criteria_id)
    except WatchdogError as e:
        _print_json(error_response(e))
        return 1

    _print_json({"success": "Watchdog has been deleted successfully"})
    return 0


def cmd_process_events(args, coordinator: WatchdogCoordinator, app_config: AppConfig) -> int:
    events, invalid = read_events(args.events)

    with EventWorkerPool(coordinator, max_workers=app_config.watchdog.max_workers) as pool:
        outcomes = pool.process(events)

    failed = sum(1 for outcome in outcomes if not outcome.succeeded)
    alerted = sum(len(o.result.notified_owners) for o in outcomes if o.result is not None)

    logger.info(
        f"Processed {len(outcomes)} event(s): {alerted} alert(s) sent, "
        f"{failed} event(s) with errors, {invalid} malformed line(s)",
        extra={
            "event": "cli.events.completed",
            "events": len(outcomes),
            "alerts_sent": alerted,
            "failed": failed,
            "invalid": invalid,
        },
    )
    return 1 if failed or invalid else 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main entry point for the ad watchdog CLI.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    start_time = time.time()
    args = build_parser().parse_args(argv)

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)

        environment = os.environ.get("ENVIRONMENT", "local")
        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=environment,
        )

        logger.info(
            f"Ad watchdog starting: {args.command}",
            extra={
                "event": "service.starting",
                "command": args.command,
                "log_level": env_config.log_level,
            },
        )

        init_database(env_config.database_url)
        coordinator = build_coordinator(app_config, env_config)

        try:
            if args.command == "register":
                exit_code = cmd_register(args, coordinator)
            elif args.command == "list":
                exit_code = cmd_list(args, coordinator)
            elif args.command == "delete":
                exit_code = cmd_delete(args, coordinator)
            else:
                exit_code = cmd_process_events(args, coordinator, app_config)
        finally:
            close_database()

        logger.info(
            "Ad watchdog stopped",
            extra={
                "event": "service.stopping",
                "exit_code": exit_code,
                "uptime_seconds": round(time.time() - start_time, 2),
            },
        )
        return exit_code

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        return 1
    except UserDirectoryError as e:
        print(f"User directory unavailable: {e}", file=sys.stderr)
        logger.error(
            f"User directory unavailable: {e}",
            extra={"event": "user_directory.unavailable", "url": e.url},
        )
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "Fatal error",
            extra={
                "event": "service.failed",
                "error_type": type(e).__name__,
                "error": str(e),
            },
            exc_info=True,
        )
        return 1


if __name__ == "__main__":
    sys.exit(main())
