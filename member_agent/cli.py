"""
命令行入口

    member-agent list
    member-agent config --validate
    member-agent validate-session
    member-agent run schedule-book --days mon,wed,fri --time "6:00 AM" --confirm
"""

import argparse
import asyncio
import dataclasses
import json
import sys
from typing import Dict, List, Optional

from playwright.async_api import Error as PlaywrightError

from .auth import session_state_exists
from .browser import is_missing_browser_error
from .config import AppConfig, apply_overrides, load_config, redact_config, require_valid_config, validate_config
from .core import MemberAgent
from .errors import ConfigError, FlowAborted
from .flows import FLOWS, get_flow
from .logger import setup_logging

MISSING_BROWSER_HINT = "Playwright 浏览器未安装，请运行: playwright install chromium"


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="member-agent", description="PushPress client CLI for member workflows")
    ap.add_argument("--config", default=".env", help="Path to config file")
    ap.add_argument("--verbose", action="store_true", help="Enable debug logging")
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="List available flows")

    config_cmd = sub.add_parser("config", help="Show resolved configuration (redacted)")
    config_cmd.add_argument("--validate", action="store_true", help="Validate required config values")

    sub.add_parser("validate-session", help="Check if the saved session is still valid")

    run = sub.add_parser("run", help="Execute a named flow")
    run.add_argument("flow", help="Flow name")
    run.add_argument("--headless", dest="headless", action="store_true", help="Run in headless mode (default: true)")
    run.add_argument("--no-headless", dest="headless", action="store_false", help="Run with visible browser")
    run.set_defaults(headless=None)
    run.add_argument("--slow-mo", help="Slow down actions by N ms")
    run.add_argument("--timeout", help="Global timeout in ms")
    run.add_argument("--dry-run", action="store_true", help="Log actions without executing them")
    run.add_argument("--pause", action="store_true", help="Pause before closing the browser")
    run.add_argument("--days", help="Comma-separated days for schedule booking (e.g., mon,wed,fri)")
    run.add_argument("--time", help='Time label to match (e.g., "5:00 PM")')
    run.add_argument("--class", dest="class_name", help="Class name filter (default: CrossFit)")
    run.add_argument("--type", dest="class_type", help="Class type filter (alias for --class)")
    run.add_argument("--category", help="Schedule category (Classes/Appointments/Events/Reservations)")
    run.add_argument("--week", help="Schedule week to target (current/next/2/3...)")
    run.add_argument("--waitlist", action="store_true", help="Allow joining waitlists when class is full")
    run.add_argument("--confirm", action="store_true", help="Confirm and perform booking actions")
    return ap


def flow_params(args: argparse.Namespace) -> Dict[str, Optional[str]]:
    return {
        "days": args.days,
        "time": args.time,
        "class": args.class_name or args.class_type,
        "category": args.category,
        "week": args.week,
        "waitlist": "true" if args.waitlist else "false",
        "confirm": "true" if args.confirm else "false",
    }


def cmd_list() -> int:
    if not FLOWS:
        print("No flows registered.")
        return 0
    print("Available flows:")
    for flow in FLOWS:
        print(f"- {flow.name}: {flow.description}")
    return 0


def cmd_config(config: AppConfig, validate: bool) -> int:
    code = 0
    if validate:
        problems = validate_config(config)
        if problems:
            print("Config errors:", file=sys.stderr)
            for field, message in problems:
                print(f"- {field}: {message}", file=sys.stderr)
            code = 1
        else:
            print("Config is valid.")
    print(json.dumps(dataclasses.asdict(redact_config(config)), indent=2))
    return code


def cmd_validate_session(config: AppConfig, logger) -> int:
    if not session_state_exists(config):
        logger.info("没有找到已保存的会话")
        return 1
    try:
        valid = asyncio.run(MemberAgent(config, logger).validate_session())
    except PlaywrightError as e:
        logger.error(MISSING_BROWSER_HINT if is_missing_browser_error(e) else f"❌ 会话校验失败: {e}")
        return 1
    print("Session is valid." if valid else "Session is invalid.")
    return 0 if valid else 1


def cmd_run(config: AppConfig, args: argparse.Namespace, logger) -> int:
    flow = get_flow(args.flow)
    if flow is None:
        logger.error("❌ 未知流程: %s", args.flow)
        print("Available flows:", file=sys.stderr)
        for available in FLOWS:
            print(f"- {available.name}", file=sys.stderr)
        return 1

    if not args.dry_run:
        try:
            require_valid_config(config)
        except ConfigError as e:
            logger.error("❌ 配置无效: %s", e)
            return 1

    agent = MemberAgent(config, logger)
    try:
        asyncio.run(agent.run(flow, flow_params(args), dry_run=args.dry_run, pause=args.pause))
    except FlowAborted as e:
        logger.error("❌ 运行失败: %s", e)
        return 1
    except PlaywrightError as e:
        logger.error(MISSING_BROWSER_HINT if is_missing_browser_error(e) else f"❌ 运行失败: {e}")
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config(args.config)
    if args.command == "run":
        config = apply_overrides(config, headless=args.headless, slow_mo=args.slow_mo, timeout=args.timeout)
    logger = setup_logging(config.log_level, verbose=args.verbose)

    if args.command == "list":
        logger.debug("列出流程: count=%d", len(FLOWS))
        return cmd_list()
    if args.command == "config":
        return cmd_config(config, args.validate)
    if args.command == "validate-session":
        return cmd_validate_session(config, logger)
    return cmd_run(config, args, logger)


if __name__ == "__main__":
    sys.exit(main())
