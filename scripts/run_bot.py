#!/usr/bin/env python3
"""Stream ticks and optionally run one trading session from the command line.

Usage:
    python scripts/run_bot.py --symbol R_100
    python scripts/run_bot.py --symbol R_50 --trade --stake 0.5 --target 5 --stop-loss 5
"""

import argparse
import sys
import time
from pathlib import Path

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import orjson

from tickbot_app.config.loader import ConfigLoader
from tickbot_app.engine import TradingEngine
from tickbot_app.errors import InvalidStateError
from tickbot_app.logging.config import configure_logging


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Tick digit streaming and trading bot")
    parser.add_argument("--config-dir", help="Directory holding settings.yaml")
    parser.add_argument("--symbol", help="Symbol to stream, e.g. R_100")
    parser.add_argument("--trade", action="store_true", help="Start a trading session once connected")
    parser.add_argument("--stake", type=float, help="Initial stake")
    parser.add_argument("--target", type=float, help="Take-profit target")
    parser.add_argument("--stop-loss", type=float, help="Stop-loss limit (positive)")
    parser.add_argument("--strategy", choices=["even_odd", "over_under", "differs"])
    parser.add_argument("--sink", choices=["logging", "stdout", "null"])
    parser.add_argument("--log-level", default=None)
    parser.add_argument("--json-logs", action="store_true")
    parser.add_argument("--status-every", type=float, default=30.0, help="Seconds between status lines")
    return parser.parse_args(argv)


def build_overrides(args: argparse.Namespace) -> dict:
    overrides: dict = {}
    session = {
        "symbol": args.symbol,
        "initial_stake": args.stake,
        "target_profit": args.target,
        "stop_loss": args.stop_loss,
    }
    session = {k: v for k, v in session.items() if v is not None}
    if session:
        overrides["session"] = session
    if args.strategy:
        overrides["strategy"] = {"name": args.strategy}
    if args.sink:
        overrides["delivery"] = {"sink": args.sink}
    return overrides


def main(argv=None) -> int:
    args = parse_args(argv)

    overrides = build_overrides(args)
    logging_params = ConfigLoader.create(args.config_dir).build_config(overrides).logging
    configure_logging(
        level=args.log_level or logging_params.level,
        format_json=args.json_logs or logging_params.format_json,
    )

    engine = TradingEngine(config_dir=args.config_dir, overrides=overrides)

    engine.manager.start_background()
    engine.start_streaming(args.symbol)

    try:
        if args.trade:
            if not engine.wait_for_connection(timeout=60):
                print("❌ Could not connect within 60s", file=sys.stderr)
                return 1
            try:
                engine.start_trading()
            except InvalidStateError as e:
                print(f"❌ Could not start trading: {e}", file=sys.stderr)
                return 1

        last_status = time.monotonic()
        while True:
            time.sleep(0.5)
            session = engine.controller.session
            if args.trade and session is not None and session.is_terminal:
                print(orjson.dumps(engine.status(), option=orjson.OPT_INDENT_2).decode())
                return 0 if session.status.value == "completed" else 2
            if time.monotonic() - last_status >= args.status_every:
                print(orjson.dumps(engine.status()).decode())
                last_status = time.monotonic()
    except KeyboardInterrupt:
        print("\n⏹ Interrupted, shutting down...")
        return 0
    finally:
        engine.shutdown()


if __name__ == "__main__":
    sys.exit(main())
