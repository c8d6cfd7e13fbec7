import argparse
import asyncio
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from meteor_rx.base.capture import PassCapture, PassDirection, PassSide
from meteor_rx.base.config import load_config
from meteor_rx.base.errors import MeteorRxError
from meteor_rx.operators.database.api import PassRecorder
from meteor_rx.operators.orchestrator.api import PassPipeline

logger = logging.getLogger("meteor_rx")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def add_file_logging(log_file: Path) -> None:
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=3)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)


def capture_from_args(args) -> PassCapture:
    return PassCapture(
        sat_name=args.sat_name,
        filename_base=args.filename_base,
        tle_file=Path(args.tle_file),
        epoch_start=args.epoch_start,
        capture_time=args.capture_time,
        max_elevation=args.max_elevation,
        direction=PassDirection(args.direction),
        side=PassSide(args.side),
    )


async def handle_command(args) -> int:
    config = load_config(args.config)

    if args.command == "init-db":
        PassRecorder(config).init_db()
        return 0

    if args.command == "receive":
        pipeline = PassPipeline(config)
        pass_id = await pipeline.run(capture_from_args(args))
        if pass_id is not None:
            logger.info(f"Pass {args.filename_base} stored with id {pass_id}")
        return 0

    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Receive, decode and publish a Meteor-M LRPT pass",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("--config", type=str, default=None, help="Path to the TOML config file")
    parser.add_argument("--log-file", type=Path, default=None, help="Also log to this rotating file")
    subparsers = parser.add_subparsers(dest="command", title="Commands", metavar="<command>")

    # Sub-command 'receive'
    parser_receive = subparsers.add_parser("receive", help="Capture and process one scheduled pass")
    parser_receive.add_argument("sat_name", type=str, help="Satellite name as it appears in the TLE file")
    parser_receive.add_argument("filename_base", type=str, help="Base name for every artifact of the pass")
    parser_receive.add_argument("tle_file", type=str, help="TLE file containing the satellite")
    parser_receive.add_argument("epoch_start", type=int, help="Pass start (Unix seconds)")
    parser_receive.add_argument("capture_time", type=int, help="Capture duration (seconds)")
    parser_receive.add_argument("max_elevation", type=int, help="Maximum elevation of the pass (degrees)")
    parser_receive.add_argument("direction", choices=[d.value for d in PassDirection], help="Pass direction")
    parser_receive.add_argument("side", choices=[s.value for s in PassSide], help="Side of the station (E or W)")

    # Sub-command 'init-db'
    subparsers.add_parser("init-db", help="Create the pass database tables")

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1
    if args.log_file is not None:
        add_file_logging(args.log_file)

    try:
        return asyncio.run(handle_command(args))
    except MeteorRxError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
