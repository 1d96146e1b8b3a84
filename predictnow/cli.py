from __future__ import annotations

import argparse
import asyncio
import json
import logging

from predictnow.config.settings import get_settings
from predictnow.core.predictnow_client import PredictNowClient

_LISTERS = {
    "returns": "list_returns_files",
    "constraint": "list_constraint_files",
    "features": "list_features_files",
}


async def _run(args: argparse.Namespace) -> int:
    settings = get_settings()
    if args.interval is not None:
        settings = settings.model_copy(update={"poll_interval_seconds": args.interval})
    if args.attempts is not None:
        settings = settings.model_copy(update={"poll_max_attempts": args.attempts})

    async with PredictNowClient(settings) as client:
        if args.command == "connected":
            ok = await client.connected()
            print("connected" if ok else "not connected")
            return 0 if ok else 1
        if args.command == "list-files":
            files = await getattr(client, _LISTERS[args.file_type])()
            print(json.dumps(files, indent=2))
            return 0
        if args.command == "status":
            job = await client.get_job_for_id(args.job_id)
            print(job)
            return 1 if job.is_null else 0
        if args.command == "wait":
            job = await client.wait_for_job(args.job_id)
            print(job)
            return 0 if job.succeeded else 2
        if args.command == "training-status":
            status = await client.get_training_status(args.train_id)
            print(status)
            return 1 if status.is_null else 0
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="PredictNow CPO/CAI job client.")
    parser.add_argument("--verbose", action="store_true")
    parser.add_argument("--interval", type=float, default=None, help="Seconds between job polls.")
    parser.add_argument("--attempts", type=int, default=None, help="Maximum number of job polls.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("connected", help="Check the CPO endpoint.")
    list_files = sub.add_parser("list-files", help="List uploaded files of one type.")
    list_files.add_argument("file_type", choices=sorted(_LISTERS))
    status = sub.add_parser("status", help="Show a CPO job.")
    status.add_argument("job_id")
    wait = sub.add_parser("wait", help="Poll a CPO job until SUCCESS or the attempt budget runs out.")
    wait.add_argument("job_id")
    training = sub.add_parser("training-status", help="Show a CAI training status.")
    training.add_argument("train_id")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
