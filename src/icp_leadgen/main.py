# main.py
"""Command-line entry point for the ICP lead generation worker.

Examples:
    icp-leadgen create --icp-file icp.json --target 50 --run
    icp-leadgen run lg_1700000000000_abc123xyz
    icp-leadgen get lg_1700000000000_abc123xyz
"""

import argparse
import asyncio
import json
import sys
from typing import Any, Dict, Optional

from pydantic import ValidationError

from .config import ConfigError, config
from .logging_utils import get_logger, setup_logging
from .models import Icp, LeadgenJobInput, LeadgenLimits
from .service import create_job, get_job, run_worker


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser instance.
    """
    parser = argparse.ArgumentParser(
        prog="icp-leadgen",
        description="Turn an Ideal Customer Profile into a deduplicated lead list",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    create = subparsers.add_parser("create", help="Create a queued job")
    create.add_argument(
        "--icp-file",
        required=True,
        help="JSON file with an ICP, or a full job input with an 'icp' key",
    )
    create.add_argument("--job-id", default=None, help="Job id (default: generated)")
    create.add_argument(
        "--target",
        type=int,
        default=None,
        help=f"Target lead count (default: {config.LEADGEN_TARGET_LEADS})",
    )
    create.add_argument(
        "--max-runtime-ms",
        type=int,
        default=None,
        help=f"Runtime budget in ms (default: {config.LEADGEN_MAX_RUNTIME_MS})",
    )
    create.add_argument(
        "--run",
        action="store_true",
        help="Run the worker right after creating the job",
    )

    run = subparsers.add_parser("run", help="Run the worker for a job")
    run.add_argument("job_id", help="Job id")
    run.add_argument(
        "--input-file",
        default=None,
        help="Run with this job input instead of the stored one",
    )

    get = subparsers.add_parser("get", help="Print a job's result")
    get.add_argument("job_id", help="Job id")

    return parser


def _load_json(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_job_input(path: str) -> LeadgenJobInput:
    """Read a job input file; a bare ICP object is accepted too."""
    data = _load_json(path)
    if isinstance(data, dict) and any(
        k in data for k in ("icp", "segment_icps", "limits", "minio_payload")
    ):
        return LeadgenJobInput.model_validate(data)
    return LeadgenJobInput(icp=Icp.model_validate(data))


def _print_result(job_id: str) -> int:
    result = get_job(job_id)
    if result is None:
        print(json.dumps({"error": "Job not found", "job_id": job_id}))
        return 1
    print(result.model_dump_json(indent=2))
    return 0 if result.status.value != "failed" else 1


def _check_run_config() -> None:
    """Fail early without an Apollo key; storage is optional."""
    config.validate_for_search()
    try:
        config.validate_for_storage()
    except ConfigError as e:
        get_logger(__name__).warning(f"{e}. CSV export and import document updates are skipped")


def _create(args: argparse.Namespace) -> int:
    job_input = load_job_input(args.icp_file)
    limits = job_input.limits.model_dump()
    if args.target is not None:
        limits["target_leads"] = args.target
    if args.max_runtime_ms is not None:
        limits["max_runtime_ms"] = args.max_runtime_ms
    job_input = job_input.model_copy(update={"limits": LeadgenLimits(**limits)})

    record = create_job(args.job_id, job_input)
    if not args.run:
        print(json.dumps({"job_id": record.job_id, "status": record.status.value}))
        return 0

    _check_run_config()
    asyncio.run(run_worker(record.job_id))
    return _print_result(record.job_id)


def _run(args: argparse.Namespace) -> int:
    job_input: Optional[LeadgenJobInput] = None
    if args.input_file:
        job_input = load_job_input(args.input_file)
    _check_run_config()
    asyncio.run(run_worker(args.job_id, job_input))
    return _print_result(args.job_id)


def main(argv: Optional[list] = None) -> int:
    """Main entry point for the CLI.

    Returns:
        Exit code (0 for success, 1 for failure).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(
        level="DEBUG" if args.debug else config.LOG_LEVEL.upper(),
        structured=not config.is_development(),
    )
    logger = get_logger(__name__)

    try:
        if args.command == "create":
            return _create(args)
        if args.command == "run":
            return _run(args)
        return _print_result(args.job_id)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        print(json.dumps({"error": str(e)}))
        return 1
    except (OSError, ValueError, ValidationError) as e:
        logger.error(f"Invalid input: {e}")
        print(json.dumps({"error": str(e)}))
        return 1


if __name__ == "__main__":
    sys.exit(main())
