"""
Command-line entry point.

Usage:
    game-scout serve --port 8080
    game-scout commands
    game-scout run generateEmbeddings
    game-scout jobs --status failed --limit 20
    game-scout cleanup --days 7
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from .config.settings import Settings
from .errors import UnknownCommandError
from .ops.jobs import JobManager
from .ops.models import JobStatus
from .telemetry import configure_logging


def _manager(settings: Settings) -> JobManager:
    from .api.main import build_job_manager

    return build_job_manager(settings)


def cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    from .api.main import run

    print(f"Starting Game Scout API on {args.host}:{args.port}")
    print(f"API documentation available at: http://localhost:{args.port}/docs")
    run(host=args.host, port=args.port, reload=args.reload)
    return 0


def cmd_commands(args: argparse.Namespace, settings: Settings) -> int:
    manager = _manager(settings)
    try:
        print("Available commands:")
        for name in manager.registry.names():
            print(f"  - {name}")
    finally:
        manager.store.close()
    return 0


async def _run_command(manager: JobManager, command: str) -> dict:
    unit_of_work = manager.registry.get(command)
    job_id = manager.create_job(command)
    await manager.run_job(job_id, unit_of_work)
    return manager.get(job_id).to_dict()


def cmd_run(args: argparse.Namespace, settings: Settings) -> int:
    """Run one command in the foreground under job bookkeeping."""
    manager = _manager(settings)
    try:
        job = asyncio.run(_run_command(manager, args.command))
    except UnknownCommandError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    finally:
        manager.store.close()

    print(json.dumps(job, indent=2))
    return 0 if job["status"] == JobStatus.completed.value else 1


def cmd_jobs(args: argparse.Namespace, settings: Settings) -> int:
    manager = _manager(settings)
    try:
        jobs, stats = manager.list_jobs(
            limit=args.limit,
            offset=args.offset,
            status=args.status,
            command=args.command,
        )
    finally:
        manager.store.close()

    print(f"{'ID':<32} {'Command':<30} {'Status':<10} {'Created':<26}")
    print("=" * 100)
    for job in jobs:
        print(f"{job.id:<32} {job.command:<30} {job.status.value:<10} {job.created_at.isoformat():<26}")
    print("=" * 100)
    print(
        f"pending={stats.pending} running={stats.running} "
        f"completed={stats.completed} failed={stats.failed} total={stats.total}"
    )
    return 0


def cmd_cleanup(args: argparse.Namespace, settings: Settings) -> int:
    days = args.days if args.days is not None else settings.jobs.retention_days
    manager = _manager(settings)
    try:
        removed = manager.cleanup(days)
    finally:
        manager.store.close()
    print(f"🗑️  Removed {removed} jobs older than {days} days")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="game-scout",
        description="Run corpus commands and manage background jobs",
    )
    sub = parser.add_subparsers(dest="action", required=True)

    serve = sub.add_parser("serve", help="Launch the API server")
    serve.add_argument("--host", type=str, default="0.0.0.0", help="Host to bind to")
    serve.add_argument("--port", type=int, default=8000, help="Port to bind to")
    serve.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    serve.set_defaults(func=cmd_serve)

    commands = sub.add_parser("commands", help="List registered commands")
    commands.set_defaults(func=cmd_commands)

    run = sub.add_parser("run", help="Run a command in the foreground")
    run.add_argument("command", help="Command name")
    run.set_defaults(func=cmd_run)

    jobs = sub.add_parser("jobs", help="List jobs")
    jobs.add_argument("--status", choices=[s.value for s in JobStatus], help="Filter by status")
    jobs.add_argument("--command", help="Filter by command")
    jobs.add_argument("--limit", type=int, default=50, help="Maximum jobs to show")
    jobs.add_argument("--offset", type=int, default=0, help="Jobs to skip")
    jobs.set_defaults(func=cmd_jobs)

    cleanup = sub.add_parser("cleanup", help="Delete old jobs")
    cleanup.add_argument("--days", type=float, default=None, help="Age threshold (default: retention setting)")
    cleanup.set_defaults(func=cmd_cleanup)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint."""
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    configure_logging(settings.log_level, settings.log_json)
    return args.func(args, settings)


if __name__ == "__main__":
    sys.exit(main())
