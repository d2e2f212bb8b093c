"""Command-line interface for queueing, publishing and tracking posts.

Usage:
    python -m autoposter.cli <command> [OPTIONS]

Examples:
    # Generate content, then publish it
    python -m autoposter.cli generate --prompt "We hosted a webinar about AI productivity"
    python -m autoposter.cli publish --title "Webinar recap" --content "Thanks for joining!"

    # Schedule a post for later
    python -m autoposter.cli schedule --title "Weekly update" --content "..." --at 2030-01-01T10:00

    # Inspect and retry jobs
    python -m autoposter.cli jobs --status failed
    python -m autoposter.cli logs <job-id>
    python -m autoposter.cli retry <job-id>

    # Follow live job logs for 60 seconds
    python -m autoposter.cli tail --seconds 60

    # Settings
    python -m autoposter.cli settings set apiBaseUrl=https://api.example.com enableLiveLogs=false
"""

import asyncio
import sys
from argparse import ArgumentParser, Namespace
from typing import Optional

import structlog
from pydantic import ValidationError

from autoposter.core.config import AppConfig, configure_logging
from autoposter.core.context import AppContext, build_context
from autoposter.models.job import InvalidStateTransition, JobStatus, PostJob
from autoposter.services.composer import PostDraft, PublishOutcome
from autoposter.services.exceptions import ServiceError

logger = structlog.get_logger(__name__)


def _add_draft_arguments(parser: ArgumentParser) -> None:
    parser.add_argument("--title", default="Untitled Post", help="Post title")
    parser.add_argument("--tags", default="", help="Comma separated tags")
    parser.add_argument("--channel", default="linkedin", help="Target channel")
    parser.add_argument("--prompt", help="Generation brief the content came from")
    parser.add_argument("--content", default="", help="Post content")


def build_parser() -> ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = ArgumentParser(
        prog="autoposter",
        description="Queue, publish and track AI-generated social posts",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("health", help="Probe the publishing API")

    generate = commands.add_parser("generate", help="Generate post content from a brief")
    generate.add_argument("--prompt", required=True, help="Generation brief")
    generate.add_argument("--tags", default="", help="Comma separated skills/tags")

    draft = commands.add_parser("draft", help="Save a draft")
    _add_draft_arguments(draft)

    schedule = commands.add_parser("schedule", help="Schedule a post")
    _add_draft_arguments(schedule)
    schedule.add_argument("--at", dest="scheduled_for", help="ISO-8601 time (default: now)")

    publish = commands.add_parser("publish", help="Publish a new post or an existing job")
    _add_draft_arguments(publish)
    publish.add_argument("--job", dest="job_id", help="Publish this existing job instead")

    jobs = commands.add_parser("jobs", help="List jobs")
    jobs.add_argument("--status", choices=[status.value for status in JobStatus])
    jobs.add_argument("--search", default="", help="Case-insensitive title filter")
    jobs.add_argument("--upcoming", action="store_true", help="Scheduled jobs, soonest first")

    logs = commands.add_parser("logs", help="Show a job's log history")
    logs.add_argument("job_id")

    retry = commands.add_parser("retry", help="Move a job back to the queue")
    retry.add_argument("job_id")

    tail = commands.add_parser("tail", help="Merge live job logs into local history")
    tail.add_argument("--seconds", type=float, help="Stop after this many seconds")

    commands.add_parser("seed", help="Insert demo jobs into an empty store")
    commands.add_parser("reset", help="Clear all jobs and logs")

    settings = commands.add_parser("settings", help="Show or change settings")
    settings_commands = settings.add_subparsers(dest="settings_command", required=True)
    settings_commands.add_parser("show", help="Print current settings")
    settings_set = settings_commands.add_parser("set", help="Update settings (key=value ...)")
    settings_set.add_argument("pairs", nargs="+", metavar="key=value")
    settings_commands.add_parser("reset", help="Restore default settings")

    serve = commands.add_parser("serve-mock", help="Run the mock publishing API")
    serve.add_argument("--host", help="Bind address (default: AUTOPOSTER_MOCK_HOST)")
    serve.add_argument("--port", type=int, help="Port (default: AUTOPOSTER_MOCK_PORT)")

    return parser


def format_job(job: PostJob) -> str:
    """One-line summary of a job."""
    line = f"{job.id}  {job.status.value:<10}  attempts={job.attempts}  {job.title}"
    if job.scheduled_for:
        line += f"  scheduled={job.scheduled_for}"
    if job.error_message:
        line += f"  error={job.error_message!r}"
    return line


def _print_outcome(outcome: PublishOutcome) -> int:
    print(format_job(outcome.job))
    if outcome.published:
        print(f"Published (remote id: {outcome.remote_id or 'n/a'})")
        return 0
    print(f"Publish failed: {outcome.job.error_message}", file=sys.stderr)
    return 1


def _parse_pairs(pairs: list[str]) -> dict[str, str]:
    values = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected key=value, got {pair!r}")
        values[key.strip()] = value
    return values


async def run_command(args: Namespace, context: AppContext) -> int:
    """Execute one parsed command against the context.

    Returns:
        Exit code: 0 (success), 1 (error)
    """
    composer = context.composer
    job_store = context.job_store

    if args.command == "health":
        print(await context.api_client.health())
        return 0

    if args.command == "generate":
        print(await composer.generate(args.prompt, args.tags))
        return 0

    if args.command in ("draft", "schedule", "publish"):
        if args.command == "publish" and args.job_id:
            return _print_outcome(await composer.publish_job(args.job_id))

        draft = PostDraft(
            title=args.title,
            tags=args.tags,
            channel=args.channel,
            prompt=args.prompt,
            content=args.content,
            scheduled_for=getattr(args, "scheduled_for", None),
        )
        if args.command == "draft":
            print(format_job(composer.save_draft(draft)))
            return 0
        if args.command == "schedule":
            print(format_job(composer.schedule(draft)))
            return 0
        return _print_outcome(await composer.publish(draft))

    if args.command == "jobs":
        if args.upcoming:
            jobs = job_store.scheduled_jobs()
        else:
            status = JobStatus(args.status) if args.status else None
            jobs = job_store.list_jobs(status=status, search=args.search)
        for job in jobs:
            print(format_job(job))
        if not jobs:
            print("No jobs found.")
        return 0

    if args.command == "logs":
        entries = job_store.get_logs(args.job_id)
        for entry in entries:
            print(f"{entry.timestamp}  {entry.level.value.upper():<5}  {entry.message}")
        if not entries:
            print("No logs captured.")
        return 0

    if args.command == "retry":
        job = composer.retry_job(args.job_id)
        if job is None:
            print(f"Job {args.job_id} not found", file=sys.stderr)
            return 1
        print(format_job(job))
        return 0

    if args.command == "tail":
        if not context.settings_store.settings.enable_live_logs:
            print("Live logs are disabled (settings set enableLiveLogs=true)", file=sys.stderr)
            return 1
        bridge = context.log_stream_bridge()
        async with bridge:
            try:
                if args.seconds is None:
                    await asyncio.Event().wait()
                else:
                    await asyncio.sleep(args.seconds)
            except asyncio.CancelledError:
                pass
        print(f"Received {bridge.received} log event(s)")
        return 0

    if args.command == "seed":
        seeded = job_store.seed_demo_data()
        print(f"Seeded {len(seeded)} demo job(s)")
        return 0

    if args.command == "reset":
        job_store.reset()
        print("All jobs and logs cleared")
        return 0

    if args.command == "settings":
        store = context.settings_store
        if args.settings_command == "set":
            store.update(**_parse_pairs(args.pairs))
        elif args.settings_command == "reset":
            store.reset()
        for key, value in store.settings.model_dump(by_alias=True).items():
            if key == "apiToken" and value:
                value = "********"
            print(f"{key}={value}")
        return 0

    raise ValueError(f"Unknown command: {args.command}")


def serve_mock(args: Namespace, config: AppConfig) -> int:
    """Run the mock publishing API with uvicorn."""
    import uvicorn

    from autoposter.app import create_app

    uvicorn.run(
        create_app(config),
        host=args.host or config.mock_host,
        port=args.port or config.mock_port,
    )
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point.

    Returns:
        Exit code: 0 (success), 1 (error)
    """
    args = build_parser().parse_args(argv)

    config = AppConfig()  # type: ignore[call-arg]
    if args.verbose:
        config.log_level = "DEBUG"
    configure_logging(config)

    if args.command == "serve-mock":
        return serve_mock(args, config)

    context = build_context(config)
    try:
        return asyncio.run(run_command(args, context))
    except (ServiceError, InvalidStateTransition, ValueError, ValidationError) as e:
        logger.error("cli.command_failed", command=args.command, error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 1
    finally:
        context.close()
