#!/usr/bin/env python3
# CLI entry point for the interview video service
# Submit, inspect and process jobs against the flat-file job store

import argparse
import asyncio
import json
import sys

from interview_video_agent.prompt_loader import PromptStore

from app.config import settings
from app.logging_config import configure_logging
from app.models.job import JobStatus, QualityMode
from app.services.job_service import JobInputError, JobService, prepare_job_fields
from app.services.job_worker import build_job_processor
from app.worker import main as worker_main


def _read_text(value: str | None) -> str | None:
    """``@path`` reads the value from a file."""
    if value and value.startswith("@"):
        with open(value[1:], encoding="utf-8") as fh:
            return fh.read()
    return value


def cmd_submit(args: argparse.Namespace, job_service: JobService) -> int:
    fields = {
        "job_description": _read_text(args.job_description),
        "script": _read_text(args.script),
        "speaker_name": args.speaker_name,
        "language": args.language,
        "gender": args.gender,
        "age": args.age,
        "quality_mode": QualityMode(args.quality_mode),
        "locale": args.locale,
        "video_url": args.video_url,
        "video_path": args.video_path,
        "voice": args.voice,
        "voice_id": args.voice_id,
        "prompt_template_id": args.template,
        "job_input_dir": args.input_dir,
    }
    try:
        prepared = prepare_job_fields(fields, PromptStore(settings.prompts_dir))
    except JobInputError as e:
        print(f"Error: {e}", file=sys.stderr)
        if e.available:
            print(f"Available templates: {', '.join(e.available)}", file=sys.stderr)
        return 1

    job = job_service.create_job(**prepared)
    print(job.job_id)
    return 0


def cmd_status(args: argparse.Namespace, job_service: JobService) -> int:
    job = job_service.get_by_job_id(args.job_id)
    if job is None:
        print(f"Error: job not found: {args.job_id}", file=sys.stderr)
        return 1
    print(json.dumps(job.to_public(), indent=2, ensure_ascii=False))
    return 0


def cmd_process(args: argparse.Namespace, job_service: JobService) -> int:
    job = job_service.get_by_job_id(args.job_id)
    if job is None:
        print(f"Error: job not found: {args.job_id}", file=sys.stderr)
        return 1
    if job.status != JobStatus.PENDING:
        print(f"Error: job {job.job_id} is {job.status.value}, not pending", file=sys.stderr)
        return 1

    processor = build_job_processor(settings, job_service)
    try:
        job = asyncio.run(processor.process_job(job))
    except Exception as e:
        print(f"Job failed: {e}", file=sys.stderr)
        return 1

    print(json.dumps(job.to_public(), indent=2, ensure_ascii=False))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Interview video agent - job store CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    submit = sub.add_parser("submit", help="Create a pending job and print its id")
    submit.add_argument("--job-description", help="Job description text, or @file")
    submit.add_argument("--script", help="Literal script to speak instead of generated questions, or @file")
    submit.add_argument("--input-dir", help="Job input directory under the input-examples directory")
    submit.add_argument("--speaker-name")
    submit.add_argument("--language")
    submit.add_argument("--gender", choices=["male", "female"])
    submit.add_argument("--age", type=int)
    submit.add_argument(
        "--quality-mode",
        choices=[m.value for m in QualityMode],
        default=QualityMode.TEMPLATE.value,
    )
    submit.add_argument("--locale")
    submit.add_argument("--video-url")
    submit.add_argument("--video-path")
    submit.add_argument("--voice", help="OpenAI voice name")
    submit.add_argument("--voice-id", help="ElevenLabs catalog voice id")
    submit.add_argument("--template", help="Single prompt template id")

    status = sub.add_parser("status", help="Print a job record")
    status.add_argument("job_id")

    process = sub.add_parser("process", help="Process one pending job now")
    process.add_argument("job_id")

    sub.add_parser("worker", help="Run the polling worker")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.command == "worker":
        worker_main()
        return 0

    configure_logging(settings.log_level)
    job_service = JobService(settings.jobs_dir)
    handlers = {"submit": cmd_submit, "status": cmd_status, "process": cmd_process}
    return handlers[args.command](args, job_service)


if __name__ == "__main__":
    sys.exit(main())
