"""CLI entry point."""

import argparse
import sys

from dotenv import load_dotenv

from .batch import BatchDownloader
from .catalog import filter_forms, resolve_forms
from .config import load_config
from .downloader import Downloader
from .errors import ConfigurationError, PipelineError
from .logger import setup_logger
from .models import BatchOutcome, FormSource
from .pipeline import SchemaPipeline


def list_forms(args, config):
    forms = filter_forms(args.source, args.prefix)
    print(f"{'Form':<10} {'Source':<7} {'Name'}")
    print("-" * 90)
    for form in forms:
        print(f"{form.form_number:<10} {form.source.value.upper():<7} {form.display_name}")
        if form.notes:
            print(f"{'':<18} ({form.notes})")
    print("-" * 90)
    print(f"{len(forms)} form(s)")
    return 0


def _select_forms(args):
    if args.forms and (args.all or args.source):
        raise ConfigurationError("Give form numbers or --all/--source, not both")
    if args.forms:
        return resolve_forms(args.forms)
    if args.all or args.source:
        return filter_forms(args.source)
    raise ConfigurationError("No forms selected (give form numbers, --all or --source)")


def download_forms(args, config):
    forms = _select_forms(args)
    output_dir = args.output_dir or config.output_dir
    include_instructions = args.instructions or config.batch.include_instructions
    workers = args.workers or config.batch.workers

    with Downloader(config.download) as downloader:
        outcome = BatchDownloader(downloader).run(
            forms, output_dir, include_instructions=include_instructions, workers=workers,
        )

    show_outcome(outcome, include_instructions)
    return 0 if outcome.failed == 0 else 1


def generate_schema(args, config):
    if bool(args.pdf) == bool(args.form):
        raise ConfigurationError("Give exactly one of --pdf or --form")

    with SchemaPipeline(config, api_key=args.api_key, on_event=_print_event) as pipeline:
        try:
            if args.pdf:
                print(f"Processing: {args.pdf}")
                result = pipeline.generate_from_file(args.pdf, args.output)
            else:
                print(f"Processing: {args.form}")
                result = pipeline.generate_from_form(args.form, args.output_dir, args.output)
        except PipelineError as e:
            print(file=sys.stderr)
            print(f"Error during {e.stage}: {e.cause}", file=sys.stderr)
            return 1

    print()
    print(f"Schema generated: {result.field_count} fields")
    print(f"   Output: {result.output_path}")
    return 0


def generate_batch_schemas(args, config):
    forms = resolve_forms(args.forms)
    with SchemaPipeline(config, api_key=args.api_key) as pipeline:
        outcome = pipeline.generate_batch(forms, args.output_dir or config.output_dir)
    show_outcome(outcome, False)
    return 0 if outcome.failed == 0 else 1


_EVENT_TEXT = {
    "transfer": "Downloading {}",
    "upload": "Uploading {} to Extend API...",
    "uploaded": "  OK (File ID: {})",
    "started": "Schema extraction started (Run ID: {})",
    "extracted": "  Done ({} fields)",
    "saved": "Saved {}",
}


def _print_event(stage: str, detail: str):
    if stage == "poll":
        print(".", end="", flush=True)
        return
    if stage == "extracted":
        print()
    print(_EVENT_TEXT.get(stage, stage + " {}").format(detail))


def show_outcome(outcome: BatchOutcome, include_instructions: bool):
    print("\n" + "=" * 70)
    print("  RESULTS")
    print("=" * 70)
    header = f"{'Form':<10} {'Status':<8} {'Size':>10}"
    if include_instructions:
        header += f"  {'Instructions':<14}"
    print(header + "  Detail")
    print("-" * 70)

    for item in outcome.items:
        status = "ok" if item.success else "FAILED"
        line = f"{item.form_number:<10} {status:<8} {_format_bytes(item.bytes_written):>10}"
        if include_instructions:
            line += f"  {item.instructions_status:<14}"
        if item.success:
            detail = item.path or ""
            if item.field_count is not None:
                detail = f"{item.field_count} fields  {detail}"
        else:
            detail = item.error or ""
        print(f"{line}  {detail}")

    print("-" * 70)
    print(f"{outcome.succeeded} succeeded, {outcome.failed} failed, "
          f"{_format_bytes(outcome.total_bytes)} total")
    print()


def _format_bytes(n: int) -> str:
    if n < 1024:
        return f"{n} B"
    elif n < 1024 ** 2:
        return f"{n / 1024:.1f} KB"
    else:
        return f"{n / 1024 ** 2:.1f} MB"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Government form downloader and Extend schema generator")
    parser.add_argument("--config", type=str, default="config.yaml",
                        help="Path to config file")
    parser.add_argument("--log-level", type=str, default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = parser.add_subparsers(dest="command", required=True)

    sources = [s.value for s in FormSource]

    p = sub.add_parser("list", help="List known forms")
    p.add_argument("--source", choices=sources, default=None)
    p.add_argument("--prefix", type=str, default=None, help="Form number prefix, e.g. I- or EOIR")
    p.set_defaults(func=list_forms)

    p = sub.add_parser("download", help="Download form PDFs")
    p.add_argument("forms", nargs="*", help="Form numbers (case-insensitive)")
    p.add_argument("--all", action="store_true", help="Download every known form")
    p.add_argument("--source", choices=sources, default=None,
                   help="Download every form from one source")
    p.add_argument("--instructions", action="store_true",
                   help="Also download instructions PDFs where published")
    p.add_argument("--output-dir", type=str, default=None)
    p.add_argument("--workers", type=int, default=None, help="Parallel downloads")
    p.set_defaults(func=download_forms)

    p = sub.add_parser("schema", help="Generate an Extend schema for one PDF")
    p.add_argument("--pdf", type=str, default=None, help="Path to the PDF file to process")
    p.add_argument("--form", type=str, default=None, help="Catalog form number to fetch and process")
    p.add_argument("--output", type=str, default=None,
                   help="Output JSON file path (default: <pdf-name>_Extend_Schema.json)")
    p.add_argument("--output-dir", type=str, default=None)
    p.add_argument("--api-key", type=str, default=None,
                   help="Extend API key (or set EXTEND_API_KEY environment variable)")
    p.set_defaults(func=generate_schema)

    p = sub.add_parser("batch-schema", help="Generate Extend schemas for several catalog forms")
    p.add_argument("forms", nargs="+")
    p.add_argument("--output-dir", type=str, default=None)
    p.add_argument("--api-key", type=str, default=None)
    p.set_defaults(func=generate_batch_schemas)

    return parser


def main(argv=None):
    load_dotenv()
    args = build_parser().parse_args(argv)

    config = load_config(args.config)
    setup_logger(config.log_dir, args.log_level)

    try:
        return args.func(args, config)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
