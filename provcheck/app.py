import argparse
import random
from pathlib import Path

from . import __version__
from .database import SqlStore
from .env import load_env, load_settings
from .ingest import generate_synthetic_data, import_csv, simulate_pdf_extraction
from .outreach import draft_verification_email
from .pipeline import ValidationPipeline
from .registry import NPIRegistryClient, OfflineRegistry
from .reports import confidence_distribution, dashboard_stats, export_providers_csv, status_breakdown
from .review import InvalidTransition, ReviewQueue
from .scoring import ConfidenceScorer
from .storage import NotFoundError


def _store(args: argparse.Namespace) -> SqlStore:
    return SqlStore(Path(args.db))


def _pipeline(args: argparse.Namespace, store: SqlStore) -> ValidationPipeline:
    settings = load_settings()
    registry = OfflineRegistry() if args.offline else NPIRegistryClient.from_settings(settings)
    return ValidationPipeline(store, registry, scorer=ConfidenceScorer.from_settings(settings))


def _rng(args: argparse.Namespace) -> random.Random:
    return random.Random(args.seed) if args.seed is not None else random.Random()


def cmd_import_csv(args: argparse.Namespace) -> None:
    input_path = Path(args.input)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    text = input_path.read_text(encoding="utf-8")
    try:
        result = import_csv(_store(args), text)
    except ValueError as e:
        raise SystemExit(str(e))
    print(f"Imported: {result.count} skipped: {result.skipped}")
    for error in result.errors:
        print(f" - {error}")


def cmd_import_pdf(args: argparse.Namespace) -> None:
    input_path = Path(args.input)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    try:
        created = simulate_pdf_extraction(_store(args), input_path.read_bytes(), rng=_rng(args))
    except ValueError as e:
        raise SystemExit(str(e))
    print(f"Extracted: {len(created)} providers (simulated)")


def cmd_generate(args: argparse.Namespace) -> None:
    created = generate_synthetic_data(_store(args), count=args.count, rng=_rng(args))
    print(f"Generated: {len(created)} providers")


def cmd_list(args: argparse.Namespace) -> None:
    providers = _store(args).list_providers()
    if args.status:
        providers = [p for p in providers if p.status.value == args.status]
    if not providers:
        print("No providers in store.")
        return
    print(f"Found {len(providers)} providers:\n")
    for p in providers:
        print(f"ID: {p.id}")
        print(f"  Name: {p.full_name}")
        print(f"  NPI: {p.npi}")
        print(f"  Status: {p.status.value}")
        print(f"  Confidence: {p.overall_confidence:.1f}")
        if p.validation_notes:
            print(f"  Notes: {p.validation_notes}")
        print()


def cmd_validate(args: argparse.Namespace) -> None:
    store = _store(args)
    try:
        provider = _pipeline(args, store).validate_provider(args.id)
    except NotFoundError as e:
        raise SystemExit(str(e))
    print(f"Status: {provider.status.value}")
    print(f"Confidence: {provider.overall_confidence:.1f}")
    if provider.validation_notes:
        print(f"Notes: {provider.validation_notes}")
    for name, fc in (provider.field_confidences or {}).items():
        issues = f" ({'; '.join(fc.discrepancies)})" if fc.discrepancies else ""
        print(f"  {name}: {fc.confidence:.1f}{issues}")


def cmd_validate_all(args: argparse.Namespace) -> None:
    store = _store(args)
    result = _pipeline(args, store).validate_all()
    print(f"Done. processed={result.processed} total={result.total} failed={len(result.failed)}")


def cmd_set_status(args: argparse.Namespace) -> None:
    store = _store(args)
    try:
        provider = _pipeline(args, store).update_provider(args.id, status=args.status)
    except NotFoundError as e:
        raise SystemExit(str(e))
    print(f"Status: {provider.status.value}")


def cmd_queue(args: argparse.Namespace) -> None:
    entries = ReviewQueue(_store(args)).listing(include_resolved=args.all)
    if not entries:
        print("Review queue is empty.")
        return
    for item, provider in entries:
        name = provider.full_name if provider else "(provider deleted)"
        print(f"[{item.priority.value}] {item.id} {name} - {item.reason} ({item.status.value})")


def _resolve(args: argparse.Namespace, approve: bool) -> None:
    queue = ReviewQueue(_store(args))
    if len(args.ids) == 1:
        try:
            item = queue.approve(args.ids[0]) if approve else queue.reject(args.ids[0])
        except (NotFoundError, InvalidTransition) as e:
            raise SystemExit(str(e))
        print(f"{item.id}: {item.status.value}")
        return
    result = queue.bulk_approve(args.ids) if approve else queue.bulk_reject(args.ids)
    verb = "approved" if approve else "rejected"
    print(f"Done. {verb}={result.count} skipped={len(result.skipped)}")


def cmd_approve(args: argparse.Namespace) -> None:
    _resolve(args, approve=True)


def cmd_reject(args: argparse.Namespace) -> None:
    _resolve(args, approve=False)


def cmd_email_draft(args: argparse.Namespace) -> None:
    try:
        draft = draft_verification_email(_store(args), args.id)
    except NotFoundError as e:
        raise SystemExit(str(e))
    print(f"To: {draft.recipient_email or '(no email on file)'}")
    print(f"Subject: {draft.subject}\n")
    print(draft.body)


def cmd_export(args: argparse.Namespace) -> None:
    csv_text = export_providers_csv(_store(args).list_providers(), status=args.status)
    if args.output:
        output = Path(args.output)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(csv_text, encoding="utf-8")
        print(f"Wrote {output}")
    else:
        print(csv_text, end="")


def cmd_stats(args: argparse.Namespace) -> None:
    store = _store(args)
    stats = dashboard_stats(store)
    print(f"Providers: {stats.total_providers}")
    print(f"  verified={stats.verified_providers} flagged={stats.flagged_providers} pending={stats.pending_providers}")
    print(f"Average confidence: {stats.average_confidence:.1f}")
    print(f"Validation accuracy: {stats.validation_accuracy:.1f}%")
    print(f"Needing review: {stats.providers_needing_review}")
    print("Status breakdown:")
    for share in status_breakdown(store):
        print(f"  {share.label}: {share.count} ({share.percentage:.1f}%)")
    print("Confidence distribution:")
    for share in confidence_distribution(store):
        print(f"  {share.label}: {share.count} ({share.percentage:.1f}%)")


def main(argv=None):
    # Load .env if present (PROVCHECK_* settings)
    load_env()
    settings = load_settings()
    parser = argparse.ArgumentParser(prog="provcheck", description="Provider directory validation")
    parser.add_argument("--version", action="store_true", help="Show version")
    parser.add_argument("--db", default=str(settings.db_path), help=f"SQLite database path (default: {settings.db_path})")
    parser.add_argument("--offline", action="store_true", help="Skip the NPI registry; every lookup is a miss")

    subparsers = parser.add_subparsers(dest="command")
    imp = subparsers.add_parser("import-csv", help="Import providers from a CSV file")
    imp.add_argument("--input", required=True, help="Path to CSV file")
    imp.set_defaults(func=cmd_import_csv)

    pdf = subparsers.add_parser("import-pdf", help="Simulated PDF extraction (creates 1-5 synthetic providers)")
    pdf.add_argument("--input", required=True, help="Path to PDF file")
    pdf.add_argument("--seed", type=int, help="Random seed")
    pdf.set_defaults(func=cmd_import_pdf)

    gen = subparsers.add_parser("generate", help="Replace all providers with synthetic data")
    gen.add_argument("--count", type=int, default=200, help="Number of providers (default 200)")
    gen.add_argument("--seed", type=int, help="Random seed")
    gen.set_defaults(func=cmd_generate)

    lst = subparsers.add_parser("list", help="List providers")
    lst.add_argument("--status", choices=["pending", "verified", "flagged", "error"], help="Filter by status")
    lst.set_defaults(func=cmd_list)

    val = subparsers.add_parser("validate", help="Run the validation pipeline for one provider")
    val.add_argument("--id", required=True, help="Provider id")
    val.set_defaults(func=cmd_validate)

    vall = subparsers.add_parser("validate-all", help="Run the validation pipeline for every provider")
    vall.set_defaults(func=cmd_validate_all)

    sts = subparsers.add_parser("set-status", help="Set a provider's status directly")
    sts.add_argument("--id", required=True, help="Provider id")
    sts.add_argument("--status", required=True, choices=["pending", "verified", "flagged", "error"])
    sts.set_defaults(func=cmd_set_status)

    que = subparsers.add_parser("queue", help="Show the review queue")
    que.add_argument("--all", action="store_true", help="Include resolved items")
    que.set_defaults(func=cmd_queue)

    apr = subparsers.add_parser("approve", help="Approve review items (provider becomes verified)")
    apr.add_argument("ids", nargs="+", help="Review item ids")
    apr.set_defaults(func=cmd_approve)

    rej = subparsers.add_parser("reject", help="Reject review items")
    rej.add_argument("ids", nargs="+", help="Review item ids")
    rej.set_defaults(func=cmd_reject)

    eml = subparsers.add_parser("email-draft", help="Draft a verification email for a provider")
    eml.add_argument("--id", required=True, help="Provider id")
    eml.set_defaults(func=cmd_email_draft)

    exp = subparsers.add_parser("export", help="Export providers as CSV")
    exp.add_argument("--status", default="all", choices=["all", "pending", "verified", "flagged", "error"])
    exp.add_argument("--output", help="Write to this file instead of stdout")
    exp.set_defaults(func=cmd_export)

    sta = subparsers.add_parser("stats", help="Show dashboard statistics")
    sta.set_defaults(func=cmd_stats)

    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
