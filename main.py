#!/usr/bin/env python3
"""
GWAS Study Explorer

Command-line entry point. Browses the local GWAS Catalog with quality
filters, and matches a consumer genotype file against every study.

Usage:
    python main.py init                      # Create a sample catalog
    python main.py update [--file x.tsv]     # Download/import the GWAS Catalog
    python main.py status
    python main.py browse --preset high --search diabetes
    python main.py scan genome.txt --output results.tsv
    python main.py analyze genome.txt 12

Requirements:
    - Python 3.9+
    - numpy, requests, tqdm
"""

import sys
import os
import signal
import logging
import argparse
import threading
from typing import Optional, List

# Ensure the application directory is in the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from tqdm import tqdm

from config import DATABASE_PATH, APP_NAME, APP_VERSION, FILTER_PRESETS, SCAN_BATCH_SIZE
from models.study_models import StudyFilters, SortOption, ConfidenceBand, QualityPolicy
from models.scan_models import ScanProgress
from backend.parsers import parse_genotype_file, ParseError
from backend.normalizer import normalize_study, format_number, format_p_value
from backend.study_pipeline import StudyPipeline, describe_results
from backend.search_engine import SearchEngine
from backend.bulk_scan import BulkScanner, BulkScanError
from backend.risk_calculator import analyze_study, get_risk_interpretation
from backend.results_store import ResultStore
from backend.session_manager import SessionManager, SavedSession, SessionError
from database.catalog_database import CatalogDatabase, CatalogDatabaseError
from database.setup_database import verify_database, create_database
from database.update_databases import load_state, update_gwas, show_status
from utils.logging_config import setup_logging, get_logger, log_error

logger = get_logger(__name__)


def ensure_database(db_path: str) -> bool:
    """
    Ensure the database exists, create the sample catalog if necessary.

    Returns:
        bool: True if database is available.
    """
    if verify_database(db_path):
        return True

    print("Database not found. Creating sample catalog...")
    return create_database(db_path)


def _truncate(text: Optional[str], width: int) -> str:
    text = text or ''
    return text if len(text) <= width else text[:width - 1] + '…'


def build_filters(args: argparse.Namespace) -> StudyFilters:
    """Build StudyFilters from a preset plus the browse flags given."""
    overrides = {}
    if args.search is not None:
        overrides['search_text'] = args.search
    if args.trait is not None:
        overrides['trait'] = args.trait
    if args.min_sample is not None:
        overrides['min_sample_size'] = args.min_sample
    if args.max_p is not None:
        overrides['max_p_value'] = args.max_p
    if args.min_log_p is not None:
        overrides['min_log_p'] = args.min_log_p
    if args.band is not None:
        overrides['confidence_band'] = args.band
    if args.sort is not None:
        overrides['sort_by'] = args.sort
    if args.ascending:
        overrides['sort_ascending'] = True
    if args.limit is not None:
        overrides['limit'] = args.limit
    if args.include_low_quality:
        overrides['exclude_low_quality'] = False
    if args.include_missing_genotype:
        overrides['exclude_missing_genotype'] = False
    if args.quality_policy is not None:
        overrides['quality_policy'] = args.quality_policy
    return StudyFilters.from_preset(args.preset, **overrides)


def cmd_init(args: argparse.Namespace) -> int:
    if verify_database(args.db) and not args.drop:
        print(f"Database already exists at {args.db}")
        print("Use --drop to recreate")
        return 0
    return 0 if create_database(args.db, drop_existing=args.drop) else 1


def cmd_update(args: argparse.Namespace) -> int:
    return 0 if update_gwas(load_state(), db_path=args.db, local_file=args.file) else 1


def cmd_status(args: argparse.Namespace) -> int:
    show_status(args.db)
    return 0


def cmd_browse(args: argparse.Namespace) -> int:
    if not ensure_database(args.db):
        return 1

    filters = build_filters(args)
    pipeline = StudyPipeline()
    engine = SearchEngine(CatalogDatabase(args.db), pipeline)
    result = engine.search(filters)

    genotypes = None
    if args.genotype:
        genotypes, _ = parse_genotype_file(args.genotype)

    header = f"{'ID':>7}  {'Accession':<11} {'Trait':<28} {'N':>7} {'p':>9} {'-log10p':>7}  {'Band':<17} {'Flags':>5}"
    if genotypes is not None:
        header += "  Match"
    print(header)
    print('-' * len(header))

    for study in result.studies:
        line = (
            f"{study.study_id:>7}  {_truncate(study.raw.study_accession, 11):<11} "
            f"{_truncate(study.raw.trait_name, 28):<28} {format_number(study.sample_size):>7} "
            f"{format_p_value(study.p_value):>9} "
            f"{(f'{study.log_p_value:.1f}' if study.log_p_value is not None else '—'):>7}  "
            f"{study.confidence_band.label:<17} {len(study.quality_flags):>5}"
        )
        if genotypes is not None:
            line += "  " + ', '.join(pipeline.user_matches(study, genotypes))
        print(line)

    print()
    print(describe_results(result, filters))
    return 0


def _progress_sink(bar: tqdm):
    def update(progress: ScanProgress) -> None:
        if progress.studies_total is not None and bar.total != progress.studies_total:
            bar.total = progress.studies_total
        bar.update(progress.studies_processed - bar.n)
        bar.set_postfix(phase=progress.phase.value, matched=progress.studies_matched)
    return update


def cmd_scan(args: argparse.Namespace) -> int:
    if not ensure_database(args.db):
        return 1

    genotypes, stats = parse_genotype_file(args.genotype)
    print(f"Loaded {stats['valid_variants']:,} variants "
          f"({stats['no_calls']:,} no-calls) from {args.genotype}")

    store = ResultStore()
    if args.resume:
        session = SessionManager.load_session(args.resume)
        if session.genotype_file_hash != stats['file_hash']:
            message = (f"Session {args.resume} was saved for a different genotype file "
                       f"({session.file_name or 'unknown'})")
            if not args.force:
                raise SessionError(f"{message}; use --force to merge anyway")
            logger.warning(f"{message}; merging because --force was given")
        store = session.to_store()
        print(f"Resuming with {len(store):,} existing results")

    scanner = BulkScanner(CatalogDatabase(args.db), store, batch_size=args.batch_size)
    abort = threading.Event()

    def request_abort(signum, frame):
        abort.set()

    previous_handler = signal.signal(signal.SIGINT, request_abort)
    try:
        with tqdm(desc="Scanning", unit="studies") as bar:
            scanner.set_progress_callback(_progress_sink(bar))
            result = scanner.run(genotypes, abort)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    if result.cancelled:
        print("Scan cancelled; keeping partial results.")

    stats_summary = store.get_statistics()
    print(f"{result.match_count:,} new matches, {stats_summary['total']:,} total "
          f"({stats_summary['increased']} increased, {stats_summary['decreased']} decreased, "
          f"{stats_summary['neutral']} neutral)")

    for r in store.top_risks(args.top):
        print(f"  {r.risk_score:6.2f}  {r.matched_snp:<12} {r.user_genotype}  {_truncate(r.trait_name, 40)}")

    if args.output:
        SessionManager.export_tsv(args.output, store)
        print(f"Results written to {args.output}")

    if args.session:
        SessionManager.save_session(args.session, SavedSession(
            file_name=os.path.basename(args.genotype),
            total_variants=stats['valid_variants'],
            results=store.all_results(),
            genotype_file_hash=stats['file_hash'],
        ))
        print(f"Session saved to {args.session}")

    return 0


def cmd_analyze(args: argparse.Namespace) -> int:
    if not ensure_database(args.db):
        return 1

    study = CatalogDatabase(args.db).get_study(args.study_id)
    if study is None:
        print(f"Study {args.study_id} not found")
        return 1

    genotypes, _ = parse_genotype_file(args.genotype)
    normalized = normalize_study(study)
    print(f"{study.study_accession}: {study.study}")
    print(f"Trait: {study.trait_name} | N={format_number(normalized.sample_size)} "
          f"p={format_p_value(normalized.p_value)} | {normalized.confidence_band.label}")
    for flag in normalized.quality_flags:
        print(f"  [{flag.severity.value}] {flag.message}")

    analysis = analyze_study(genotypes, study)
    if not analysis.has_match:
        print("No usable genotype match for this study.")
        return 0

    for match in analysis.all_matches:
        print(f"  {match.snp} = {match.genotype}: score {match.score:.2f} ({match.level.value})")
    print(get_risk_interpretation(analysis.primary))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='main.py', description=f"{APP_NAME} {APP_VERSION}")
    parser.add_argument('--db', default=DATABASE_PATH, help='Path to the catalog database')
    parser.add_argument('-v', '--verbose', action='store_true', help='Log INFO messages to the console')
    sub = parser.add_subparsers(dest='command', required=True)

    init = sub.add_parser('init', help='Create the sample catalog')
    init.add_argument('--drop', action='store_true', help='Drop existing tables before creating')
    init.set_defaults(func=cmd_init)

    update = sub.add_parser('update', help='Download and import the GWAS Catalog')
    update.add_argument('--file', help='Import a local TSV instead of downloading')
    update.set_defaults(func=cmd_update)

    status = sub.add_parser('status', help='Show catalog status')
    status.set_defaults(func=cmd_status)

    browse = sub.add_parser('browse', help='Browse studies with quality filters')
    browse.add_argument('--preset', choices=sorted(FILTER_PRESETS), default='default')
    browse.add_argument('--search', help='Text in title, trait, author, gene or accession')
    browse.add_argument('--trait', help='Exact trait name')
    browse.add_argument('--min-sample', type=int)
    browse.add_argument('--max-p', type=float)
    browse.add_argument('--min-log-p', type=float)
    browse.add_argument('--band', choices=[b.value for b in ConfidenceBand])
    browse.add_argument('--sort', choices=[s.value for s in SortOption])
    browse.add_argument('--ascending', action='store_true')
    browse.add_argument('--limit', type=int)
    browse.add_argument('--include-low-quality', action='store_true')
    browse.add_argument('--include-missing-genotype', action='store_true')
    browse.add_argument('--quality-policy', choices=[p.value for p in QualityPolicy])
    browse.add_argument('--genotype', help='Genotype file; lists matching SNPs per study')
    browse.set_defaults(func=cmd_browse)

    scan = sub.add_parser('scan', help='Match a genotype file against every study')
    scan.add_argument('genotype', help='Genotype file (23andMe or CSV)')
    scan.add_argument('--output', help='Write results as TSV')
    scan.add_argument('--session', help='Save a session file (.json.gz)')
    scan.add_argument('--resume', help='Continue from a saved session')
    scan.add_argument('--force', action='store_true',
                      help='Resume even if the session was saved for a different genotype file')
    scan.add_argument('--batch-size', type=int, default=SCAN_BATCH_SIZE)
    scan.add_argument('--top', type=int, default=10, help='Top risks to print')
    scan.set_defaults(func=cmd_scan)

    analyze = sub.add_parser('analyze', help='Analyze one study against a genotype file')
    analyze.add_argument('genotype', help='Genotype file (23andMe or CSV)')
    analyze.add_argument('study_id', type=int)
    analyze.set_defaults(func=cmd_analyze)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the application.

    Returns:
        int: Exit code (0 for success).
    """
    args = build_parser().parse_args(argv)

    # Setup logging (this also sets up global exception handler)
    setup_logging(console_level=logging.INFO if args.verbose else logging.WARNING)
    logger.info(f"Starting {APP_NAME} {APP_VERSION}: {args.command}")

    try:
        return args.func(args)
    except (ParseError, CatalogDatabaseError, BulkScanError, SessionError, ValueError) as e:
        log_error(f"{args.command} failed: {e}", e)
        print(f"Error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
