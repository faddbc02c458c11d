#!/usr/bin/env python3
"""
Catalog Update Script for the GWAS Study Explorer
==================================================

Downloads the GWAS Catalog associations file and imports it into the
local catalog database.

Features:
- Streamed download with a progress bar
- Gzip-aware import of local TSV files
- Update state tracked in a JSON state file

Usage:
    python update_databases.py gwas               # Download and import the catalog
    python update_databases.py gwas --file x.tsv  # Import a local TSV
    python update_databases.py status             # Show current status
"""

import os
import sys
import json
import tempfile
import argparse
from datetime import datetime
from typing import Optional, Dict

import requests
from tqdm import tqdm

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import DATABASE_PATH, STATE_FILE, GWAS_CATALOG_URL, REQUEST_TIMEOUT
from database.catalog_database import CatalogDatabase, CatalogDatabaseError
from utils.logging_config import get_logger

logger = get_logger(__name__)

DOWNLOAD_CHUNK_SIZE = 1024 * 1024


class CatalogUpdateError(Exception):
    """Exception raised when the catalog cannot be downloaded or imported."""
    pass


def load_state(state_file: str = STATE_FILE) -> Dict:
    """Load update state from file."""
    if os.path.exists(state_file):
        try:
            with open(state_file, 'r') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Ignoring unreadable state file {state_file}: {e}")
    return {"gwas": {"last_update": None, "status": "never"}}


def save_state(state: Dict, state_file: str = STATE_FILE) -> None:
    """Save update state to file."""
    directory = os.path.dirname(state_file)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(state_file, 'w') as f:
        json.dump(state, f, indent=2, default=str)


def format_size(bytes_size: float) -> str:
    """Format bytes as human-readable size."""
    for unit in ['B', 'KB', 'MB', 'GB']:
        if bytes_size < 1024:
            return f"{bytes_size:.1f} {unit}"
        bytes_size /= 1024
    return f"{bytes_size:.1f} TB"


def download_catalog(url: str, destination: str, session: Optional[requests.Session] = None) -> int:
    """
    Stream the catalog file to disk.

    Args:
        url: Download URL.
        destination: Output file path.
        session: Optional requests session.

    Returns:
        int: Bytes written.

    Raises:
        CatalogUpdateError: If the download fails.
    """
    http = session or requests
    try:
        response = http.get(url, stream=True, timeout=REQUEST_TIMEOUT)
        response.raise_for_status()

        total_size = int(response.headers.get('content-length', 0))
        written = 0
        with open(destination, 'wb') as f, tqdm(
            total=total_size or None, unit='B', unit_scale=True, desc="Downloading"
        ) as pbar:
            for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                if not chunk:
                    continue
                f.write(chunk)
                written += len(chunk)
                pbar.update(len(chunk))
    except requests.RequestException as e:
        logger.error(f"Download failed: {e}")
        raise CatalogUpdateError(f"Download failed: {e}")

    logger.info(f"Downloaded {format_size(written)} from {url}")
    return written


def import_catalog(filepath: str, db_path: str = DATABASE_PATH, source_label: Optional[str] = None) -> int:
    """
    Import a catalog TSV into the database with a progress bar.

    Returns:
        int: Rows inserted.

    Raises:
        CatalogUpdateError: If the import fails.
    """
    catalog = CatalogDatabase(db_path)
    with tqdm(desc="Importing", unit="rows") as pbar:
        def advance(handled: int) -> None:
            pbar.update(handled - pbar.n)

        try:
            inserted, skipped = catalog.import_tsv(filepath, replace=True, progress=advance)
            catalog.set_metadata("source", source_label or filepath)
        except CatalogDatabaseError as e:
            raise CatalogUpdateError(f"Import failed: {e}")

    print(f"   Inserted: {inserted:,} associations")
    print(f"   Skipped: {skipped:,} rows")
    return inserted


def update_gwas(
    state: Dict,
    db_path: str = DATABASE_PATH,
    url: str = GWAS_CATALOG_URL,
    local_file: Optional[str] = None,
    state_file: str = STATE_FILE
) -> bool:
    """
    Download (or take a local file) and import the GWAS Catalog.

    Args:
        state: Update state, modified and saved.
        db_path: Catalog database path.
        url: Download URL.
        local_file: Import this TSV instead of downloading.
        state_file: State file path.

    Returns:
        bool: True on success.
    """
    print("\n" + "=" * 60)
    print("GWAS CATALOG UPDATE")
    print("=" * 60)

    gwas_state = state.setdefault("gwas", {})
    gwas_state["status"] = "in_progress"
    save_state(state, state_file)

    temp_path = None
    try:
        if local_file:
            source = local_file
        else:
            print(f"\nDownloading {url}")
            fd, temp_path = tempfile.mkstemp(suffix='.tsv')
            os.close(fd)
            download_catalog(url, temp_path)
            source = temp_path

        print("\nImporting associations...")
        inserted = import_catalog(source, db_path, source_label=local_file or url)
    except CatalogUpdateError as e:
        print(f"\nUpdate failed: {e}")
        gwas_state["status"] = "failed"
        gwas_state["error"] = str(e)
        save_state(state, state_file)
        return False
    finally:
        if temp_path and os.path.exists(temp_path):
            os.remove(temp_path)

    gwas_state["last_update"] = datetime.now().isoformat()
    gwas_state["status"] = "complete"
    gwas_state["associations"] = inserted
    gwas_state["source"] = local_file or url
    gwas_state.pop("error", None)
    save_state(state, state_file)

    print("\nGWAS update complete!")
    return True


def show_status(db_path: str = DATABASE_PATH, state_file: str = STATE_FILE) -> None:
    """Print the update state and catalog metadata."""
    state = load_state(state_file)
    gwas_state = state.get("gwas", {})

    print("\n" + "=" * 60)
    print("CATALOG STATUS")
    print("=" * 60)
    print(f"   Status: {gwas_state.get('status', 'never')}")
    print(f"   Last update: {gwas_state.get('last_update') or 'never'}")
    if gwas_state.get("error"):
        print(f"   Last error: {gwas_state['error']}")

    catalog = CatalogDatabase(db_path)
    if not catalog.verify_database():
        print(f"   Database: not found at {db_path}")
        return

    metadata = catalog.get_metadata()
    print(f"   Database: {db_path} ({format_size(os.path.getsize(db_path))})")
    print(f"   Associations: {catalog.count():,}")
    if metadata.get("source"):
        print(f"   Source: {metadata['source']}")


def main():
    parser = argparse.ArgumentParser(
        description="Update the local GWAS Catalog database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        'command',
        choices=['gwas', 'status'],
        help='What to do'
    )
    parser.add_argument(
        '--file',
        help='Import a local GWAS Catalog TSV (plain or gzip) instead of downloading'
    )
    parser.add_argument(
        '--db',
        default=DATABASE_PATH,
        help='Path to the catalog database'
    )

    args = parser.parse_args()

    if args.command == 'status':
        show_status(args.db)
        return 0

    state = load_state()
    return 0 if update_gwas(state, db_path=args.db, local_file=args.file) else 1


if __name__ == "__main__":
    sys.exit(main())
