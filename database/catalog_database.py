"""
SQLite-backed GWAS Catalog study source.

Stores catalog associations as raw text columns and serves them as
RawStudyRecord batches to the browsing pipeline and the bulk scan.
"""

import os
import sqlite3
from datetime import datetime
from typing import List, Optional, Dict, Tuple, Callable
from contextlib import contextmanager

from models.study_models import RawStudyRecord, StudyFilters
from config import DATABASE_PATH, SCAN_BATCH_SIZE
from utils.file_utils import validate_file_exists, open_text
from utils.logging_config import get_logger

logger = get_logger(__name__)

STUDY_COLUMNS = [
    'study_accession',
    'study',
    'disease_trait',
    'mapped_trait',
    'mapped_trait_uri',
    'mapped_gene',
    'first_author',
    'date',
    'journal',
    'pubmedid',
    'link',
    'initial_sample_size',
    'replication_sample_size',
    'p_value',
    'pvalue_mlog',
    'or_or_beta',
    'confidence_interval',
    'effect_type',
    'strongest_snp_risk_allele',
    'snps',
    'risk_allele_frequency',
]

# GWAS Catalog associations TSV header -> column
TSV_COLUMN_MAP = {
    'STUDY ACCESSION': 'study_accession',
    'STUDY': 'study',
    'DISEASE/TRAIT': 'disease_trait',
    'MAPPED_TRAIT': 'mapped_trait',
    'MAPPED_TRAIT_URI': 'mapped_trait_uri',
    'MAPPED_GENE': 'mapped_gene',
    'FIRST AUTHOR': 'first_author',
    'DATE': 'date',
    'JOURNAL': 'journal',
    'PUBMEDID': 'pubmedid',
    'LINK': 'link',
    'INITIAL SAMPLE SIZE': 'initial_sample_size',
    'REPLICATION SAMPLE SIZE': 'replication_sample_size',
    'P-VALUE': 'p_value',
    'PVALUE_MLOG': 'pvalue_mlog',
    'OR OR BETA': 'or_or_beta',
    '95% CI (TEXT)': 'confidence_interval',
    'STRONGEST SNP-RISK ALLELE': 'strongest_snp_risk_allele',
    'SNPS': 'snps',
    'RISK ALLELE FREQUENCY': 'risk_allele_frequency',
}

REQUIRED_TSV_COLUMNS = ('SNPS', 'STRONGEST SNP-RISK ALLELE')

IMPORT_BATCH_SIZE = 1000

_SELECT = f"SELECT id, {', '.join(STUDY_COLUMNS)} FROM gwas_catalog"
_INSERT = (
    f"INSERT INTO gwas_catalog ({', '.join(STUDY_COLUMNS)}) "
    f"VALUES ({', '.join('?' * len(STUDY_COLUMNS))})"
)


class CatalogDatabaseError(Exception):
    """Exception raised when the study catalog cannot be opened, queried or imported."""
    pass


def create_schema(conn: sqlite3.Connection) -> None:
    """Create the catalog tables and indexes if missing."""
    cursor = conn.cursor()
    columns = ',\n            '.join(f'{name} TEXT' for name in STUDY_COLUMNS)
    cursor.execute(f"""
        CREATE TABLE IF NOT EXISTS gwas_catalog (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            {columns}
        )
    """)
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS metadata (
            key TEXT PRIMARY KEY,
            value TEXT
        )
    """)
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_catalog_disease_trait ON gwas_catalog(disease_trait)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_catalog_mapped_trait ON gwas_catalog(mapped_trait)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_catalog_accession ON gwas_catalog(study_accession)")
    conn.commit()


def _escape_like(text: str) -> str:
    return text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def build_where_clause(filters: Optional[StudyFilters]) -> Tuple[str, List[str]]:
    """
    Translate the text and trait filters into SQL.

    Only these two filters are pushed down; the numeric and quality
    filters need parsed values and run in the pipeline.

    Returns:
        Tuple[str, List[str]]: (WHERE clause or '', parameters)
    """
    if filters is None:
        return '', []

    conditions = []
    params: List[str] = []

    search = filters.search_text.strip()
    if search:
        like = f'%{_escape_like(search)}%'
        searched = ('study', 'disease_trait', 'mapped_trait', 'first_author', 'mapped_gene', 'study_accession')
        conditions.append('(' + ' OR '.join(f"{col} LIKE ? ESCAPE '\\'" for col in searched) + ')')
        params.extend([like] * len(searched))

    trait = filters.trait.strip()
    if trait:
        conditions.append('(disease_trait = ? OR mapped_trait = ?)')
        params.extend([trait, trait])

    if not conditions:
        return '', []
    return 'WHERE ' + ' AND '.join(conditions), params


def _clean_value(value: str) -> Optional[str]:
    value = value.strip()
    return value if value else None


class CatalogDatabase:
    """
    Study source over the SQLite GWAS catalog.

    Provides:
    - Batched fetches and counts for browsing and bulk scans
    - Lookup of single studies and distinct traits
    - Import of GWAS Catalog association TSV files
    """

    def __init__(self, db_path: Optional[str] = None) -> None:
        """
        Initialize the catalog database.

        Args:
            db_path: Path to the SQLite database. Uses config default if None.
        """
        self.db_path = db_path or DATABASE_PATH

    @contextmanager
    def _get_connection(self):
        """
        Context manager for database connections.

        Yields:
            sqlite3.Connection: Database connection.

        Raises:
            CatalogDatabaseError: If connecting or querying fails.
        """
        conn = None
        try:
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row
            yield conn
        except sqlite3.Error as e:
            logger.error(f"Database error: {e}")
            raise CatalogDatabaseError(f"Database error: {e}")
        finally:
            if conn:
                conn.close()

    def ensure_schema(self) -> None:
        """Create the database file and schema if missing."""
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with self._get_connection() as conn:
            create_schema(conn)

    def verify_database(self) -> bool:
        """
        Verify that the database exists and has the catalog table.

        Returns:
            bool: True if database is valid.
        """
        if not os.path.exists(self.db_path):
            logger.error(f"Database file not found: {self.db_path}")
            return False

        try:
            with self._get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "SELECT name FROM sqlite_master WHERE type='table' AND name='gwas_catalog'"
                )
                if not cursor.fetchone():
                    logger.error("Missing table: gwas_catalog")
                    return False
                return True
        except CatalogDatabaseError:
            return False

    def _require_database(self) -> None:
        if not os.path.exists(self.db_path):
            raise CatalogDatabaseError(f"Database file not found: {self.db_path}")

    def fetch_batch(
        self,
        filters: Optional[StudyFilters] = None,
        offset: int = 0,
        limit: int = SCAN_BATCH_SIZE
    ) -> List[RawStudyRecord]:
        """
        Fetch a batch of raw studies in id order.

        Args:
            filters: Text and trait filters to push down, or None for all rows.
            offset: Rows to skip.
            limit: Maximum rows to return.

        Returns:
            List[RawStudyRecord]: Batch, empty past the end.

        Raises:
            CatalogDatabaseError: If the catalog cannot be queried.
        """
        self._require_database()
        where, params = build_where_clause(filters)
        query = f"{_SELECT} {where} ORDER BY id LIMIT ? OFFSET ?"

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params + [limit, offset])
            return [RawStudyRecord.from_row(row) for row in cursor.fetchall()]

    def count(self, filters: Optional[StudyFilters] = None) -> int:
        """
        Count rows matching the text and trait filters.

        Raises:
            CatalogDatabaseError: If the catalog cannot be queried.
        """
        self._require_database()
        where, params = build_where_clause(filters)

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT COUNT(*) FROM gwas_catalog {where}", params)
            return cursor.fetchone()[0]

    def get_study(self, study_id: int) -> Optional[RawStudyRecord]:
        """Get one study by id, or None."""
        self._require_database()
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"{_SELECT} WHERE id = ?", (study_id,))
            row = cursor.fetchone()
            return RawStudyRecord.from_row(row) if row else None

    def get_traits(self, limit: Optional[int] = None) -> List[str]:
        """
        Get distinct trait names (reported and mapped), sorted.

        Args:
            limit: Maximum number of traits.

        Returns:
            List[str]: Trait names.
        """
        self._require_database()
        query = """
            SELECT trait FROM (
                SELECT disease_trait AS trait FROM gwas_catalog WHERE disease_trait IS NOT NULL
                UNION
                SELECT mapped_trait AS trait FROM gwas_catalog WHERE mapped_trait IS NOT NULL
            )
            ORDER BY trait COLLATE NOCASE
        """
        params: Tuple = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)

        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [row['trait'] for row in cursor.fetchall() if row['trait']]

    def insert_studies(self, records: List[RawStudyRecord]) -> int:
        """
        Append raw studies. Source ids on the records are ignored.

        Returns:
            int: Rows inserted.
        """
        self.ensure_schema()
        rows = [tuple(getattr(record, col) for col in STUDY_COLUMNS) for record in records]
        with self._get_connection() as conn:
            conn.executemany(_INSERT, rows)
            conn.commit()
        return len(rows)

    def set_metadata(self, key: str, value: str) -> None:
        """Store a metadata value."""
        with self._get_connection() as conn:
            conn.execute("INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)", (key, value))
            conn.commit()

    def get_metadata(self) -> Dict[str, str]:
        """Get all metadata values; empty when the database does not exist."""
        if not os.path.exists(self.db_path):
            return {}
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name='metadata'"
            )
            if not cursor.fetchone():
                return {}
            cursor.execute("SELECT key, value FROM metadata")
            return {row['key']: row['value'] for row in cursor.fetchall()}

    def import_tsv(
        self,
        filepath: str,
        replace: bool = True,
        progress: Optional[Callable[[int], None]] = None
    ) -> Tuple[int, int]:
        """
        Import a GWAS Catalog associations TSV file (plain or gzip).

        Columns are located by header name, so column order and extra
        columns do not matter. Empty cells are stored as NULL; all other
        values are kept verbatim.

        Args:
            filepath: Path to the TSV file.
            replace: Delete existing rows first.
            progress: Called with the number of rows handled after each batch.

        Returns:
            Tuple[int, int]: (rows inserted, rows skipped)

        Raises:
            CatalogDatabaseError: If the file is missing or its header lacks
                the SNP columns.
        """
        if not validate_file_exists(filepath):
            raise CatalogDatabaseError(f"File not found or not readable: {filepath}")

        self.ensure_schema()

        inserted = 0
        skipped = 0
        batch: List[Tuple] = []

        with open_text(filepath) as f, self._get_connection() as conn:
            header_line = f.readline()
            header = [col.strip().upper() for col in header_line.rstrip('\r\n').split('\t')]
            missing = [col for col in REQUIRED_TSV_COLUMNS if col not in header]
            if missing:
                raise CatalogDatabaseError(f"TSV header is missing columns: {', '.join(missing)}")

            indices = {TSV_COLUMN_MAP[col]: i for i, col in enumerate(header) if col in TSV_COLUMN_MAP}
            logger.info(f"Importing {filepath}: {len(indices)} known columns")

            cursor = conn.cursor()
            if replace:
                cursor.execute("DELETE FROM gwas_catalog")

            for line in f:
                cols = line.rstrip('\r\n').split('\t')
                if len(cols) < 2:
                    skipped += 1
                    continue

                values = {}
                for name, idx in indices.items():
                    values[name] = _clean_value(cols[idx]) if idx < len(cols) else None

                if not values.get('snps') and not values.get('strongest_snp_risk_allele'):
                    skipped += 1
                    continue

                batch.append(tuple(values.get(col) for col in STUDY_COLUMNS))

                if len(batch) >= IMPORT_BATCH_SIZE:
                    cursor.executemany(_INSERT, batch)
                    inserted += len(batch)
                    batch = []
                    if progress:
                        progress(inserted + skipped)

            if batch:
                cursor.executemany(_INSERT, batch)
                inserted += len(batch)
                if progress:
                    progress(inserted + skipped)

            total = cursor.execute("SELECT COUNT(*) FROM gwas_catalog").fetchone()[0]
            cursor.execute(
                "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
                ("last_update", datetime.now().isoformat())
            )
            cursor.execute(
                "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
                ("total_studies", str(total))
            )
            conn.commit()

        logger.info(f"Imported {inserted:,} associations ({skipped:,} skipped)")
        return inserted, skipped
