"""
Session Manager for saving and loading analysis results.

Provides TSV export of match results and compressed JSON sessions that
can be reloaded into a ResultStore.
"""

import gzip
import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional, Iterable

from models.data_models import MatchResult
from backend.results_store import ResultStore
from utils.logging_config import get_logger

logger = get_logger(__name__)

# File format version for compatibility checking
SESSION_FORMAT_VERSION = "1.0"

TSV_HEADERS = [
    'Study ID',
    'GWAS ID',
    'Trait Name',
    'Study Title',
    'Your Genotype',
    'Risk Allele',
    'Effect Size',
    'Risk Score',
    'Risk Level',
    'Matched SNP',
    'Analysis Date',
]


class SessionError(Exception):
    """Exception raised when a session file cannot be read or is incompatible."""
    pass


@dataclass
class SavedSession:
    """
    A saved analysis session.

    Attributes:
        file_name: Genotype file the results came from
        created_date: ISO timestamp of the save
        total_variants: Variants in the genotype file
        genotype_file_hash: SHA-256 of the genotype file
        results: Match results
    """
    file_name: str
    total_variants: int
    results: List[MatchResult] = field(default_factory=list)
    genotype_file_hash: Optional[str] = None
    created_date: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_store(self) -> ResultStore:
        """Load the results into a new ResultStore."""
        return ResultStore(self.results)


def _tsv_text(value: Any) -> str:
    return str(value if value is not None else '').replace('\t', ' ').replace('\n', ' ')


class SessionManager:
    """
    Manages export, saving and loading of analysis sessions.
    """

    @staticmethod
    def export_tsv(filepath: str, results: Iterable[MatchResult]) -> int:
        """
        Export match results as a tab-separated file.

        Tabs and newlines inside text fields are replaced by spaces.

        Args:
            filepath: Output path.
            results: Results to write.

        Returns:
            int: Number of rows written.
        """
        rows = [TSV_HEADERS]
        for r in results:
            rows.append([
                str(r.study_id),
                _tsv_text(r.gwas_id),
                _tsv_text(r.trait_name),
                _tsv_text(r.study_title),
                _tsv_text(r.user_genotype),
                _tsv_text(r.risk_allele),
                _tsv_text(r.effect_size),
                repr(r.risk_score),
                r.risk_level.value,
                _tsv_text(r.matched_snp),
                _tsv_text(r.analysis_date),
            ])

        directory = os.path.dirname(filepath)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(filepath, 'w', encoding='utf-8', newline='') as f:
            f.write('\n'.join('\t'.join(row) for row in rows))
            f.write('\n')

        logger.info(f"Exported {len(rows) - 1:,} results to {filepath}")
        return len(rows) - 1

    @staticmethod
    def save_session(filepath: str, session: SavedSession) -> bool:
        """
        Save an analysis session to a gzip-compressed JSON file.

        Args:
            filepath: Path for the output file.
            session: Session to save.

        Returns:
            bool: True if save was successful.
        """
        session_data = {
            "format_version": SESSION_FORMAT_VERSION,
            "file_name": session.file_name,
            "created_date": session.created_date,
            "total_variants": session.total_variants,
            "genotype_file_hash": session.genotype_file_hash,
            "results": [r.to_dict() for r in session.results],
        }

        json_data = json.dumps(session_data, ensure_ascii=False)
        compressed_data = gzip.compress(json_data.encode('utf-8'), compresslevel=9)

        os.makedirs(os.path.dirname(filepath) if os.path.dirname(filepath) else '.', exist_ok=True)

        with open(filepath, 'wb') as f:
            f.write(compressed_data)

        original_size = len(json_data)
        compressed_size = len(compressed_data)
        compression_ratio = (1 - compressed_size / original_size) * 100 if original_size > 0 else 0

        logger.info(
            f"Session saved: {filepath} "
            f"({compressed_size:,} bytes, {compression_ratio:.1f}% compression)"
        )
        return True

    @staticmethod
    def load_session(filepath: str) -> SavedSession:
        """
        Load an analysis session saved with save_session.

        Results that fail to deserialize are skipped with a warning.

        Args:
            filepath: Path to the session file.

        Returns:
            SavedSession: Loaded session.

        Raises:
            SessionError: If the file is not a gzip JSON session.
            FileNotFoundError: If file doesn't exist.
        """
        with open(filepath, 'rb') as f:
            compressed_data = f.read()

        try:
            session_data = json.loads(gzip.decompress(compressed_data).decode('utf-8'))
        except (gzip.BadGzipFile, EOFError):
            raise SessionError(f"Invalid session file format (not gzip): {filepath}")
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise SessionError(f"Invalid session file format (invalid JSON): {e}")

        if not isinstance(session_data, dict) or not isinstance(session_data.get("results"), list):
            raise SessionError(f"Invalid session file format (no results list): {filepath}")

        file_version = session_data.get("format_version", "unknown")
        if file_version != SESSION_FORMAT_VERSION:
            logger.warning(
                f"Session file version mismatch: {file_version} vs {SESSION_FORMAT_VERSION}"
            )

        results = []
        for result_data in session_data["results"]:
            try:
                results.append(MatchResult.from_dict(result_data))
            except (ValueError, KeyError, TypeError) as e:
                logger.warning(f"Skipping invalid match result: {e}")

        session = SavedSession(
            file_name=session_data.get("file_name") or '',
            total_variants=int(session_data.get("total_variants") or 0),
            results=results,
            genotype_file_hash=session_data.get("genotype_file_hash"),
            created_date=session_data.get("created_date") or '',
        )

        logger.info(f"Session loaded: {filepath} ({len(results):,} results)")
        return session

    @staticmethod
    def get_session_info(filepath: str) -> Dict[str, Any]:
        """
        Get summary information about a session file.

        Args:
            filepath: Path to the session file

        Returns:
            Dictionary with summary information, or an "error" entry.
        """
        try:
            session = SessionManager.load_session(filepath)
        except (SessionError, OSError) as e:
            return {"filepath": filepath, "error": str(e)}

        return {
            "filepath": filepath,
            "file_size_bytes": os.path.getsize(filepath),
            "file_name": session.file_name,
            "created_date": session.created_date,
            "total_variants": session.total_variants,
            "result_count": len(session.results),
        }
