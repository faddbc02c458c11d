"""
Parser for consumer genotype files (23andMe-style raw data).
"""

from typing import List, Tuple, Optional

from models.data_models import GenotypeMap
from backend.validators import validate_genotype_fields, is_valid_genotype
from config import MAX_GENOTYPE_FILE_SIZE
from utils.logging_config import get_logger
from utils.file_utils import validate_file_exists, get_file_size, open_text, compute_file_hash

logger = get_logger(__name__)

WHITESPACE_FORMAT = 'whitespace'
CSV_FORMAT = 'csv'


class ParseError(Exception):
    """Exception raised when parsing fails completely."""
    pass


def detect_format(line: str) -> str:
    """
    Guess the delimiter style from the first data line.

    Args:
        line: First non-comment, non-empty line.

    Returns:
        str: CSV_FORMAT when the line is comma-delimited, else WHITESPACE_FORMAT.
    """
    return CSV_FORMAT if ',' in line else WHITESPACE_FORMAT


def _is_header(parts: List[str]) -> bool:
    return bool(parts) and parts[0].strip().strip('"').lower() in ('rsid', 'snp', 'snp_id')


class GenotypeFileParser:
    """
    Parser for consumer genotype files.

    Supports two 4-column layouts, detected from the first data line:
    whitespace-delimited with "#" comment lines (23andMe), and
    comma-delimited with a literal header row. No-call genotypes ("--")
    are kept verbatim in the map.
    """

    def __init__(self) -> None:
        """Initialize the parser."""
        self.warnings: List[str] = []
        self.total_lines: int = 0
        self.valid_lines: int = 0
        self.no_calls: int = 0
        self.file_format: Optional[str] = None
        self.file_hash: Optional[str] = None

    def _reset(self) -> None:
        self.warnings = []
        self.total_lines = 0
        self.valid_lines = 0
        self.no_calls = 0
        self.file_format = None
        self.file_hash = None

    def parse_file(self, filepath: str) -> GenotypeMap:
        """
        Parse a genotype file into an rsID -> genotype map.

        Args:
            filepath: Path to the genotype file (plain or gzip).

        Returns:
            GenotypeMap: rsID -> 2-character genotype.

        Raises:
            ParseError: If the file cannot be read or holds no valid rows.
        """
        self._reset()

        if not validate_file_exists(filepath):
            raise ParseError(f"File not found or not readable: {filepath}")

        size = get_file_size(filepath)
        if size is not None and size > MAX_GENOTYPE_FILE_SIZE:
            raise ParseError(
                f"File too large: {size:,} bytes (limit {MAX_GENOTYPE_FILE_SIZE:,})"
            )

        genotypes: GenotypeMap = {}

        try:
            with open_text(filepath) as f:
                for line_num, line in enumerate(f, start=1):
                    stripped = line.strip()
                    if not stripped or stripped.startswith('#'):
                        continue

                    if self.file_format is None:
                        self.file_format = detect_format(stripped)
                        logger.debug(f"Detected {self.file_format} genotype format")

                    if self.file_format == CSV_FORMAT:
                        parts = stripped.split(',')
                    else:
                        parts = stripped.split()

                    if _is_header(parts):
                        continue

                    self.total_lines += 1
                    success, data, message = validate_genotype_fields(parts, line_num)
                    if not success:
                        self.warnings.append(message)
                        continue

                    genotypes[data['rsid']] = data['genotype']
                    self.valid_lines += 1
                    if not is_valid_genotype(data['genotype']):
                        self.no_calls += 1

        except UnicodeDecodeError as e:
            raise ParseError(f"File encoding error: {str(e)}")
        except (IOError, EOFError) as e:
            raise ParseError(f"Error reading file: {str(e)}")

        if not genotypes:
            raise ParseError(
                "No valid genotype data found in file. "
                "Expected 4 columns: rsid, chromosome, position, genotype"
            )

        self.file_hash = compute_file_hash(filepath)

        logger.info(
            f"Parsed {filepath}: {self.valid_lines} valid variants, "
            f"{self.no_calls} no-calls, {len(self.warnings)} warnings"
        )

        return genotypes

    def get_parse_stats(self) -> dict:
        """
        Get statistics from the last parse operation.

        Returns:
            dict: Parse statistics including counts and warnings.
        """
        return {
            'total_lines': self.total_lines,
            'valid_variants': self.valid_lines,
            'no_calls': self.no_calls,
            'file_format': self.file_format,
            'file_hash': self.file_hash,
            'warnings_count': len(self.warnings),
            'warnings': self.warnings[:10],
        }


def parse_genotype_file(filepath: str) -> Tuple[GenotypeMap, dict]:
    """
    Convenience function to parse a genotype file.

    Args:
        filepath: Path to the genotype file.

    Returns:
        Tuple[GenotypeMap, dict]: (genotype map, parse statistics)

    Raises:
        ParseError: If parsing fails.
    """
    parser = GenotypeFileParser()
    genotypes = parser.parse_file(filepath)
    stats = parser.get_parse_stats()
    return genotypes, stats
