"""
Input validation functions for the GWAS Study Explorer.
"""

import re
from typing import Tuple, Optional, List

from config import (
    VALID_CHROMOSOMES,
    RSID_PATTERN,
    VALID_GENOTYPE_BASES,
    NO_CALL_GENOTYPES,
    MISSING_RISK_ALLELE_VALUES,
)
from utils.logging_config import get_logger

logger = get_logger(__name__)

_ALL_DASHES = re.compile(r'^-+$')


def validate_rsid(rsid: str) -> bool:
    """
    Validate that a string is a valid RSID format.

    Args:
        rsid: String to validate.

    Returns:
        bool: True if valid RSID format (rs or i followed by digits).
    """
    return bool(RSID_PATTERN.match(rsid))


def validate_chromosome(chromosome: str) -> bool:
    """
    Validate that a chromosome value is valid.

    Args:
        chromosome: Chromosome string to validate.

    Returns:
        bool: True if valid chromosome (1-22, X, Y, MT).
    """
    return chromosome in VALID_CHROMOSOMES


def validate_position(position: str) -> Tuple[bool, Optional[int]]:
    """
    Validate and parse a genomic position.

    Args:
        position: Position string to validate.

    Returns:
        Tuple[bool, Optional[int]]: (is_valid, parsed_value or None)
    """
    try:
        pos_int = int(position)
        if pos_int > 0:
            return True, pos_int
        return False, None
    except ValueError:
        return False, None


def validate_genotype(genotype: str) -> bool:
    """
    Validate the format of a genotype file entry.

    Two characters over A, C, G, T, I, D or "-". No-calls such as "--"
    are well-formed.

    Args:
        genotype: Genotype string to validate.

    Returns:
        bool: True if the format is correct.
    """
    return len(genotype) == 2 and set(genotype) <= VALID_GENOTYPE_BASES


def is_valid_genotype(genotype: Optional[str]) -> bool:
    """
    Check that a genotype is an actual call rather than a no-call placeholder.

    Rejects "--", "-", "00", empty strings and any all-dash string.

    Args:
        genotype: Genotype from a genotype map.

    Returns:
        bool: True if the genotype can be scored.
    """
    if genotype is None:
        return False
    return genotype not in NO_CALL_GENOTYPES and not _ALL_DASHES.match(genotype)


def has_usable_risk_allele(risk_allele: Optional[str]) -> bool:
    """
    Check that a study reports a usable risk allele.

    Empty values, "?", "NR" and any string containing "?" are unusable.

    Args:
        risk_allele: Risk allele string (e.g., "rs123-A").

    Returns:
        bool: True if the allele is reported.
    """
    if risk_allele is None:
        return False
    value = risk_allele.strip()
    return value not in MISSING_RISK_ALLELE_VALUES and '?' not in value


def validate_genotype_fields(parts: List[str], line_number: int) -> Tuple[bool, Optional[dict], str]:
    """
    Validate the four fields of one genotype file row.

    Args:
        parts: Split row fields (rsid, chromosome, position, genotype).
        line_number: Line number for error reporting.

    Returns:
        Tuple[bool, Optional[dict], str]:
            - success: True if the row is valid and should be included
            - data: Parsed data dict or None
            - message: Error message if applicable
    """
    if len(parts) != 4:
        msg = f"Line {line_number}: Expected 4 fields, got {len(parts)}"
        logger.debug(msg)
        return False, None, msg

    rsid, chromosome, position, genotype = (p.strip().strip('"') for p in parts)

    if not validate_rsid(rsid):
        msg = f"Line {line_number}: Invalid RSID format '{rsid}'"
        logger.debug(msg)
        return False, None, msg

    if not validate_chromosome(chromosome):
        msg = f"Line {line_number}: Invalid chromosome '{chromosome}'"
        logger.debug(msg)
        return False, None, msg

    is_valid_pos, pos_value = validate_position(position)
    if not is_valid_pos:
        msg = f"Line {line_number}: Invalid position '{position}'"
        logger.debug(msg)
        return False, None, msg

    genotype = genotype.upper()
    if not validate_genotype(genotype):
        msg = f"Line {line_number}: Invalid genotype format '{genotype}'"
        logger.debug(msg)
        return False, None, msg

    return True, {
        'rsid': rsid,
        'chromosome': chromosome,
        'position': pos_value,
        'genotype': genotype
    }, ''
