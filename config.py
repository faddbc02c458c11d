"""
Configuration constants for the GWAS Study Explorer.
"""

import logging
import os
import re

# Paths
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DATABASE_PATH = os.path.join(BASE_DIR, 'database', 'gwas_catalog.db')
STATE_FILE = os.path.join(BASE_DIR, 'database', 'update_state.json')
LOG_DIR = os.path.join(BASE_DIR, 'logs')

# Logging configuration
LOG_LEVEL = logging.DEBUG
LOG_FILE_SIZE = 10 * 1024 * 1024  # 10MB
LOG_BACKUP_COUNT = 5

# GWAS Catalog download
GWAS_CATALOG_URL = (
    "https://ftp.ebi.ac.uk/pub/databases/gwas/releases/latest/"
    "gwas-catalog-associations_ontology-annotated.tsv"
)
REQUEST_TIMEOUT = 300

# Quality thresholds
GENOME_WIDE_SIGNIFICANCE = 5e-8
SUGGESTIVE_P_VALUE = 5e-7
VERY_SMALL_COHORT = 500
SMALL_COHORT = 1000
MODERATE_SIGNAL_LOG_P = 6.0

HIGH_BAND_MIN_SAMPLE_SIZE = 5000
HIGH_BAND_MIN_LOG_P = 9.0
HIGH_BAND_MAX_P_VALUE = 5e-9
MEDIUM_BAND_MIN_SAMPLE_SIZE = 2000
MEDIUM_BAND_MIN_LOG_P = 7.0
MEDIUM_BAND_MAX_P_VALUE = 1e-6

# Field normalization
SAMPLE_SIZE_SIMILARITY = 0.2  # numbers within 20% of the max restate one cohort
TWO_DIGIT_YEAR_PIVOT = 70     # <70 -> 20xx, >=70 -> 19xx

# Browsing pipeline
RESULTS_PER_PAGE = 75
MIN_RESULTS_PER_PAGE = 10
MAX_RESULTS_PER_PAGE = 200
RAW_FETCH_FACTOR = 4
MAX_RAW_FETCH = 800
SNP_PARSE_CACHE_SIZE = 100_000

# Bulk scan
SCAN_BATCH_SIZE = 10_000
PROGRESS_INTERVAL_SECONDS = 0.5

# Genotype files
MAX_GENOTYPE_FILE_SIZE = 50 * 1024 * 1024  # 50MB

# Risk scoring
MIN_RISK_SCORE = 0.1
NO_CALL_GENOTYPES = {'--', '-', '00', ''}
VALID_GENOTYPE_BASES = set('ACGTID-')
MISSING_RISK_ALLELE_VALUES = {'', '?', 'NR'}

# Valid chromosome values
VALID_CHROMOSOMES = [str(i) for i in range(1, 23)] + ['X', 'Y', 'MT']

# Validation patterns
RSID_PATTERN = re.compile(r'^(rs|i)\d+$')
SNP_SPLIT_PATTERN = re.compile(r'[;,\s]+')

# Filter presets used by the browsing view
FILTER_PRESETS = {
    'default': {
        'min_sample_size': 500,
        'max_p_value': 5e-8,
        'min_log_p': 6.0,
        'exclude_low_quality': True,
        'exclude_missing_genotype': True,
        'sort_by': 'relevance',
        'sort_ascending': False,
        'confidence_band': None,
    },
    'all': {
        'search_text': '',
        'trait': '',
        'min_sample_size': None,
        'max_p_value': None,
        'min_log_p': None,
        'exclude_low_quality': False,
        'exclude_missing_genotype': False,
        'sort_by': 'recent',
        'sort_ascending': False,
        'confidence_band': None,
    },
    'high': {
        'min_sample_size': 5000,
        'max_p_value': 5e-9,
        'min_log_p': 9.0,
        'exclude_low_quality': True,
        'sort_by': 'relevance',
        'sort_ascending': False,
        'confidence_band': 'high',
    },
    'medium': {
        'min_sample_size': 2000,
        'max_p_value': 1e-6,
        'min_log_p': 7.0,
        'exclude_low_quality': True,
        'sort_by': 'power',
        'sort_ascending': False,
        'confidence_band': 'medium',
    },
    'low': {
        'min_sample_size': 200,
        'max_p_value': 0.05,
        'min_log_p': 3.0,
        'exclude_low_quality': False,
        'sort_by': 'recent',
        'sort_ascending': False,
        'confidence_band': 'low',
    },
}

# Application settings
APP_NAME = 'GWAS Study Explorer'
APP_VERSION = '1.0.0'
