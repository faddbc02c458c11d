"""
Unit tests for the SQLite catalog study source.
"""

import pytest
import gzip
import tempfile
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database.catalog_database import CatalogDatabase, CatalogDatabaseError, build_where_clause
from database.setup_database import create_database, verify_database, sample_records, SAMPLE_CATALOG
from models.study_models import StudyFilters


TSV_HEADER = [
    "DATE ADDED TO CATALOG", "PUBMEDID", "FIRST AUTHOR", "DATE", "JOURNAL", "STUDY",
    "DISEASE/TRAIT", "INITIAL SAMPLE SIZE", "REPLICATION SAMPLE SIZE", "MAPPED_GENE",
    "STRONGEST SNP-RISK ALLELE", "SNPS", "RISK ALLELE FREQUENCY", "P-VALUE", "PVALUE_MLOG",
    "OR or BETA", "95% CI (TEXT)", "MAPPED_TRAIT", "STUDY ACCESSION",
]

TSV_ROWS = [
    ["2008-06-16", "18372903", "Zeggini E", "2008-03-30", "Nat Genet", "Meta-analysis of type 2 diabetes",
     "Type 2 diabetes", "4,549 cases, 5,579 controls", "22,426 cases", "JAZF1",
     "rs864745-T", "rs864745", "0.50", "5E-14", "13.30", "1.10", "[1.07-1.13]", "type 2 diabetes mellitus",
     "GCST000178"],
    ["2008-06-16", "18372903", "Zeggini E", "2008-03-30", "Nat Genet", "Meta-analysis of type 2 diabetes",
     "Type 2 diabetes", "4,549 cases, 5,579 controls", "", "CDC123",
     "rs12779790-G", "rs12779790", "0.18", "1E-10", "10", "", "", "type 2 diabetes mellitus",
     "GCST000178"],
    ["2009-01-01", "1", "Nobody", "", "", "Row without SNPs", "Trait", "", "", "",
     "", "", "", "", "", "", "", "", "GCST999999"],
]


@pytest.fixture
def db_path():
    with tempfile.TemporaryDirectory() as tmp:
        yield os.path.join(tmp, "catalog.db")


@pytest.fixture
def sample_db(db_path):
    assert create_database(db_path)
    return CatalogDatabase(db_path)


def write_tsv(path, header=TSV_HEADER, rows=TSV_ROWS, compress=False):
    text = '\n'.join('\t'.join(row) for row in [header] + rows) + '\n'
    if compress:
        with gzip.open(path, 'wt', encoding='utf-8') as f:
            f.write(text)
    else:
        with open(path, 'w', encoding='utf-8') as f:
            f.write(text)


class TestSampleCatalog:
    """Tests for the sample catalog and batched reads."""

    def test_create_and_verify(self, db_path):
        """Test creating the sample database."""
        assert not verify_database(db_path)
        assert create_database(db_path)
        assert verify_database(db_path)
        assert CatalogDatabase(db_path).get_metadata()['source'] == 'sample'

    def test_count_and_batches(self, sample_db):
        """Test counts and offset batches in id order."""
        assert sample_db.count() == len(SAMPLE_CATALOG)

        first = sample_db.fetch_batch(None, 0, 5)
        assert [r.study_id for r in first] == [1, 2, 3, 4, 5]
        assert first[0].study_accession == 'GCST000052'

        tail = sample_db.fetch_batch(None, 15, 10)
        assert len(tail) == len(SAMPLE_CATALOG) - 15
        assert sample_db.fetch_batch(None, 100, 10) == []

    def test_search_filter(self, sample_db):
        """Test the pushed-down text search."""
        assert sample_db.count(StudyFilters(search_text="diabetes")) == 1
        assert sample_db.count(StudyFilters(search_text="CANCER")) == 3
        assert sample_db.count(StudyFilters(search_text="100%")) == 0
        rows = sample_db.fetch_batch(StudyFilters(search_text="tcf7l2"))
        assert [r.study_accession for r in rows] == ['GCST000009']

    def test_trait_filter(self, sample_db):
        """Test exact trait matching on either trait column."""
        assert sample_db.count(StudyFilters(trait="Height")) == 1
        assert sample_db.count(StudyFilters(trait="body height")) == 1
        assert sample_db.count(StudyFilters(trait="Heig")) == 0

    def test_where_clause_without_filters(self):
        """Test that empty filters add no WHERE clause."""
        assert build_where_clause(None) == ('', [])
        assert build_where_clause(StudyFilters()) == ('', [])

    def test_get_study(self, sample_db):
        """Test single-study lookup."""
        study = sample_db.get_study(3)
        assert study.snps == 'rs7903146'
        assert study.strongest_snp_risk_allele == 'rs7903146-T'
        assert sample_db.get_study(9999) is None

    def test_missing_values_are_null(self, sample_db):
        """Test that empty sample cells come back as None."""
        schizophrenia = next(r for r in sample_db.fetch_batch(None, 0, 100) if r.study_accession == 'GCST000223')
        assert schizophrenia.or_or_beta is None

    def test_get_traits(self, sample_db):
        """Test the distinct trait list."""
        traits = sample_db.get_traits()
        assert 'Height' in traits
        assert 'body height' in traits
        assert len(sample_db.get_traits(limit=3)) == 3

    def test_missing_database(self, db_path):
        """Test that reads fail cleanly without a database file."""
        catalog = CatalogDatabase(db_path)
        assert not catalog.verify_database()
        with pytest.raises(CatalogDatabaseError):
            catalog.fetch_batch()
        with pytest.raises(CatalogDatabaseError):
            catalog.count()
        assert catalog.get_metadata() == {}

    def test_sample_records(self):
        """Test the sample rows as raw records."""
        records = sample_records()
        assert len(records) == len(SAMPLE_CATALOG)
        assert all(r.study_id is None for r in records)


class TestImportTsv:
    """Tests for GWAS Catalog TSV import."""

    def test_import_plain(self, db_path):
        """Test import by header name with an unusable row skipped."""
        tsv = db_path + '.tsv'
        write_tsv(tsv)
        catalog = CatalogDatabase(db_path)
        handled = []

        inserted, skipped = catalog.import_tsv(tsv, progress=handled.append)

        assert (inserted, skipped) == (2, 1)
        assert handled[-1] == 3
        assert catalog.count() == 2
        first = catalog.get_study(1)
        assert first.study_accession == 'GCST000178'
        assert first.or_or_beta == '1.10'
        assert first.confidence_interval == '[1.07-1.13]'
        assert first.mapped_trait == 'type 2 diabetes mellitus'
        assert catalog.get_study(2).or_or_beta is None
        assert catalog.get_metadata()['total_studies'] == '2'

    def test_import_gzip(self, db_path):
        """Test that a gzip TSV is read transparently."""
        tsv = db_path + '.tsv.gz'
        write_tsv(tsv, compress=True)
        inserted, _ = CatalogDatabase(db_path).import_tsv(tsv)
        assert inserted == 2

    def test_import_replaces_existing(self, sample_db, db_path):
        """Test that replace=True clears earlier rows and append keeps them."""
        tsv = db_path + '.tsv'
        write_tsv(tsv)

        sample_db.import_tsv(tsv, replace=True)
        assert sample_db.count() == 2

        sample_db.import_tsv(tsv, replace=False)
        assert sample_db.count() == 4

    def test_missing_required_columns(self, db_path):
        """Test that a header without SNP columns is rejected."""
        tsv = db_path + '.tsv'
        write_tsv(tsv, header=["STUDY", "P-VALUE"], rows=[["x", "1E-8"]])
        with pytest.raises(CatalogDatabaseError):
            CatalogDatabase(db_path).import_tsv(tsv)

    def test_missing_file(self, db_path):
        """Test importing a file that does not exist."""
        with pytest.raises(CatalogDatabaseError):
            CatalogDatabase(db_path).import_tsv(db_path + '.missing')
