"""
Unit tests for the catalog download and update script.
"""

import pytest
import json
import os
import sys

import requests

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database.update_databases import (
    CatalogUpdateError,
    download_catalog,
    format_size,
    load_state,
    save_state,
    update_gwas,
)
from database.catalog_database import CatalogDatabase

TSV_TEXT = (
    "STUDY ACCESSION\tDISEASE/TRAIT\tSNPS\tSTRONGEST SNP-RISK ALLELE\tOR OR BETA\tP-VALUE\n"
    "GCST000001\tAsthma\trs1\trs1-A\t1.2\t1E-9\n"
    "GCST000002\tAsthma\trs2\trs2-G\t0.9\t1E-8\n"
)


class FakeResponse:
    def __init__(self, body: bytes, status_ok: bool = True):
        self.body = body
        self.status_ok = status_ok
        self.headers = {'content-length': str(len(body))}

    def raise_for_status(self):
        if not self.status_ok:
            raise requests.HTTPError("404 Client Error")

    def iter_content(self, chunk_size=1):
        for i in range(0, len(self.body), chunk_size):
            yield self.body[i:i + chunk_size]


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requested = []

    def get(self, url, stream=False, timeout=None):
        self.requested.append(url)
        if self.error:
            raise self.error
        return self.response


class TestDownload:
    """Tests for download_catalog."""

    def test_streams_to_file(self, tmp_path):
        """Test that the response body is written to disk."""
        destination = tmp_path / "catalog.tsv"
        session = FakeSession(FakeResponse(TSV_TEXT.encode('utf-8')))

        written = download_catalog("https://example.org/catalog.tsv", str(destination), session)

        assert written == len(TSV_TEXT.encode('utf-8'))
        assert destination.read_text(encoding='utf-8') == TSV_TEXT
        assert session.requested == ["https://example.org/catalog.tsv"]

    def test_http_error(self, tmp_path):
        """Test that HTTP errors become CatalogUpdateError."""
        session = FakeSession(FakeResponse(b"", status_ok=False))
        with pytest.raises(CatalogUpdateError):
            download_catalog("https://example.org/x", str(tmp_path / "x.tsv"), session)

    def test_connection_error(self, tmp_path):
        """Test that connection failures become CatalogUpdateError."""
        session = FakeSession(error=requests.ConnectionError("unreachable"))
        with pytest.raises(CatalogUpdateError):
            download_catalog("https://example.org/x", str(tmp_path / "x.tsv"), session)


class TestState:
    """Tests for the update state file."""

    def test_default_state(self, tmp_path):
        """Test the state when no file exists."""
        state = load_state(str(tmp_path / "state.json"))
        assert state["gwas"]["status"] == "never"

    def test_round_trip(self, tmp_path):
        """Test saving and loading state."""
        path = str(tmp_path / "nested" / "state.json")
        save_state({"gwas": {"status": "complete"}}, path)
        assert load_state(path)["gwas"]["status"] == "complete"

    def test_corrupt_state_ignored(self, tmp_path):
        """Test that an unreadable state file falls back to the default."""
        path = tmp_path / "state.json"
        path.write_text("{not json")
        assert load_state(str(path))["gwas"]["status"] == "never"

    def test_format_size(self):
        """Test human-readable sizes."""
        assert format_size(512) == "512.0 B"
        assert format_size(2048) == "2.0 KB"
        assert format_size(5 * 1024 * 1024) == "5.0 MB"


class TestUpdateGwas:
    """Tests for update_gwas."""

    def test_local_file_import(self, tmp_path):
        """Test importing a local TSV and recording the state."""
        tsv = tmp_path / "catalog.tsv"
        tsv.write_text(TSV_TEXT, encoding='utf-8')
        db_path = str(tmp_path / "catalog.db")
        state_file = str(tmp_path / "state.json")

        state = load_state(state_file)
        assert update_gwas(state, db_path=db_path, local_file=str(tsv), state_file=state_file)

        saved = json.loads((tmp_path / "state.json").read_text())
        assert saved["gwas"]["status"] == "complete"
        assert saved["gwas"]["associations"] == 2
        catalog = CatalogDatabase(db_path)
        assert catalog.count() == 2
        assert catalog.get_metadata()["source"] == str(tsv)

    def test_failed_import_recorded(self, tmp_path):
        """Test that a failing import is recorded in the state file."""
        bad = tmp_path / "bad.tsv"
        bad.write_text("STUDY\tP-VALUE\nx\t1\n", encoding='utf-8')
        state_file = str(tmp_path / "state.json")

        state = load_state(state_file)
        assert not update_gwas(state, db_path=str(tmp_path / "c.db"), local_file=str(bad), state_file=state_file)

        saved = load_state(state_file)
        assert saved["gwas"]["status"] == "failed"
        assert "SNPS" in saved["gwas"]["error"]
