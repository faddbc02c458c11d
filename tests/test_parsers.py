"""
Unit tests for the genotype file parser.
"""

import pytest
import gzip
import hashlib
import tempfile
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backend.parsers import (
    GenotypeFileParser, ParseError, parse_genotype_file, detect_format, CSV_FORMAT, WHITESPACE_FORMAT
)
from backend.validators import validate_genotype_fields, is_valid_genotype, has_usable_risk_allele


class TestGenotypeFileParser:
    """Tests for the GenotypeFileParser class."""

    def _create_temp_file(self, content: str, suffix: str = '.txt') -> str:
        """Create a temporary file with the given content."""
        fd, path = tempfile.mkstemp(suffix=suffix)
        with os.fdopen(fd, 'w') as f:
            f.write(content)
        return path

    def test_parse_valid_23andme_file(self):
        """Test parsing a whitespace-delimited file with comment lines."""
        content = """# Comment line
# rsid	chromosome	position	genotype
rs3131972	1	694713	GG
rs12124819	1	713790	AG
rs11240777	1	856331	GG
i700	1	909917	TT
rs4970383	1	1019440	AG
"""
        path = self._create_temp_file(content)
        try:
            parser = GenotypeFileParser()
            genotypes = parser.parse_file(path)

            assert len(genotypes) == 5
            assert genotypes['rs3131972'] == 'GG'
            assert genotypes['i700'] == 'TT'

            stats = parser.get_parse_stats()
            assert stats['valid_variants'] == 5
            assert stats['no_calls'] == 0
            assert stats['file_format'] == WHITESPACE_FORMAT
        finally:
            os.unlink(path)

    def test_parse_csv_with_header(self):
        """Test parsing a comma-delimited file with a literal header row."""
        content = """RSID,CHROMOSOME,POSITION,RESULT
"rs3131972","1","694713","GG"
"rs12124819","1","713790","ag"
rs11240777,X,856331,--
"""
        path = self._create_temp_file(content, '.csv')
        try:
            genotypes, stats = parse_genotype_file(path)

            assert genotypes == {'rs3131972': 'GG', 'rs12124819': 'AG', 'rs11240777': '--'}
            assert stats['file_format'] == CSV_FORMAT
            assert stats['no_calls'] == 1
            assert stats['warnings_count'] == 0
        finally:
            os.unlink(path)

    def test_no_calls_preserved(self):
        """Test that no-call genotypes stay in the map verbatim."""
        content = """rs3131972	1	694713	GG
rs7899632	2	1234567	--
rs12124819	1	713790	AG
"""
        path = self._create_temp_file(content)
        try:
            parser = GenotypeFileParser()
            genotypes = parser.parse_file(path)

            assert genotypes['rs7899632'] == '--'
            assert parser.get_parse_stats()['no_calls'] == 1
        finally:
            os.unlink(path)

    def test_invalid_lines_skipped(self):
        """Test that malformed rows become warnings."""
        content = """rs3131972	1	694713	GG
rs12124819	1
invalid_id	1	713790	AG
rs11240777	99	856331	GG
rs6681049	1	-5	TT
rs1234567	3	5000000	ZZ
rs4970383	1	1019440	AG
"""
        path = self._create_temp_file(content)
        try:
            parser = GenotypeFileParser()
            genotypes = parser.parse_file(path)

            assert sorted(genotypes) == ['rs3131972', 'rs4970383']
            stats = parser.get_parse_stats()
            assert stats['total_lines'] == 7
            assert stats['warnings_count'] == 5
            assert 'Line 2' in stats['warnings'][0]
        finally:
            os.unlink(path)

    def test_chromosomes(self):
        """Test that X, Y and MT are accepted."""
        content = """rs1	X	100	AG
rs2	Y	200	A-
rs3	MT	300	TT
rs4	23	400	AG
"""
        path = self._create_temp_file(content)
        try:
            genotypes, _ = parse_genotype_file(path)
            assert sorted(genotypes) == ['rs1', 'rs2', 'rs3']
        finally:
            os.unlink(path)

    def test_gzip_file(self):
        """Test that gzip-compressed files are read transparently."""
        fd, path = tempfile.mkstemp(suffix='.txt.gz')
        os.close(fd)
        with gzip.open(path, 'wt', encoding='utf-8') as f:
            f.write("# header\nrs3131972\t1\t694713\tGG\n")
        try:
            genotypes, stats = parse_genotype_file(path)
            assert genotypes == {'rs3131972': 'GG'}
        finally:
            os.unlink(path)

    def test_file_hash(self):
        """Test that the parse records the SHA-256 of the file."""
        content = "rs3131972\t1\t694713\tGG\n"
        path = self._create_temp_file(content)
        try:
            _, stats = parse_genotype_file(path)
            with open(path, 'rb') as f:
                assert stats['file_hash'] == hashlib.sha256(f.read()).hexdigest()
        finally:
            os.unlink(path)

    def test_parse_file_not_found(self):
        """Test that ParseError is raised for missing files."""
        with pytest.raises(ParseError):
            GenotypeFileParser().parse_file('/nonexistent/path/file.txt')

    def test_parse_empty_file_error(self):
        """Test that ParseError is raised for files without data rows."""
        content = """# Only comments
# No data
"""
        path = self._create_temp_file(content)
        try:
            with pytest.raises(ParseError):
                GenotypeFileParser().parse_file(path)
        finally:
            os.unlink(path)

    def test_binary_file_error(self):
        """Test that undecodable content raises ParseError."""
        fd, path = tempfile.mkstemp(suffix='.txt')
        with os.fdopen(fd, 'wb') as f:
            f.write(b'\xff\xfe\x00\x81\x82' * 100)
        try:
            with pytest.raises(ParseError):
                GenotypeFileParser().parse_file(path)
        finally:
            os.unlink(path)

    def test_parser_reuse_resets_stats(self):
        """Test that statistics describe only the last parse."""
        first = self._create_temp_file("rs1\t1\t100\tAA\nrs2\t1\t200\t--\n")
        second = self._create_temp_file("rs3\t1\t300\tCC\n")
        try:
            parser = GenotypeFileParser()
            parser.parse_file(first)
            parser.parse_file(second)
            stats = parser.get_parse_stats()
            assert stats['valid_variants'] == 1
            assert stats['no_calls'] == 0
        finally:
            os.unlink(first)
            os.unlink(second)


class TestValidators:
    """Tests for genotype and risk allele validation."""

    def test_detect_format(self):
        """Test delimiter detection."""
        assert detect_format("rs1,1,100,AA") == CSV_FORMAT
        assert detect_format("rs1\t1\t100\tAA") == WHITESPACE_FORMAT

    def test_validate_fields(self):
        """Test a valid row and its parsed values."""
        ok, data, message = validate_genotype_fields(['rs1', '1', '100', 'ag'], 3)
        assert ok
        assert data == {'rsid': 'rs1', 'chromosome': '1', 'position': 100, 'genotype': 'AG'}
        assert message == ''

    def test_validate_fields_errors(self):
        """Test error messages carry the line number."""
        ok, data, message = validate_genotype_fields(['rs1', '1', '100'], 12)
        assert not ok
        assert data is None
        assert message.startswith("Line 12")

    @pytest.mark.parametrize("genotype", ["--", "-", "00", "", "---", None])
    def test_no_calls_invalid(self, genotype):
        """Test no-call placeholders."""
        assert not is_valid_genotype(genotype)

    @pytest.mark.parametrize("genotype", ["AA", "AG", "DI", "A-"])
    def test_calls_valid(self, genotype):
        """Test real calls."""
        assert is_valid_genotype(genotype)

    def test_risk_allele_usability(self):
        """Test missing risk allele markers."""
        assert has_usable_risk_allele("rs7903146-T")
        for value in (None, "", " ", "?", "NR", "rs6265-?"):
            assert not has_usable_risk_allele(value)
