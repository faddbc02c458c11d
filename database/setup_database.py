"""
Database setup script for the GWAS Study Explorer.

Creates the catalog database and populates it with a small sample of GWAS
Catalog associations, kept as raw catalog text.
"""

import sqlite3
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import DATABASE_PATH
from models.study_models import RawStudyRecord
from database.catalog_database import CatalogDatabase, CatalogDatabaseError
from utils.logging_config import get_logger

logger = get_logger(__name__)

SAMPLE_COLUMNS = (
    'study_accession', 'study', 'disease_trait', 'mapped_trait', 'mapped_gene',
    'first_author', 'date', 'journal', 'pubmedid',
    'initial_sample_size', 'replication_sample_size',
    'p_value', 'pvalue_mlog', 'or_or_beta', 'confidence_interval',
    'strongest_snp_risk_allele', 'snps',
)

# Sample associations - GWAS Catalog style text, deliberately heterogeneous
SAMPLE_CATALOG = [
    ("GCST000052", "Genome-wide association study identifies novel breast cancer susceptibility loci",
     "Breast cancer", "breast carcinoma", "FGFR2", "Easton DF", "2007-05-27", "Nature", "17529967",
     "4,398 European ancestry cases, 4,316 European ancestry controls",
     "21,860 European ancestry cases, 22,578 European ancestry controls",
     "2E-76", "75.69897000433602", "1.26", "[1.23-1.30]", "rs2981582-A", "rs2981582"),
    ("GCST000054", "A genome-wide association scan of tag SNPs identifies a susceptibility variant for colorectal cancer at 8q24.21",
     "Colorectal cancer", "colorectal cancer", "CASC8, POU5F1B", "Tomlinson I", "2007-07-08", "Nat Genet", "17618284",
     "930 British ancestry cases, 960 British ancestry controls", "7,334 British ancestry cases, 5,246 controls",
     "1 x 10-14", "", "1.27", "[1.16-1.39]", "rs6983267-G", "rs6983267"),
    ("GCST000009", "A genome-wide association study identifies novel risk loci for type 2 diabetes",
     "Type 2 diabetes", "type 2 diabetes mellitus", "TCF7L2", "Sladek R", "2007-02-11", "Nature", "17293876",
     "694 French ancestry cases, 669 French ancestry controls", "2,617 French ancestry cases, 2,894 controls",
     "2.3E-36", "35.63827216398241", "1.37", "[1.28-1.47]", "rs7903146-T", "rs7903146"),
    ("GCST000028", "A common variant in the FTO gene is associated with body mass index and predisposes to childhood and adult obesity",
     "Obesity", "obesity", "FTO", "Frayling TM", "2007-04-12", "Science", "17434869",
     "1,924 British ancestry cases, 2,938 British ancestry controls", "38,759 European ancestry individuals",
     "1E-42", "42", "1.31", "[1.23-1.39]", "rs9939609-A", "rs9939609"),
    ("GCST000817", "Hundreds of variants clustered in genomic loci and biological pathways affect human height",
     "Height", "body height", "GDF5, UQCC1", "Lango Allen H", "2010-09-29", "Nature", "20881960",
     "133,653 European ancestry individuals", "50,074 European ancestry individuals",
     "5E-30", "30.301029995663985", "0.07", "[0.05-0.09] unit increase", "rs143384-A", "rs143384"),
    ("GCST000453", "Genome-wide association study identifies variants at CLU and PICALM associated with Alzheimer's disease",
     "Alzheimer's disease", "Alzheimer disease", "APOE", "Harold D", "2009-09-06", "Nat Genet", "19734902",
     "3,941 European ancestry cases, 7,848 European ancestry controls", "2,023 cases, 2,340 controls",
     "1E-200", "200", "3.68", "[3.31-4.08]", "rs429358-C", "rs429358"),
    ("GCST001122", "Candidate gene association study of pain sensitivity",
     "Pain sensitivity", "pain", "OPRM1", "Fillingim RB", "2005-03-01", "J Pain", "15057820",
     "312 European ancestry individuals", "",
     "1.5E-6", "5.823908740944319", "1.20", "[1.10-1.31]", "rs1799971-G", "rs1799971"),
    ("GCST000898", "Genome-wide association study of major depressive disorder",
     "Major depressive disorder", "unipolar depression", "BDNF", "Shyn SI", "2011-01-04", "Mol Psychiatry", "21112890",
     "40,000 European ancestry individuals", "",
     "3E-6", "5.522878745280337", "1.10", "[1.05-1.15]", "rs6265-?", "rs6265"),
    ("GCST000156", "Identification of a variant associated with adult-type hypolactasia",
     "Lactase persistence", "lactase persistence", "MCM6", "Enattah NS", "12 February 2004", "Nat Genet", "12594458",
     "1,047 Finnish ancestry individuals", "",
     "1E-100", "100", "15.0", "[9.8-22.9]", "rs4988235-T", "rs4988235"),
    ("GCST000174", "Blue eye color in humans may be caused by a perfectly associated founder mutation",
     "Eye color", "eye colour measurement", "HERC2", "Eiberg H", "31/01/2008", "Hum Genet", "18252222",
     "10,000 European ancestry individuals (9,800 after QC)", "",
     "<1E-300", "300", "25.0", "[17.1-36.5]", "rs12913832-G", "rs12913832"),
    ("GCST000032", "A genome-wide association study identifies IL23R as an inflammatory bowel disease gene",
     "Crohn's disease", "Crohn's disease", "IL23R", "Duerr RH", "2006-10-26", "Science", "17068223",
     "547 European ancestry cases, 548 European ancestry controls", "1,265 cases, 1,198 controls",
     "5.1E-10", "9.292429823902063", "0.26", "[0.15-0.43]", "rs11209026-A", "rs11209026"),
    ("GCST000057", "Genomewide association analysis of coronary artery disease",
     "Coronary artery disease", "coronary artery disease", "CDKN2B-AS1", "Samani NJ", "2007-07-18", "N Engl J Med", "17634449",
     "1,926 British ancestry cases, 2,938 British ancestry controls", "875 German ancestry cases, 1,644 controls",
     "4.8 x 10^-14", "", "1.36", "[1.27-1.46]", "rs1333049-C", "rs1333049"),
    ("GCST000120", "Newly identified genetic risk variants for celiac disease related to the immune response",
     "Celiac disease", "celiac disease", "HLA-DQA1", "Hunt KA", "2008-03-02", "Nat Genet", "18311140",
     "778 British ancestry cases, 1,422 British ancestry controls", "1,643 cases, 3,406 controls",
     "1E-200", "200", "6.00", "[5.09-7.07]", "rs2187668-T", "rs2187668"),
    ("GCST000076", "Multiple loci identified in a genome-wide association study of prostate cancer",
     "Prostate cancer", "prostate carcinoma", "CASC8, HNF1B", "Thomas G", "2008-02-10", "Nat Genet", "18264098",
     "1,172 European ancestry cases, 1,157 European ancestry controls", "3,941 cases, 3,964 controls",
     "7.7E-14", "13.113509274827518", "1.72", "[1.49-1.99]", "rs1447295-A", "rs1447295; rs4430796"),
    ("GCST000760", "Biological, clinical and population relevance of 95 loci for blood lipids",
     "LDL cholesterol", "low density lipoprotein cholesterol measurement", "LDLR", "Teslovich TM", "2010-08-05", "Nature", "20686565",
     "100,184 European ancestry individuals", "",
     "5E-117", "116.30102999566398", "-0.22", "[0.20-0.24] mg/dL decrease", "rs6511720-T", "rs6511720"),
    ("GCST000223", "Identification of a schizophrenia susceptibility locus at 2q32.1",
     "Schizophrenia", "schizophrenia", "ZNF804A", "O'Donovan MC", "2008-07-30", "Nat Genet", "18677311",
     "479 British ancestry cases, 2,937 British ancestry controls", "6,666 cases, 9,897 controls",
     "1.6E-7", "6.795880017344075", "", "", "rs1344706-T", "rs1344706"),
    ("GCST000663", "Common genetic determinants of vitamin D insufficiency",
     "Vitamin D levels", "vitamin D measurement", "GC", "Wang TJ", "June 10, 2010", "Lancet", "20541252",
     "15,018 European ancestry individuals", "16,124 European ancestry individuals",
     "1E-50", "50", "1.30", "[1.24-1.36]", "rs2282679-C", "rs2282679"),
    ("GCST000037", "Association of a functional variant of PTPN22 with rheumatoid arthritis",
     "Rheumatoid arthritis", "rheumatoid arthritis", "PTPN22", "Begovich AB", "07-06-2004", "Am J Hum Genet", "15208781",
     "1,860 European ancestry cases, 1,865 European ancestry controls", "",
     "9E-25", "24.045757490560675", "1.75", "[1.56-1.96]", "rs2476601-A", "rs2476601"),
]


def sample_records():
    """Sample associations as RawStudyRecords."""
    return [
        RawStudyRecord(**{col: (value or None) for col, value in zip(SAMPLE_COLUMNS, row)})
        for row in SAMPLE_CATALOG
    ]


def create_database(db_path: str, drop_existing: bool = False) -> bool:
    """
    Create the catalog database with its schema and sample data.

    Args:
        db_path: Path to the database file.
        drop_existing: If True, drop existing tables before creating.

    Returns:
        bool: True if successful.
    """
    directory = os.path.dirname(db_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    if drop_existing and os.path.exists(db_path):
        conn = sqlite3.connect(db_path)
        try:
            conn.execute("DROP TABLE IF EXISTS gwas_catalog")
            conn.execute("DROP TABLE IF EXISTS metadata")
            conn.commit()
        finally:
            conn.close()

    catalog = CatalogDatabase(db_path)
    try:
        catalog.ensure_schema()
        inserted = catalog.insert_studies(sample_records())
        catalog.set_metadata('source', 'sample')
        catalog.set_metadata('total_studies', str(catalog.count()))
    except CatalogDatabaseError as e:
        logger.error(f"Error creating database: {e}")
        print(f"Error creating database: {e}")
        return False

    print(f"Database created successfully at {db_path}")
    print(f"  - {inserted} sample associations")
    logger.info(f"Sample catalog created at {db_path} ({inserted} associations)")
    return True


def verify_database(db_path: str) -> bool:
    """
    Verify that the database exists and has data.

    Args:
        db_path: Path to the database file.

    Returns:
        bool: True if database is valid.
    """
    catalog = CatalogDatabase(db_path)
    if not catalog.verify_database():
        return False
    try:
        return catalog.count() > 0
    except CatalogDatabaseError:
        return False


if __name__ == '__main__':
    import argparse

    parser = argparse.ArgumentParser(description='Setup GWAS catalog database')
    parser.add_argument('--drop', action='store_true',
                        help='Drop existing tables before creating')
    parser.add_argument('--path', type=str, default=DATABASE_PATH,
                        help='Path to database file')

    args = parser.parse_args()

    if verify_database(args.path) and not args.drop:
        print(f"Database already exists at {args.path}")
        print("Use --drop to recreate")
    else:
        create_database(args.path, drop_existing=args.drop)
