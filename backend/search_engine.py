"""
Search engine for browsing GWAS Catalog studies.
"""

from typing import Optional, List

from models.study_models import StudyFilters, SearchResult
from backend.normalizer import normalize_studies
from backend.study_pipeline import StudyPipeline
from config import RAW_FETCH_FACTOR, MAX_RAW_FETCH
from utils.logging_config import get_logger

logger = get_logger(__name__)


def raw_fetch_size(limit: int) -> int:
    """Rows fetched from the source for a page: limit * 4, capped at 800."""
    return min(limit * RAW_FETCH_FACTOR, MAX_RAW_FETCH)


class SearchEngine:
    """
    Search engine over a study source.

    Provides functionality for:
    - Text and trait queries pushed down to the study source
    - Normalization and quality classification of the fetched rows
    - Filtering, sorting and paging through the study pipeline
    """

    def __init__(self, source, pipeline: Optional[StudyPipeline] = None) -> None:
        """
        Initialize the search engine.

        Args:
            source: Study source with fetch_batch(filters, offset, limit)
                and count(filters).
            pipeline: Filter/sort pipeline. A new one is created if None.
        """
        self.source = source
        self.pipeline = pipeline if pipeline is not None else StudyPipeline()

    def search(self, filters: Optional[StudyFilters] = None) -> SearchResult:
        """
        Run one browse request.

        The source is over-fetched (limit * 4, at most 800 rows) so that the
        quality filters still leave a full page in most cases. total counts
        the fetched rows that pass every filter.

        Args:
            filters: Browse filters. Defaults to the default preset.

        Returns:
            SearchResult: Page of studies with counts.

        Raises:
            CatalogDatabaseError: If the study source fails.
        """
        if filters is None:
            filters = StudyFilters.from_preset('default')

        fetch_size = raw_fetch_size(filters.limit)
        raw = self.source.fetch_batch(filters, 0, fetch_size)
        source_count = self.source.count(filters)

        studies = normalize_studies(raw)
        result = self.pipeline.page(studies, filters, source_count=source_count)

        logger.info(
            f"Search '{filters.search_text}' trait='{filters.trait}': "
            f"{result.shown} shown, {result.total} filtered, {source_count} in source"
        )
        return result

    def get_traits(self, limit: Optional[int] = None) -> List[str]:
        """
        Get trait names available for the exact trait filter.

        Returns:
            List[str]: Trait names, empty if the source has none.
        """
        return self.source.get_traits(limit)
