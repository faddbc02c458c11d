"""
Matching of study SNP lists against a user's genotype map.

Matching is exact rsID equality. No strand complementing is applied:
catalog risk alleles and the supported genotype files are forward-strand.
"""

from collections import OrderedDict
from typing import Optional, List, Mapping

from config import SNP_SPLIT_PATTERN, SNP_PARSE_CACHE_SIZE


class SnpParseCache:
    """
    Bounded memo of parsed SNP list strings.

    Least recently used entries are evicted once max_entries is reached.
    Owned by whoever parses many catalog rows (the study pipeline, a bulk
    scan); there is no module-level instance.
    """

    def __init__(self, max_entries: int = SNP_PARSE_CACHE_SIZE) -> None:
        if max_entries < 0:
            raise ValueError(f"max_entries must be >= 0, got: {max_entries}")
        self.max_entries = max_entries
        self._entries: 'OrderedDict[str, List[str]]' = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, raw: str) -> Optional[List[str]]:
        parsed = self._entries.get(raw)
        if parsed is None:
            self.misses += 1
        else:
            self.hits += 1
            self._entries.move_to_end(raw)
        return parsed

    def put(self, raw: str, parsed: List[str]) -> None:
        if self.max_entries == 0:
            return
        if raw in self._entries:
            return
        if len(self._entries) >= self.max_entries:
            self._entries.popitem(last=False)
        self._entries[raw] = parsed

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)


def _split_snps(raw: str) -> List[str]:
    return [snp.strip() for snp in SNP_SPLIT_PATTERN.split(raw) if snp.strip()]


def parse_snp_list(raw: Optional[str], cache: Optional[SnpParseCache] = None) -> List[str]:
    """
    Split a study SNP list on semicolons, commas and whitespace runs.

    Args:
        raw: SNP list text, e.g. "rs1; rs2,rs3  rs4".
        cache: Optional parse cache.

    Returns:
        List[str]: SNP ids in order, empties dropped. Callers must not
        mutate the list when a cache is used.
    """
    if not raw:
        return []

    if cache is not None:
        cached = cache.get(raw)
        if cached is not None:
            return cached

    parsed = _split_snps(raw)

    if cache is not None:
        cache.put(raw, parsed)

    return parsed


def has_any_match(
    genotype_map: Optional[Mapping[str, str]],
    raw_snps: Optional[str],
    cache: Optional[SnpParseCache] = None
) -> bool:
    """
    Check whether any SNP of a study is present in the genotype map.

    Args:
        genotype_map: rsID -> genotype.
        raw_snps: Study SNP list text.
        cache: Optional parse cache.

    Returns:
        bool: True on at least one shared rsID.
    """
    if not genotype_map or not raw_snps:
        return False
    return any(snp in genotype_map for snp in parse_snp_list(raw_snps, cache))


def get_matches(
    genotype_map: Optional[Mapping[str, str]],
    raw_snps: Optional[str],
    cache: Optional[SnpParseCache] = None
) -> List[str]:
    """
    Return the study SNPs present in the genotype map, in study order.

    Args:
        genotype_map: rsID -> genotype.
        raw_snps: Study SNP list text.
        cache: Optional parse cache.

    Returns:
        List[str]: Matching rsIDs.
    """
    if not genotype_map or not raw_snps:
        return []
    return [snp for snp in parse_snp_list(raw_snps, cache) if snp in genotype_map]
