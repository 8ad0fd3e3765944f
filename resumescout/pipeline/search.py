"""
Catho search URL builder and result-page walker.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Union
from urllib.parse import quote

from ..schemas import ListingRecord
from .driver import PageDriver
from .extractors import ListingExtractor
from .humanize import humanized_wait

SEARCH_URL = "https://www.catho.com.br/curriculos/busca/"

AGE_RANGES = {"18_20": 1, "21_25": 2, "26_30": 3, "31_40": 4, "41_50": 5, "50_PLUS": 6}

SALARY_RANGES = {
    "ATE_1K": 1,
    "1K_2K": 2,
    "2K_3K": 3,
    "3K_4K": 4,
    "4K_5K": 5,
    "5K_6K": 6,
    "6K_7K": 7,
    "7K_8K": 8,
    "8K_10K": 9,
    "10K_12K": 10,
    "12K_15K": 11,
    "15K_20K": 12,
    "ACIMA_20K": 13,
}

HIERARCHICAL_LEVELS = {
    "ESTAGIARIO": 1,
    "TRAINEE": 2,
    "ASSISTENTE_AUXILIAR": 3,
    "ANALISTA": 4,
    "COORDENADOR_SUPERVISOR": 5,
    "GERENTE_DIRETOR": 6,
}

LAST_UPDATED_DAYS = (1, 7, 15, 30, 60, 90, 180, 365, 548, 730)


class SearchQueryBuilder:
    """Fluent builder for Catho résumé search URLs.

    Multi-valued filters follow Catho's ``name[ID]=ID`` query convention.
    """

    def __init__(self, query: str) -> None:
        self.query = query
        self.params: Dict[str, Union[str, int]] = {
            "q": query,
            "pais_id": 31,
            "estado_id[-1]": -1,
            "regiaoId[-1]": -1,
            "cidade_id[-1]": -1,
            "zona_id[-1]": -1,
            "page": 1,
            "onde_buscar": "todo_curriculo",
            "como_buscar": "todas_palavras",
            "tipoBusca": "busca_palavra_chave",
        }

    def _multi(self, name: str, ids: Optional[Iterable[int]]) -> "SearchQueryBuilder":
        for item in ids or ():
            self.params[f"{name}[{item}]"] = item
        return self

    def set_salary_ranges(self, range_ids: Optional[Iterable[int]] = None) -> "SearchQueryBuilder":
        return self._multi("faixaSal", range_ids)

    def set_age_ranges(self, range_ids: Optional[Iterable[int]] = None) -> "SearchQueryBuilder":
        return self._multi("idade", range_ids)

    def set_gender(self, gender: str = "ambos") -> "SearchQueryBuilder":
        if gender == "M":
            self.params["generoMasculino[true]"] = "true"
        elif gender == "F":
            self.params["generoFeminino[true]"] = "true"
        return self

    def set_professional_areas(self, area_ids: Optional[Iterable[int]] = None) -> "SearchQueryBuilder":
        return self._multi("areap_id", area_ids)

    def set_hierarchical_levels(self, level_ids: Optional[Iterable[int]] = None) -> "SearchQueryBuilder":
        return self._multi("nivelh_id", level_ids)

    def set_last_updated(self, days: Optional[int] = 90) -> "SearchQueryBuilder":
        if days:
            self.params["dataAtualizacao"] = days
        return self

    def set_candidate_situation(self, situation: Optional[str] = "indifferent") -> "SearchQueryBuilder":
        if situation == "unemployed":
            self.params["empregado"] = "false"
        elif situation == "employed":
            self.params["empregado"] = "true"
        return self

    def set_state(self, state_id: Optional[int]) -> "SearchQueryBuilder":
        if state_id:
            self.params.pop("estado_id[-1]", None)
            self.params["estado_id[0]"] = state_id
        return self

    def set_city(self, city_id: Optional[int]) -> "SearchQueryBuilder":
        if city_id:
            self.params.pop("cidade_id[-1]", None)
            self.params["cidade_id[0]"] = city_id
        return self

    def set_page(self, page: int = 1) -> "SearchQueryBuilder":
        self.params["page"] = page
        return self

    def get_params(self) -> Dict[str, Union[str, int]]:
        return dict(self.params)

    def build(self) -> str:
        # encodeURIComponent semantics: brackets are escaped in keys
        query = "&".join(
            f"{quote(str(k), safe='')}={quote(str(v), safe='')}" for k, v in self.params.items()
        )
        return f"{SEARCH_URL}?{query}"


def builder_from_config(query: str, search_cfg: Optional[Dict[str, Any]] = None) -> SearchQueryBuilder:
    """Builder with the filters of a YAML ``search:`` section applied."""
    cfg = search_cfg or {}
    return (
        SearchQueryBuilder(query)
        .set_salary_ranges(cfg.get("salary_ranges"))
        .set_age_ranges(cfg.get("age_ranges"))
        .set_gender(cfg.get("gender", "ambos"))
        .set_professional_areas(cfg.get("professional_areas"))
        .set_hierarchical_levels(cfg.get("hierarchical_levels"))
        .set_last_updated(cfg.get("last_updated_days"))
        .set_candidate_situation(cfg.get("candidate_situation"))
        .set_state(cfg.get("state_id"))
        .set_city(cfg.get("city_id"))
    )


def collect_profile_urls(
    page: PageDriver,
    builder: SearchQueryBuilder,
    *,
    max_pages: int = 3,
    page_delay_ms: int = 2000,
    navigation_timeout_ms: int = 30000,
    listing_extractor: Optional[ListingExtractor] = None,
    on_records: Optional[Callable[[List[ListingRecord]], Any]] = None,
) -> List[str]:
    """Walk result pages in order and return unique profile URLs.

    Stops at the first page without cards. Navigation failures end the walk
    with whatever was collected so far. ``on_records`` receives each page's
    valid cards (e.g. to persist the listing rows); its failures are logged
    and do not stop the walk.
    """
    extractor = listing_extractor or ListingExtractor()
    urls: List[str] = []
    seen = set()

    for page_num in range(1, max(1, int(max_pages)) + 1):
        url = builder.set_page(page_num).build()
        print(f"➡️ Search page {page_num}/{max_pages}: {url}")
        try:
            page.navigate(url, timeout_ms=navigation_timeout_ms)
        except Exception as e:
            print(f"❌ Search page {page_num} failed: {e}")
            extractor.add_error(e, {"url": url, "page": page_num})
            break

        records = [r for r in extractor.extract(page, {"search_query": builder.query}) if extractor.validate(r)]
        if not records:
            print(f"ℹ️ No results on page {page_num}, stopping")
            break

        added = 0
        for record in records:
            if record.profile_url not in seen:
                seen.add(record.profile_url)
                urls.append(record.profile_url)
                added += 1
        print(f"✅ Page {page_num}: {len(records)} cards, {added} new profiles")
        if on_records is not None:
            try:
                on_records(records)
            except Exception as e:
                print(f"⚠️ Could not store listings from page {page_num}: {e}")

        if page_num < max_pages:
            humanized_wait(page, page_delay_ms, 0.3)

    return urls
