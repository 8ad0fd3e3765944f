from __future__ import annotations

import random
import re
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urljoin

from selectolax.parser import HTMLParser

from ..schemas import ContactKind, ContactRecord, ListingRecord, ProfileData
from .base import BaseExtractor
from .driver import NavigationTimeout, PageDriver
from .humanize import humanized_wait, simulate_human_behavior
from .parsers import ProfileParseError, node_text, parse_profile
from .results import ExtractionResult, FailureKind
from .reveal import ContactRevealController

INTER_KIND_DELAY_MS = 500
NAVIGATION_TIMEOUT_MS = 30000
PROFILE_WAIT_MS = 2000
PROFILE_WAIT_VARIANCE = 0.4

CATHO_ORIGIN = "https://www.catho.com.br"


class ContactExtractor(BaseExtractor):
    """Reveals phone then email on the current profile page.

    Kinds are isolated: a failed phone reveal never blocks the email attempt,
    and a failed reveal only leaves its field empty. ``extract`` always
    returns ``success=True``.
    """

    def __init__(
        self,
        controller: Optional[ContactRevealController] = None,
        *,
        inter_kind_delay_ms: int = INTER_KIND_DELAY_MS,
    ) -> None:
        super().__init__()
        self.controller = controller or ContactRevealController()
        self.inter_kind_delay_ms = inter_kind_delay_ms

    def _reveal(self, page: PageDriver, kind: ContactKind, context: Dict[str, Any]) -> Optional[str]:
        try:
            result = self.controller.reveal(page, kind)
        except Exception as e:
            self.add_error(e, {**context, "kind": kind.value, "failure": FailureKind.UNEXPECTED_EXCEPTION.value})
            return None
        if not result.success:
            self.add_error(result.error, {**context, "kind": kind.value, "failure": result.failure.value})
            return None
        return result.data

    def extract(self, page: PageDriver, context: Optional[Dict[str, Any]] = None) -> ExtractionResult[ContactRecord]:
        context = dict(context or {})
        print("  🔎 Looking for contact details...")

        phone = self._reveal(page, ContactKind.PHONE, context)
        try:
            page.pause(self.inter_kind_delay_ms)
        except Exception as e:
            self.add_error(e, {**context, "stage": "inter_kind_pause"})
        email = self._reveal(page, ContactKind.EMAIL, context)

        record = ContactRecord(email=email, phone=phone)
        if record.is_empty():
            print("  ℹ️ No contact details revealed")
        return ExtractionResult.ok(record)

    def validate(self, data) -> bool:
        return data is not None and not data.is_empty()


class ProfileExtractor(BaseExtractor):
    """Full profile pipeline for one URL.

    navigate -> humanized wait -> behavior simulation -> contacts -> parse -> merge

    Profile-level failures (navigation timeout, parse failure, anything
    unexpected) come back as ``success=False`` and are recorded in the error
    log; nothing raises to the caller.
    """

    def __init__(
        self,
        contact_extractor: Optional[ContactExtractor] = None,
        *,
        navigation_timeout_ms: int = NAVIGATION_TIMEOUT_MS,
        wait_ms: int = PROFILE_WAIT_MS,
        wait_variance: float = PROFILE_WAIT_VARIANCE,
        parser: Callable[[str], ProfileData] = parse_profile,
        rng: Optional[random.Random] = None,
    ) -> None:
        super().__init__()
        self.contact_extractor = contact_extractor or ContactExtractor()
        self.navigation_timeout_ms = navigation_timeout_ms
        self.wait_ms = wait_ms
        self.wait_variance = wait_variance
        self.parser = parser
        self.rng = rng

    def extract(self, page: PageDriver, context: Optional[Dict[str, Any]] = None) -> ExtractionResult[ProfileData]:
        context = dict(context or {})
        url = context.get("profile_url")
        if not url:
            self.add_error("missing profile_url", context)
            return ExtractionResult.fail(FailureKind.UNEXPECTED_EXCEPTION, "missing profile_url in context")

        request_time_ms = None
        try:
            print(f"  📄 Accessing profile: {url}")
            request_time_ms = page.navigate(url, timeout_ms=self.navigation_timeout_ms, wait_until="networkidle")

            humanized_wait(page, self.wait_ms, self.wait_variance, self.rng)
            simulate_human_behavior(page, self.rng)

            contacts = self.contact_extractor.extract(page, context).data or ContactRecord()

            try:
                profile = self.parser(page.content())
            except ProfileParseError as e:
                self.add_error(e, {**context, "failure": FailureKind.PARSE_FAILURE.value})
                return ExtractionResult.fail(FailureKind.PARSE_FAILURE, f"Parse failure: {e}", request_time_ms)

            profile.merge_contacts(contacts)
            print(
                f"  ✅ Profile extracted: {len(profile.work_experiences)} experiences, "
                f"{len(profile.education)} education, {len(profile.skills)} skills"
            )
            return ExtractionResult.ok(profile, request_time_ms)

        except NavigationTimeout as e:
            self.add_error(e, {**context, "failure": FailureKind.NAVIGATION_TIMEOUT.value})
            print(f"  ❌ {e}")
            return ExtractionResult.fail(FailureKind.NAVIGATION_TIMEOUT, str(e), request_time_ms)
        except Exception as e:
            self.add_error(e, {**context, "failure": FailureKind.UNEXPECTED_EXCEPTION.value})
            print(f"  ❌ Error extracting profile: {e}")
            return ExtractionResult.fail(
                FailureKind.UNEXPECTED_EXCEPTION, str(e) or type(e).__name__, request_time_ms
            )

    def extract_profile(self, page: PageDriver, url: str) -> ExtractionResult[ProfileData]:
        """``extract_fn`` adapter for the sequential strategy."""
        return self.extract(page, {"profile_url": url})

    def validate(self, data) -> bool:
        """A result is usable when it carries non-contact personal data or career info."""
        profile = data.data if isinstance(data, ExtractionResult) else data
        if profile is None:
            return False
        return profile.personal_data.has_content() or profile.career_info.has_content()


class ListingExtractor(BaseExtractor):
    """Parses search result cards into ``ListingRecord`` rows."""

    CARD_SELECTOR = "article"

    def extract(self, page: PageDriver, context: Optional[Dict[str, Any]] = None) -> List[ListingRecord]:
        context = dict(context or {})
        try:
            html = page.content()
        except Exception as e:
            self.add_error(e, context)
            print(f"❌ Error reading result page: {e}")
            return []
        return self.extract_from_html(html, context.get("search_query", ""))

    def extract_from_html(self, html: str, search_query: str = "") -> List[ListingRecord]:
        tree = HTMLParser(html or "")
        records = []
        for index, card in enumerate(tree.css(self.CARD_SELECTOR)):
            try:
                records.append(self._parse_card(card, search_query))
            except Exception as e:
                self.add_error(e, {"card": index + 1, "search_query": search_query})
                print(f"⚠️ Error extracting card {index + 1}: {e}")
        print(f"✅ Extracted {len(records)} listings from page")
        return records

    def _parse_card(self, card, search_query: str) -> ListingRecord:
        def first_text(selector: str) -> str:
            el = card.css_first(selector)
            return " ".join(node_text(el).split()) if el is not None else ""

        name = first_text("h2 a b, h2 b, h2 a") or "Nome não disponível"
        location = first_text('p[class*="eZkCL"]')
        job_title = first_text('h3[class*="dCFHLb"]')
        salary = first_text('p[class*="bypJrT"], strong')
        last_updated = first_text('span[class*="fxwrCY"]')
        languages = first_text('p[class*="iHbSHJ"]').replace("Idioma(s):", "").strip()

        experience = ""
        exp_el = card.css_first('[class*="kdBSHD"]')
        if exp_el is not None:
            m = re.search(
                r"(\d+\s*(?:ano|anos|mês|meses|month|months).*?)(?=Idioma|$)",
                " ".join(node_text(exp_el).split()),
                re.IGNORECASE,
            )
            if m:
                experience = m.group(1).strip()

        link = card.css_first("h2 a")
        href = (link.attributes.get("href") or "") if link is not None else ""
        profile_url = href if href.startswith("http") else urljoin(CATHO_ORIGIN, href) if href else ""

        summary_parts = [
            f"Experiência: {experience}" if experience else "",
            f"Pretensão: {salary}" if salary else "",
            f"Idiomas: {languages}" if languages else "",
            f"Atualizado: {last_updated}" if last_updated else "",
        ]
        return ListingRecord(
            name=name,
            job_title=job_title,
            location=location,
            experience=experience,
            summary=" | ".join(p for p in summary_parts if p),
            profile_url=profile_url,
            last_updated=last_updated,
            search_query=search_query,
        )

    def validate(self, data) -> bool:
        return bool(data is not None and data.name and data.profile_url.startswith("http"))
