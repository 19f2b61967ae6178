"""
SectionResolver: index page → list of Section.

Two sources are supported:
  - the rendered menu of the index page (featured links + section menu), and
  - the JSON configuration the index page embeds in `window._config`, which
    additionally carries region, upload and sensitivity information.

Failure policy: a missing container means upstream redesigned the page and
the whole resolution fails with StructureDriftError; a label we cannot map
is routine drift and degrades to SectionKind.UNKNOWN.
"""

import json
import re
from typing import Any, Optional
from urllib.parse import urldefrag

from pydantic import ValidationError

from .config import ClientConfig
from .document import HtmlDocument, HtmlNode, JsonDocument, parse_json
from .exceptions import StructureDriftError
from .logger import get_module_logger
from .schemas import Section, SectionKind, SectionPayload, SectionResult

logger = get_module_logger("sections")

STAGE = "sections"

_KIND_BY_KEY = {kind.value: kind for kind in SectionKind}


def parse_section_kind(label: Optional[str]) -> SectionKind:
    """
    Map a free-form label onto a well-known SectionKind.

    Matching ignores case and all whitespace ("Cute Animals" → CUTE_ANIMALS);
    anything unrecognised is UNKNOWN rather than an error.
    """
    if not label:
        return SectionKind.UNKNOWN
    key = "".join(label.split()).lower()
    return _KIND_BY_KEY.get(key, SectionKind.UNKNOWN)


class SectionResolver:
    """Extracts sections from the index page."""

    def __init__(self, config: Optional[ClientConfig] = None):
        self.config = config or ClientConfig()

    # --- Rendered menu ---

    def resolve_sections(self, document: HtmlDocument) -> list[Section]:
        """
        Resolve sections from the rendered index page.

        Featured links (hot/trending/fresh) come first, then the section menu
        in document order. Duplicate URLs are dropped.

        Raises:
            StructureDriftError: the section menu container is missing
        """
        selectors = self.config.selectors
        sections: list[Section] = []
        seen: set[str] = set()

        def add(section: Optional[Section]) -> None:
            if section is not None and section.url not in seen:
                seen.add(section.url)
                sections.append(section)

        for css in selectors.featured_links:
            link = document.select_one(css)
            if link is None:
                logger.warning(f"Featured section link '{css}' not found")
                continue
            # "a.hot" → HOT, independent of the (localised) label text
            add(self._section_from_link(link, fallback_kind=parse_section_kind(css.rsplit(".", 1)[-1])))

        containers = document.select_all(selectors.section_container)
        if not containers:
            raise StructureDriftError(
                "Section menu not found on index page",
                STAGE,
                selector=selectors.section_container
            )

        for container in containers:
            for link in container.select_all(selectors.section_link):
                add(self._section_from_link(link))

        logger.info(f"Resolved {len(sections)} sections")
        return sections

    def _section_from_link(
        self,
        link: HtmlNode,
        fallback_kind: SectionKind = SectionKind.UNKNOWN
    ) -> Optional[Section]:
        href = link.attr("href")
        if not href:
            logger.warning(f"Skipping section link without href: {link.text()!r}")
            return None

        name = link.text() or link.attr("title", "")
        kind = parse_section_kind(name)
        if kind is SectionKind.UNKNOWN:
            kind = fallback_kind
            if kind is SectionKind.UNKNOWN:
                logger.debug(f"Unrecognised section label {name!r}")

        icon = link.select_one(self.config.selectors.section_icon)
        icon_url = icon.attr("src") if icon is not None else None

        return Section(
            url=self._normalize_url(href),
            name=name,
            description=link.attr("title", "") or "",
            kind=kind,
            icon_url=self.config.absolute(icon_url) if icon_url else None
        )

    def _normalize_url(self, href: str) -> str:
        url, _ = urldefrag(self.config.absolute(href))
        return url.rstrip("/") or url

    # --- Embedded configuration ---

    def resolve_config_sections(self, index_html: str) -> SectionResult:
        """
        Resolve sections from the index page's `window._config` blob.

        Raises:
            StructureDriftError: the blob or its `page.sections` list is missing
            ParseError: the blob is not valid JSON
        """
        match = re.search(self.config.config_pattern, index_html, re.DOTALL)
        if not match:
            raise StructureDriftError("Embedded configuration not found", STAGE, selector="window._config")

        document = parse_json(self._unescape(match.group("config")))
        document.require("page", "sections", stage=STAGE)

        result = SectionResult(
            sections=self._config_sections(document, "sections"),
            featured_sections=self._config_sections(document, "featuredSections"),
            local_sections=self._config_sections(document, "localSections"),
            current_local_section=self._config_section(document.get("page", "geoSection", default=None))
        )
        logger.info(
            f"Resolved {len(result.sections)} sections, "
            f"{len(result.featured_sections)} featured, {len(result.local_sections)} local"
        )
        return result

    @staticmethod
    def _unescape(raw: str) -> str:
        # The blob is a JS string literal; JSON string rules decode it
        try:
            return json.loads(f'"{raw}"')
        except ValueError:
            return raw.replace('\\"', '"').replace("\\\\/", "/").replace("\\/", "/")

    def _config_sections(self, document: JsonDocument, key: str) -> list[Section]:
        value = document.get("page", key, default=[])
        # Keyed by slug ({"funny": {...}}) or a plain list, depending on the version
        items = list(value.values()) if isinstance(value, dict) else value if isinstance(value, list) else []
        sections = []
        for item in items:
            section = self._config_section(item)
            if section is not None:
                sections.append(section)
        return sections

    def _config_section(self, item: Any) -> Optional[Section]:
        if not isinstance(item, dict):
            return None
        try:
            payload = SectionPayload.model_validate(item)
        except ValidationError as e:
            logger.warning(f"Skipping malformed section entry: {e.error_count()} error(s)")
            return None
        if not payload.url:
            logger.warning(f"Skipping section {payload.name!r} without url")
            return None
        return Section(
            url=self._normalize_url(payload.url),
            name=payload.name,
            description=payload.description or "",
            kind=parse_section_kind(payload.name),
            icon_url=payload.icon_url,
            locale=payload.locale or "",
            upload_allowed=payload.upload_allowed,
            is_sensitive=payload.is_sensitive
        )
