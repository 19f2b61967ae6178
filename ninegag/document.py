"""
DocumentParser: raw text → navigable document.

Two shapes come back from upstream: HTML pages (section lists, listings,
detail pages) and JSON (API listings, the index page's embedded config).
Both wrappers fail closed: a missing node or key is an explicit "not found",
never an AttributeError/KeyError from deep inside a stage.
"""

import json
from typing import Any, Iterable, Optional, Union

from bs4 import BeautifulSoup, Tag

from .exceptions import ParseError, StructureDriftError
from .logger import get_module_logger

logger = get_module_logger("document")


class _NotFound:
    """Sentinel for a missing JSON path."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = _NotFound()


# --- HTML ---

class HtmlNode:
    """A single element with CSS-selector queries."""

    def __init__(self, tag: Tag):
        self.tag = tag

    @property
    def name(self) -> str:
        return self.tag.name

    def select_one(self, css: str) -> Optional["HtmlNode"]:
        found = self.tag.select_one(css)
        return HtmlNode(found) if found is not None else None

    def select_all(self, css: str) -> list["HtmlNode"]:
        return [HtmlNode(t) for t in self.tag.select(css)]

    def require(self, css: str, stage: str) -> "HtmlNode":
        """Like select_one, but a miss is structure drift."""
        found = self.select_one(css)
        if found is None:
            raise StructureDriftError(f"Required element '{css}' not found", stage, selector=css)
        return found

    def attr(self, name: str, default: Optional[str] = None) -> Optional[str]:
        value = self.tag.get(name)
        if value is None:
            return default
        # Multi-valued attributes (class, rel) come back as lists
        if isinstance(value, list):
            value = " ".join(value)
        return value.strip()

    def has_class(self, name: str) -> bool:
        return name in (self.tag.get("class") or [])

    def text(self) -> str:
        """Text content with surrounding whitespace stripped."""
        return self.tag.get_text(separator=" ", strip=True)

    def __repr__(self) -> str:
        return f"HtmlNode(<{self.tag.name}>)"


class HtmlDocument(HtmlNode):
    """Root of a parsed HTML page."""

    def __init__(self, soup: BeautifulSoup, backend: str):
        super().__init__(soup)
        self.backend = backend


def parse_html(text: str, backends: Iterable[str] = ("html5lib", "lxml", "html.parser")) -> HtmlDocument:
    """
    Parse HTML into a navigable document.

    Backend fallback chain: html5lib implements the full WHATWG algorithm and
    copes with the worst markup; lxml is the fast tolerant fallback; the
    stdlib html.parser is always available.

    Raises:
        ParseError: input is not text, is blank, or no backend could build a tree
    """
    if not isinstance(text, str):
        raise ParseError(f"Expected text, got {type(text).__name__}", stage="parse")
    if not text.strip():
        raise ParseError("Document is empty", stage="parse")

    last_error: Optional[Exception] = None
    for backend in backends:
        try:
            soup = BeautifulSoup(text, backend)
        except Exception as e:  # bs4.FeatureNotFound or a tree-builder failure
            logger.warning(f"{backend} parsing failed: {e}")
            last_error = e
            continue
        if soup.find(True) is None:
            last_error = None
            logger.warning(f"{backend} produced no elements")
            continue
        return HtmlDocument(soup, backend)

    raise ParseError("No parser backend could build a document tree", stage="parse", cause=last_error)


# --- JSON ---

PathKey = Union[str, int]


class JsonDocument:
    """Generic JSON tree with path navigation."""

    def __init__(self, data: Any):
        self.data = data

    def get(self, *path: PathKey, default: Any = NOT_FOUND) -> Any:
        """
        Walk `path` (dict keys / list indexes).

        Returns `default` (NOT_FOUND unless given) at the first missing step.
        """
        node = self.data
        for key in path:
            if isinstance(node, dict) and isinstance(key, str) and key in node:
                node = node[key]
            elif isinstance(node, list) and isinstance(key, int) and -len(node) <= key < len(node):
                node = node[key]
            else:
                return default
        return node

    def require(self, *path: PathKey, stage: str) -> Any:
        """Like get, but a missing path is structure drift."""
        value = self.get(*path)
        if value is NOT_FOUND:
            dotted = ".".join(str(p) for p in path)
            raise StructureDriftError(f"Required key '{dotted}' not found", stage, selector=dotted)
        return value


def parse_json(text: str) -> JsonDocument:
    """
    Parse a JSON body.

    Raises:
        ParseError: body is not valid JSON
    """
    try:
        return JsonDocument(json.loads(text))
    except (TypeError, ValueError) as e:
        raise ParseError("Body is not valid JSON", stage="parse", cause=e) from e
