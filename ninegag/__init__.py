"""
ninegag feed retrieval

An async library that turns 9GAG's HTML pages (and JSON posts API) into typed
sections, pages and posts.
- SectionResolver: index page → sections
- ItemClassifier: listing item → post with a content variant
- PageAssembler: fetch → parse → classify → paginate → enrich

Public API surface:
  Entry point:   NineGagClient, ClientConfig
  Data models:   Section, SectionKind, Page, Post, Cursor, content variants
  Error types:   NineGagError and subclasses; PartialFailure is returned, not raised
"""

# --- Entry point ---
from .client import NineGagClient
from .config import ClientConfig, SelectorConfig

# --- Pipeline stages (usable on their own, e.g. on saved pages) ---
from .assembler import PageAssembler
from .classifier import ItemClassifier
from .document import parse_html, parse_json
from .sections import SectionResolver, parse_section_kind

# --- Data models ---
from .schemas import (
    AnimatedContent, ContentItem, ContentKind, Cursor, ItemFailure, Page, PhotoContent,
    Post, PostDetails, RestrictedContent, Section, SectionKind, SectionResult, UnknownContent
)

# --- Exceptions ---
from .exceptions import (
    NineGagError, OperationCancelled, PaginationError, ParseError, PartialFailure,
    StructureDriftError, TransportError, VoteRejectedError
)

__version__ = "0.1.0"
__all__ = [
    "NineGagClient",
    "ClientConfig",
    "SelectorConfig",
    "PageAssembler",
    "ItemClassifier",
    "SectionResolver",
    "parse_section_kind",
    "parse_html",
    "parse_json",
    "AnimatedContent",
    "ContentItem",
    "ContentKind",
    "Cursor",
    "ItemFailure",
    "Page",
    "PhotoContent",
    "Post",
    "PostDetails",
    "RestrictedContent",
    "Section",
    "SectionKind",
    "SectionResult",
    "UnknownContent",
    "NineGagError",
    "OperationCancelled",
    "PaginationError",
    "ParseError",
    "PartialFailure",
    "StructureDriftError",
    "TransportError",
    "VoteRejectedError",
]
