#!/usr/bin/env python3
"""
Tests for the offline pipeline stages.

Covers document parsing, section resolution (rendered menu and embedded
config), item classification (HTML listing and JSON API) and the models.
No network access: every page is an inline fixture.
"""

import json
from datetime import datetime, timezone
from pathlib import Path

# Add parent to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent))

import pytest
from pydantic import ValidationError

from ninegag.classifier import ItemClassifier, parse_count, video_kind
from ninegag.config import ClientConfig
from ninegag.document import NOT_FOUND, parse_html, parse_json
from ninegag.exceptions import ParseError, PartialFailure, StructureDriftError
from ninegag.schemas import (
    AnimatedContent, ContentKind, ItemFailure, Page, PhotoContent, RestrictedContent,
    Section, SectionKind, UnknownContent
)
from ninegag.sections import SectionResolver, parse_section_kind


INDEX_HTML = """
<html><body>
<nav>
  <a class="hot" href="/hot">Hot</a>
  <a class="trending" href="/trending">Trending</a>
  <a class="fresh" href="/fresh">Fresh</a>
</nav>
<ul>
  <li class="badge-section-menu-items"><a href="/funny" title="Funny stuff"><img src="//img.example.com/funny.png">Funny</a></li>
  <li class="badge-section-menu-items"><a href="/cute-animals/" title="Aww">Cute Animals</a></li>
  <li class="badge-section-menu-items"><a href="/bizarre">Bizarre</a></li>
  <li class="badge-section-menu-items"><a href="/hot#top">Hot again</a></li>
  <li class="badge-section-menu-items"><a>No link</a></li>
</ul>
</body></html>
"""

LISTING_HTML = """
<html><body>
<article data-entry-id="aVid1" data-entry-votes="1,234" data-entry-comments="56">
  <header><h2>Funny cat</h2></header>
  <video poster="https://img.9gag.com/aVid1_460s.jpg">
    <source src="https://img.9gag.com/aVid1_460sv.mp4" type="video/mp4">
    <source src="https://img.9gag.com/aVid1_460svvp9.webm" type="video/webm">
  </video>
</article>
<article data-entry-id="aLong2">
  <header><h2>Very long read</h2></header>
  <img src="https://img.9gag.com/aLong2_460s_Long-Post.jpg">
  <span class="badge-item-love-count">789 points</span>
  <a class="comment" href="/gag/aLong2#comment">12 comments</a>
</article>
<article data-entry-id="aNsfw3" data-entry-votes="10" data-entry-comments="1">
  <header><h2>Not safe</h2></header>
  <div class="nsfw-post"><a href="/login">Log in to view</a></div>
</article>
<article data-entry-id="aTxt4">
  <header><h2>Text only</h2></header>
  <p>Nothing to show</p>
</article>
<article data-entry-id="aNsfw5" data-entry-url="/gag/aNsfw5">
  <div class="nsfw-post"></div>
  <img src="/photo/aNsfw5_460s.jpg">
</article>
<article data-entry-id="aVid6">
  <video src="/video/aVid6.webm" type="video/webm"></video>
</article>
</body></html>
"""


def _embedded_config_html(config: dict) -> str:
    # json.dumps twice: a JSON document inside a JS string literal
    return f"<html><head><script>window._config = JSON.parse({json.dumps(json.dumps(config))});</script></head></html>"


EMBEDDED_CONFIG = {
    "page": {
        "sections": {
            "funny": {
                "name": "Funny",
                "url": "https://9gag.com/funny",
                "description": "",
                "ogImageUrl": "https://img.9gag.com/funny.png",
                "userUploadEnabled": True,
                "isSensitive": False,
                "location": ""
            },
            "nsfw": {
                "name": "NSFW",
                "url": "https://9gag.com/nsfw",
                "description": "Not safe for work",
                "userUploadEnabled": False,
                "isSensitive": True
            }
        },
        "featuredSections": [{"name": "Hot", "url": "https://9gag.com/hot"}],
        "localSections": [{"name": "Germany", "url": "https://9gag.com/germany", "location": "de"}],
        "geoSection": {"name": "Germany", "url": "https://9gag.com/germany/", "location": "de"}
    }
}


def _articles():
    return parse_html(LISTING_HTML).select_all("article")


# --- Document parsing ---

def test_parse_html_rejects_empty_and_non_text():
    with pytest.raises(ParseError):
        parse_html("   ")
    with pytest.raises(ParseError):
        parse_html(b"<html></html>")


def test_parse_html_falls_back_to_next_backend():
    document = parse_html("<p>hi</p>", backends=("no-such-builder", "html.parser"))
    assert document.backend == "html.parser"
    assert document.select_one("p").text() == "hi"


def test_parse_html_fails_when_no_backend_works():
    with pytest.raises(ParseError):
        parse_html("<p>hi</p>", backends=("no-such-builder",))


def test_html_node_queries():
    document = parse_html('<div class="a b"><p>  Hello <b>world</b>  </p></div>')
    div = document.select_one("div")
    assert div.attr("class") == "a b"
    assert div.has_class("b")
    assert div.attr("id") is None
    assert div.attr("id", "fallback") == "fallback"
    assert div.select_one("p").text() == "Hello world"
    assert document.select_one("table") is None

    with pytest.raises(StructureDriftError) as exc:
        document.require("table", stage="page")
    assert exc.value.selector == "table"
    assert exc.value.stage == "page"


def test_json_document_paths():
    document = parse_json('{"data": {"posts": [{"id": "a"}, {"id": "b"}]}}')
    assert document.get("data", "posts", 1, "id") == "b"
    assert document.get("data", "posts", -1, "id") == "b"
    assert document.get("data", "missing") is NOT_FOUND
    assert document.get("data", "posts", 5, default=None) is None
    assert not NOT_FOUND

    with pytest.raises(StructureDriftError) as exc:
        document.require("data", "nextCursor", stage="page")
    assert exc.value.selector == "data.nextCursor"


def test_parse_json_rejects_invalid_body():
    with pytest.raises(ParseError):
        parse_json("<html>not json</html>")


# --- Sections ---

def test_parse_section_kind():
    assert parse_section_kind("Cute Animals") is SectionKind.CUTE_ANIMALS
    assert parse_section_kind("  HOT ") is SectionKind.HOT
    assert parse_section_kind("Bizarre") is SectionKind.UNKNOWN
    assert parse_section_kind(None) is SectionKind.UNKNOWN


def test_resolve_sections_from_menu():
    sections = SectionResolver().resolve_sections(parse_html(INDEX_HTML))

    assert [s.url for s in sections] == [
        "https://9gag.com/hot",
        "https://9gag.com/trending",
        "https://9gag.com/fresh",
        "https://9gag.com/funny",
        "https://9gag.com/cute-animals",
        "https://9gag.com/bizarre",
    ]
    assert [s.kind for s in sections[:3]] == [SectionKind.HOT, SectionKind.TRENDING, SectionKind.FRESH]

    funny = sections[3]
    assert funny.name == "Funny"
    assert funny.description == "Funny stuff"
    assert funny.kind is SectionKind.FUNNY
    assert funny.icon_url == "https://img.example.com/funny.png"
    assert str(funny) == "Funny - Funny stuff"

    assert sections[4].kind is SectionKind.CUTE_ANIMALS
    # Unknown labels still resolve
    assert sections[5].kind is SectionKind.UNKNOWN
    assert sections[5].name == "Bizarre"


def test_resolve_sections_without_featured_links():
    html = '<ul><li class="badge-section-menu-items"><a href="/wtf">WTF</a></li></ul>'
    sections = SectionResolver().resolve_sections(parse_html(html))
    assert len(sections) == 1
    assert sections[0].kind is SectionKind.WTF


def test_resolve_sections_missing_menu_is_drift():
    html = '<html><body><a class="hot" href="/hot">Hot</a></body></html>'
    with pytest.raises(StructureDriftError) as exc:
        SectionResolver().resolve_sections(parse_html(html))
    assert exc.value.selector == "li.badge-section-menu-items"


def test_resolve_config_sections():
    result = SectionResolver().resolve_config_sections(_embedded_config_html(EMBEDDED_CONFIG))

    assert [s.name for s in result.sections] == ["Funny", "NSFW"]
    funny, nsfw = result.sections
    assert funny.upload_allowed
    assert funny.description == ""
    assert funny.locale == ""
    assert funny.icon_url == "https://img.9gag.com/funny.png"
    assert nsfw.is_sensitive
    assert nsfw.kind is SectionKind.NSFW

    assert result.featured_sections[0].kind is SectionKind.HOT
    assert result.local_sections[0].locale == "de"
    # Trailing slash does not change identity
    assert result.current_local_section == result.local_sections[0]


def test_resolve_config_sections_drift():
    resolver = SectionResolver()
    with pytest.raises(StructureDriftError):
        resolver.resolve_config_sections("<html><body>no config here</body></html>")
    with pytest.raises(StructureDriftError):
        resolver.resolve_config_sections(_embedded_config_html({"page": {"featuredSections": []}}))


# --- Classification of listing items ---

def test_classify_animated_post():
    post = ItemClassifier().classify(_articles()[0])

    assert post.id == "aVid1"
    assert post.url == "https://9gag.com/gag/aVid1"
    assert post.title == "Funny cat"
    assert post.up_votes == 1234
    assert post.comments == 56
    assert not post.is_nsfw
    assert isinstance(post.content, AnimatedContent)
    assert [item.kind for item in post.content.items] == [ContentKind.MP4, ContentKind.WEBM]
    assert post.content.items[0].uri == "https://img.9gag.com/aVid1_460sv.mp4"
    assert post.content.thumbnail_uri == "https://img.9gag.com/aVid1_460s.jpg"
    assert post.details is None


def test_classify_long_post_photo_with_badge_counts():
    post = ItemClassifier().classify(_articles()[1])

    assert isinstance(post.content, PhotoContent)
    assert post.content.is_long_post
    assert post.up_votes == 789
    assert post.comments == 12


def test_classify_restricted_and_unknown():
    articles = _articles()
    classifier = ItemClassifier()

    restricted = classifier.classify(articles[2])
    assert isinstance(restricted.content, RestrictedContent)
    assert restricted.is_nsfw

    unknown = classifier.classify(articles[3])
    assert isinstance(unknown.content, UnknownContent)
    assert unknown.up_votes == 0
    assert unknown.comments == 0


def test_nsfw_flag_is_independent_of_variant():
    post = ItemClassifier().classify(_articles()[4])

    assert post.is_nsfw
    assert isinstance(post.content, PhotoContent)
    assert post.content.uri == "https://9gag.com/photo/aNsfw5_460s.jpg"
    assert post.url == "https://9gag.com/gag/aNsfw5"
    # Missing header is cosmetic
    assert post.title == ""


def test_classify_video_without_sources():
    post = ItemClassifier().classify(_articles()[5])

    assert isinstance(post.content, AnimatedContent)
    assert post.content.items[0].uri == "https://9gag.com/video/aVid6.webm"
    assert post.content.items[0].kind is ContentKind.WEBM


def test_classify_rejects_unqueryable_fragment():
    with pytest.raises(StructureDriftError):
        ItemClassifier().classify("<article></article>")


def test_count_and_mime_helpers():
    assert parse_count("1,024 points") == 1024
    assert parse_count(None) == 0
    assert parse_count("n/a") == 0
    assert video_kind("video/mp4") is ContentKind.MP4
    assert video_kind("VIDEO/MP4 ") is ContentKind.MP4
    assert video_kind("video/webm") is ContentKind.WEBM
    assert video_kind(None) is ContentKind.WEBM


# --- Classification of API items ---

API_ANIMATED = {
    "id": "aApi1",
    "url": "https://9gag.com/gag/aApi1",
    "title": " Dancing dog ",
    "description": "",
    "type": "Animated",
    "nsfw": 0,
    "upVoteCount": "100",
    "commentsCount": 5,
    "creationTs": 1500000000,
    "images": {
        "image700": {"url": "https://img.9gag.com/aApi1_700b.jpg", "width": 700, "height": 500},
        "image460sv": {
            "url": "https://img.9gag.com/aApi1_460sv.mp4",
            "vp9Url": "https://img.9gag.com/aApi1_460svvp9.webm",
            "width": 460,
            "height": 320
        }
    }
}


def test_classify_api_animated_item():
    post = ItemClassifier().classify_api_item(API_ANIMATED)

    assert post.id == "aApi1"
    assert post.title == "Dancing dog"
    assert post.description is None
    assert post.up_votes == 100
    assert post.comments == 5
    assert post.created_at == datetime.fromtimestamp(1500000000, tz=timezone.utc)
    assert isinstance(post.content, AnimatedContent)
    assert [item.kind for item in post.content.items] == [ContentKind.MP4, ContentKind.WEBM]
    assert post.content.thumbnail_uri == "https://img.9gag.com/aApi1_700b.jpg"


def test_classify_api_photo_and_restricted_items():
    classifier = ItemClassifier()

    photo = classifier.classify_api_item({
        "id": "aApi2",
        "type": "Photo",
        "images": {"image460": {"url": "https://img.9gag.com/aApi2_460s.jpg"}}
    })
    assert isinstance(photo.content, PhotoContent)
    assert photo.url == "https://9gag.com/gag/aApi2"
    assert photo.created_at is None

    restricted = classifier.classify_api_item({"id": "aApi3", "type": "Photo", "nsfw": 1, "images": {}})
    assert isinstance(restricted.content, RestrictedContent)
    assert restricted.is_nsfw


def test_classify_api_rejects_malformed_items():
    classifier = ItemClassifier()
    with pytest.raises(StructureDriftError):
        classifier.classify_api_item("not an object")
    with pytest.raises(StructureDriftError):
        classifier.classify_api_item({"id": "x", "images": "not a mapping"})


# --- Models and config ---

def test_section_identity_is_url():
    a = Section(url="https://9gag.com/funny", name="Funny")
    b = Section(url="https://9gag.com/funny", name="Funny (renamed)", kind=SectionKind.FUNNY)
    assert a == b
    assert len({a, b}) == 1


def test_post_content_is_frozen():
    post = ItemClassifier().classify(_articles()[1])
    with pytest.raises(ValidationError):
        post.content = UnknownContent()


def test_page_raise_for_failures():
    page = Page(feed_url="https://9gag.com/hot")
    page.raise_for_failures()
    assert page.partial_failure is None
    assert not page.has_next

    failed = Page(
        feed_url="https://9gag.com/hot",
        failures=[ItemFailure(post_id="x", stage="classify", message="broken")]
    )
    with pytest.raises(PartialFailure) as exc:
        failed.raise_for_failures()
    assert exc.value.failures[0].post_id == "x"
    assert str(exc.value) == "[page] 1 item(s) failed"


def test_config_absolute_urls():
    config = ClientConfig()
    assert config.absolute("/hot") == "https://9gag.com/hot"
    assert config.absolute("hot") == "https://9gag.com/hot"
    assert config.absolute("//img.9gag.com/a.jpg") == "https://img.9gag.com/a.jpg"
    assert config.absolute("http://other.example/x") == "http://other.example/x"
    assert config.post_url("aVid1") == "https://9gag.com/gag/aVid1"


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("NINEGAG_BASE_URL", "http://localhost:8000/")
    monkeypatch.setenv("NINEGAG_TIMEOUT", "2.5")
    monkeypatch.delenv("NINEGAG_USER_AGENT", raising=False)
    config = ClientConfig.from_env(default_page_size=20)

    assert config.base_url == "http://localhost:8000"
    assert config.timeout == 2.5
    assert config.user_agent == ClientConfig().user_agent
    assert config.default_page_size == 20
    assert config.absolute("/hot") == "http://localhost:8000/hot"
