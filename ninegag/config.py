"""
Client configuration.

Every URL, path, selector and marker the pipeline depends on lives here, so a
layout change upstream is a config change, and tests can point the whole
pipeline at a mock endpoint.
"""

import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SelectorConfig(BaseModel):
    """CSS selectors for the scraped HTML pages."""
    model_config = ConfigDict(frozen=True)

    # Index page
    featured_links: tuple[str, ...] = ("a.hot", "a.trending", "a.fresh")
    section_container: str = "li.badge-section-menu-items"
    section_link: str = "a"
    section_icon: str = "img"

    # Listing page
    item: str = "article"
    item_title: str = "header"
    video: str = "video"
    video_source: str = "source"
    image: str = "img"
    nsfw_marker: str = ".nsfw-post"
    vote_count: str = ".badge-item-love-count"
    comment_count: str = ".comment"
    load_more: str = "a.badge-load-more-post"

    # Detail page
    detail_image: str = "article img"
    detail_description: str = 'meta[property="og:description"]'


class ClientConfig(BaseModel):
    """Immutable settings shared by every pipeline component."""
    model_config = ConfigDict(frozen=True)

    base_url: str = "https://9gag.com"
    post_path: str = "/gag/"
    api_posts_path: str = "/v1/group-posts/group/{group}/type/{kind}"
    vote_up_path: str = "/vote/like"
    vote_down_path: str = "/vote/dislike"

    selectors: SelectorConfig = Field(default_factory=SelectorConfig)

    # Case-insensitive substring marking a long-post cover image
    long_post_marker: str = "long-post"
    # Embedded JSON configuration on the index page
    config_pattern: str = r'window\._config = JSON\.parse\("(?P<config>.*?)"\);?'
    default_page_size: int = 10

    session_cookie_name: str = "____ri"
    timeout: float = 15.0
    user_agent: str = "ninegag-feed/0.1"
    # BeautifulSoup tree builders, tried in order
    html_backends: tuple[str, ...] = ("html5lib", "lxml", "html.parser")

    @classmethod
    def from_env(cls, **overrides) -> "ClientConfig":
        """
        Build a config from NINEGAG_* environment variables.

        Unset variables keep their defaults; keyword overrides win over both.
        """
        values: dict = {}
        base_url: Optional[str] = os.getenv("NINEGAG_BASE_URL")
        if base_url:
            values["base_url"] = base_url.rstrip("/")
        timeout = os.getenv("NINEGAG_TIMEOUT")
        if timeout:
            values["timeout"] = float(timeout)
        user_agent = os.getenv("NINEGAG_USER_AGENT")
        if user_agent:
            values["user_agent"] = user_agent
        cookie = os.getenv("NINEGAG_SESSION_COOKIE")
        if cookie:
            values["session_cookie_name"] = cookie
        values.update(overrides)
        return cls(**values)

    def absolute(self, target: str) -> str:
        """Resolve a path or URL against base_url."""
        if target.startswith(("http://", "https://")):
            return target
        if target.startswith("//"):
            scheme = self.base_url.split(":", 1)[0]
            return f"{scheme}:{target}"
        return f"{self.base_url.rstrip('/')}/{target.lstrip('/')}"

    def post_url(self, post_id: str) -> str:
        return self.absolute(f"{self.post_path.rstrip('/')}/{post_id}")
