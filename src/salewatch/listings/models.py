"""Pydantic models for listings and their parsed titles.

These models represent posts as received from the listing source and the
structured data extracted from their titles before being persisted.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

REDDIT_BASE_URL = "https://www.reddit.com"


class Listing(BaseModel):
    """A post received from the listing source.

    Mirrors the ``data`` object of a Reddit ``t3`` listing child; unknown
    keys are ignored.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = Field(..., description="Post ID")
    created_utc: float = Field(..., description="Creation time as a unix timestamp")
    ups: float = Field(default=0, description="Upvote count")
    downs: float = Field(default=0, description="Downvote count")
    link_flair_text: str | None = Field(default=None, description="Post flair")
    title: str = Field(..., description="Raw post title")
    url: str = Field(..., description="Link the post points to")
    subreddit: str = Field(default="buildapcsales", description="Subreddit name")

    @property
    def comments_url(self) -> str:
        """URL of the post's comment page."""
        return f"{REDDIT_BASE_URL}/r/{self.subreddit}/comments/{self.id}"


class ParsedTitle(BaseModel):
    """Structured decomposition of a listing title."""

    model_config = ConfigDict(frozen=True)

    post_id: str = Field(..., description="ID of the listing the title belongs to")
    product_type: str = Field(..., description="Bracketed category, e.g. GPU")
    description: str = Field(..., description="Free text before the price")
    price_dollars: int = Field(..., description="Whole dollars")
    price_cents: int = Field(default=0, description="Cents group as written")
    extra_details: str | None = Field(default=None, description="Text after the price")

    @property
    def price(self) -> float:
        """Price used for rule bounds: dollars plus a tenth of the cents group."""
        return self.price_dollars + 0.1 * self.price_cents
