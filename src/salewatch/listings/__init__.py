"""Listings module for SaleWatch.

Provides the listing models, title extraction and the Reddit client.
"""

from salewatch.listings.models import Listing, ParsedTitle
from salewatch.listings.reddit import (
    AuthState,
    MissingHeaderError,
    ReauthenticateError,
    RedditClient,
    RedditError,
)
from salewatch.listings.title import extract_title

__all__ = [
    "Listing",
    "ParsedTitle",
    "extract_title",
    "AuthState",
    "RedditClient",
    "RedditError",
    "ReauthenticateError",
    "MissingHeaderError",
]
