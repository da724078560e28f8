"""Messages passed between pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass

from salewatch.listings.models import Listing, ParsedTitle
from salewatch.matcher.rules import Rule


@dataclass(frozen=True)
class MatchingPost:
    """A listing together with its parsed title and the rule that accepted it."""

    rule: Rule
    listing: Listing
    title: ParsedTitle


@dataclass(frozen=True)
class NewMatch:
    post: MatchingPost


@dataclass(frozen=True)
class TimerFired:
    pass


NotifyMessage = NewMatch | TimerFired
