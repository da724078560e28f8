"""Pattern evaluation for matching listings and parsed titles against rules."""

from __future__ import annotations

from typing import TYPE_CHECKING

from salewatch.matcher.parser import And, Exact, Not, Or, Pattern, postorder

if TYPE_CHECKING:
    from salewatch.listings.models import Listing, ParsedTitle
    from salewatch.matcher.rules import Rule


def match(pattern: Pattern, text: str) -> bool:
    """Check whether a pattern matches a piece of text.

    Keywords are matched as case-insensitive substrings. The tree is
    evaluated bottom-up with a value stack, so depth is not limited.

    Args:
        pattern: The parsed pattern.
        text: The text to check.

    Returns:
        True if the text satisfies the pattern.
    """
    text = text.lower()
    values: list[bool] = []
    for node in postorder(pattern):
        match node:
            case Exact(keyword=keyword):
                values.append(keyword.lower() in text)
            case Not():
                values.append(not values.pop())
            case And():
                right = values.pop()
                values[-1] = values[-1] and right
            case Or():
                right = values.pop()
                values[-1] = values[-1] or right
    return values.pop()


def match_optional(pattern: Pattern, text: str | None) -> bool:
    """Check a pattern against a field that may be missing.

    A missing field only satisfies a pattern whose outermost node is a
    negation: "must not have flair X" passes when there is no flair at all,
    while "must have flair X" does not.

    Args:
        pattern: The parsed pattern.
        text: The field value, or None when the listing has no such field.

    Returns:
        True if the field satisfies the pattern.
    """
    if text is None:
        return isinstance(pattern, Not)
    return match(pattern, text)


def listing_matches(rule: Rule, listing: Listing) -> bool:
    """Evaluate the listing-level part of a rule (link flair)."""
    if rule.link_flair_pattern is None:
        return True
    return match_optional(rule.link_flair_pattern.pattern, listing.link_flair_text)


def title_matches(rule: Rule, title: ParsedTitle) -> bool:
    """Evaluate the title-level part of a rule.

    Checks the product type and description patterns, then the inclusive
    price bounds. Every constraint is optional.
    """
    if rule.product_type_pattern is not None:
        if not match(rule.product_type_pattern.pattern, title.product_type):
            return False

    if rule.description_pattern is not None:
        if not match(rule.description_pattern.pattern, title.description):
            return False

    price = title.price
    if rule.price_min is not None and rule.price_min > price:
        return False
    if rule.price_max is not None and price > rule.price_max:
        return False

    return True
