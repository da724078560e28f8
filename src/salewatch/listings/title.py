"""Title extraction for r/buildapcsales style post titles.

Titles follow the convention ``[TYPE] description $price extra``, e.g.::

    [GPU] ASUS TUF RTX 4070 Ti 12GB - Black $799.99
    [PSU] Corsair HX1000 - $163.19 ($254.99-$91.80) MICROCENTER IN STORE ONLY
"""

from __future__ import annotations

import re

from salewatch.listings.models import ParsedTitle

_TITLE_RE = re.compile(
    r"\[(?P<type>[ \w]+)\]"
    r"(?P<desc>[^$]*)"
    r"\$(?P<dollars>\d+)(\.(?P<cents>\d+))?"
    r"(?P<extra>[^\d].*)?"
)


def extract_title(title: str, post_id: str) -> ParsedTitle | None:
    """Split a raw title into category, description, price and notes.

    Args:
        title: The raw listing title.
        post_id: ID of the listing the title belongs to.

    Returns:
        ParsedTitle, or None when the bracketed category or the dollar
        amount cannot be found.
    """
    m = _TITLE_RE.search(title)
    if m is None:
        return None

    extra = m.group("extra")
    cents = m.group("cents")

    return ParsedTitle(
        post_id=post_id,
        product_type=m.group("type").strip(),
        description=m.group("desc").strip(),
        price_dollars=int(m.group("dollars")),
        price_cents=int(cents) if cents is not None else 0,
        extra_details=extra.strip() if extra is not None else None,
    )
