"""Database repository for SaleWatch.

Every write is an insert-or-ignore and reports whether a row was actually
inserted; the pipeline uses that to drop listings it has already seen.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from salewatch.database.models import Base, ParsedTitleRecord, Post, RuleMatch, RuleRecord
from salewatch.logging import get_logger

if TYPE_CHECKING:
    from salewatch.listings.models import Listing, ParsedTitle
    from salewatch.matcher.rules import Rule

logger = get_logger(__name__)


class WatchRepository:
    """Repository for posts, parsed titles, rules and matches."""

    def __init__(self, session: Session):
        """Initialize with a database session."""
        self.session = session

    def _insert_or_ignore(self, model: type[Base], **values: Any) -> bool:
        """Insert a row unless its primary key already exists.

        Returns:
            True if a new row was written.
        """
        stmt = sqlite_insert(model.__table__).values(**values).on_conflict_do_nothing()
        result = self.session.execute(stmt)
        self.session.commit()
        return result.rowcount > 0

    def insert_listing(self, listing: Listing) -> bool:
        """Store a raw listing. Returns False if it was already stored."""
        return self._insert_or_ignore(
            Post,
            id=listing.id,
            created_utc=listing.created_utc,
            downs=int(listing.downs),
            link_flair_text=listing.link_flair_text,
            title=listing.title,
            ups=int(listing.ups),
            url=listing.url,
        )

    def insert_parsed_title(self, title: ParsedTitle) -> bool:
        """Store a parsed title. Returns False if the post already has one."""
        return self._insert_or_ignore(
            ParsedTitleRecord,
            post_id=title.post_id,
            product_type=title.product_type,
            description=title.description,
            price_dollars=title.price_dollars,
            price_cents=title.price_cents,
            extra_details=title.extra_details,
        )

    def insert_rule(self, rule: Rule) -> bool:
        """Store a rule under its fingerprint. Returns False if already known."""
        inserted = self._insert_or_ignore(
            RuleRecord,
            id=rule.fingerprint,
            name=rule.name,
            link_flair_pattern=rule.link_flair_pattern.source if rule.link_flair_pattern else None,
            product_type_pattern=rule.product_type_pattern.source if rule.product_type_pattern else None,
            description_pattern=rule.description_pattern.source if rule.description_pattern else None,
            price_min=rule.price_min,
            price_max=rule.price_max,
        )
        if inserted:
            logger.debug("Stored new rule", rule=rule.display_name, fingerprint=rule.fingerprint)
        return inserted

    def insert_rule_match(self, rule: Rule, post_id: str) -> bool:
        """Record that a rule accepted a post. Returns False if already recorded."""
        return self._insert_or_ignore(
            RuleMatch,
            rule_id=rule.fingerprint,
            post_id=post_id,
            created_utc=datetime.now(timezone.utc).replace(tzinfo=None),
        )

    def count_rows(self) -> dict[str, int]:
        """Get row counts of every table."""
        counts = {}
        for model in (Post, ParsedTitleRecord, RuleRecord, RuleMatch):
            stmt = select(func.count()).select_from(model)
            counts[model.__tablename__] = self.session.scalar(stmt) or 0
        return counts

    def recent_matches(self, limit: int = 10) -> list[tuple[RuleMatch, RuleRecord, Post]]:
        """Get the most recent matches together with their rule and post."""
        stmt = (
            select(RuleMatch, RuleRecord, Post)
            .join(RuleRecord, RuleRecord.id == RuleMatch.rule_id)
            .join(Post, Post.id == RuleMatch.post_id)
            .order_by(RuleMatch.created_utc.desc())
            .limit(limit)
        )
        return [tuple(row) for row in self.session.execute(stmt).all()]
