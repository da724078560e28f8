"""SQLAlchemy models for the SaleWatch database.

Every table is written with insert-or-ignore semantics, so primary keys
double as the deduplication keys of the pipeline.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Post(Base):
    """A raw listing as received from the listing source."""

    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(String(20), primary_key=True)
    created_utc: Mapped[float] = mapped_column(Float, nullable=False)
    downs: Mapped[int | None] = mapped_column(Integer, nullable=True)
    link_flair_text: Mapped[str | None] = mapped_column(String(200), nullable=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    ups: Mapped[int | None] = mapped_column(Integer, nullable=True)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Post(id={self.id!r}, title={self.title!r})>"


class ParsedTitleRecord(Base):
    """Structured title of a post. At most one per post."""

    __tablename__ = "parsed_titles"

    post_id: Mapped[str] = mapped_column(
        String(20), ForeignKey("posts.id"), primary_key=True
    )
    product_type: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    price_dollars: Mapped[int] = mapped_column(Integer, nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    extra_details: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<ParsedTitle(post_id={self.post_id!r}, type={self.product_type!r}, "
            f"price={self.price_dollars}.{self.price_cents})>"
        )


class RuleRecord(Base):
    """A match rule keyed by its fingerprint.

    Pattern sources are stored as written, for auditing.
    """

    __tablename__ = "rules"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    link_flair_pattern: Mapped[str | None] = mapped_column(Text, nullable=True)
    product_type_pattern: Mapped[str | None] = mapped_column(Text, nullable=True)
    description_pattern: Mapped[str | None] = mapped_column(Text, nullable=True)
    price_min: Mapped[int | None] = mapped_column(Integer, nullable=True)
    price_max: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def __repr__(self) -> str:
        return f"<RuleRecord(id={self.id!r}, name={self.name!r})>"


class RuleMatch(Base):
    """An accepted match of a post by a rule. Written at most once per pair."""

    __tablename__ = "rule_matches"

    rule_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("rules.id"), primary_key=True
    )
    post_id: Mapped[str] = mapped_column(
        String(20), ForeignKey("posts.id"), primary_key=True
    )
    created_utc: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (Index("ix_rule_matches_created", "created_utc"),)

    def __repr__(self) -> str:
        return f"<RuleMatch(rule_id={self.rule_id!r}, post_id={self.post_id!r})>"
