"""Match rules: compilation, fingerprinting and first-match selection.

A rule file is a JSON array of objects, each with optional keys::

    [
        {
            "name": "Cheap 4070",
            "product_type_pattern": "GPU",
            "description_pattern": "4070 && !\\"open box\\"",
            "price_max": 600
        }
    ]

Rules are checked in file order and the first match wins.
"""

from __future__ import annotations

import base64
import hashlib
import json
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Iterator

from pydantic import BaseModel, ConfigDict, StrictInt, StrictStr, ValidationError

from salewatch.logging import get_logger
from salewatch.matcher.evaluator import listing_matches, title_matches
from salewatch.matcher.parser import (
    And,
    Exact,
    Not,
    Or,
    Pattern,
    PatternSyntaxError,
    parse_pattern,
    postorder,
)

if TYPE_CHECKING:
    from salewatch.listings.models import Listing, ParsedTitle

logger = get_logger(__name__)

UNNAMED_RULE = "(unnamed rule)"


class RuleError(ValueError):
    """Raised when a rule definition is invalid."""


class RuleDefinition(BaseModel):
    """Raw rule definition as written in the rule file."""

    model_config = ConfigDict(extra="ignore")

    name: StrictStr | None = None
    link_flair_pattern: StrictStr | None = None
    product_type_pattern: StrictStr | None = None
    description_pattern: StrictStr | None = None
    price_min: StrictInt | None = None
    price_max: StrictInt | None = None


@dataclass(frozen=True)
class CompiledPattern:
    """A parsed pattern together with the text it was parsed from."""

    source: str
    pattern: Pattern

    @classmethod
    def compile(cls, source: str) -> "CompiledPattern":
        return cls(source=source, pattern=parse_pattern(source))


@dataclass(frozen=True)
class Rule:
    """A compiled match rule.

    Its durable identity is :attr:`fingerprint`, derived from the rule's
    parsed structure rather than from its source text.
    """

    name: str | None = None
    link_flair_pattern: CompiledPattern | None = None
    product_type_pattern: CompiledPattern | None = None
    description_pattern: CompiledPattern | None = None
    price_min: int | None = None
    price_max: int | None = None

    @property
    def display_name(self) -> str:
        """Name used in notifications and tables."""
        return self.name if self.name is not None else UNNAMED_RULE

    @cached_property
    def fingerprint(self) -> str:
        """Stable content-derived identity of this rule."""
        return fingerprint(self)

    def __repr__(self) -> str:
        return f"<Rule(name={self.display_name!r}, fingerprint={self.fingerprint!r})>"


def pattern_digest(pattern: Pattern) -> bytes:
    """Compute the structural digest of a pattern.

    Operators feed a tag token followed by the digests of their operands;
    keywords feed their raw bytes. Formatting of the source text plays no
    part, so ``a&&b`` and ``"a" && "b"`` share a digest. Children are
    hashed before their parents, off an explicit stack.
    """
    digests: list[bytes] = []
    for node in postorder(pattern):
        match node:
            case Exact(keyword=keyword):
                digests.append(hashlib.sha256(keyword.encode("utf-8")).digest())
            case Not():
                digests.append(hashlib.sha256(b"!" + digests.pop()).digest())
            case And() | Or():
                right = digests.pop()
                left = digests.pop()
                tag = b"&&" if isinstance(node, And) else b"||"
                digests.append(hashlib.sha256(tag + left + right).digest())
    return digests.pop()


def fingerprint(rule: Rule) -> str:
    """Compute the fingerprint of a rule.

    Feeds, in order: the name, the digest of each present pattern (link
    flair, product type, description) and the price bounds as 8-byte
    little-endian signed integers. The digest is rendered as base64.
    """
    hasher = hashlib.sha256()
    if rule.name is not None:
        hasher.update(rule.name.encode("utf-8"))
    for compiled in (
        rule.link_flair_pattern,
        rule.product_type_pattern,
        rule.description_pattern,
    ):
        if compiled is not None:
            hasher.update(pattern_digest(compiled.pattern))
    for bound in (rule.price_min, rule.price_max):
        if bound is not None:
            hasher.update(bound.to_bytes(8, "little", signed=True))
    return base64.b64encode(hasher.digest()).decode("ascii")


def _compile_field(source: str | None, key: str) -> CompiledPattern | None:
    if source is None:
        return None
    try:
        return CompiledPattern.compile(source)
    except PatternSyntaxError as e:
        raise RuleError(f"failed to parse {key}: {e}") from e


def compile_rule(definition: Any) -> Rule:
    """Compile one rule definition.

    Args:
        definition: A mapping as loaded from the rule file.

    Returns:
        The compiled Rule.

    Raises:
        RuleError: If the definition is not an object, has a value of the
            wrong type, or contains a malformed pattern.
    """
    if not isinstance(definition, dict):
        raise RuleError("not a json object")

    try:
        fields = RuleDefinition.model_validate(definition)
    except ValidationError as e:
        keys = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
        raise RuleError(f"wrong type at key {keys}") from e

    for bound in ("price_min", "price_max"):
        value = getattr(fields, bound)
        if value is not None and not -(2**63) <= value < 2**63:
            raise RuleError(f"wrong type at key {bound}")

    return Rule(
        name=fields.name,
        link_flair_pattern=_compile_field(fields.link_flair_pattern, "link_flair_pattern"),
        product_type_pattern=_compile_field(fields.product_type_pattern, "product_type_pattern"),
        description_pattern=_compile_field(fields.description_pattern, "description_pattern"),
        price_min=fields.price_min,
        price_max=fields.price_max,
    )


class RuleSet:
    """Ordered, immutable collection of rules. The first match wins."""

    def __init__(self, rules: Iterable[Rule] = ()):
        self._rules = tuple(rules)

    @classmethod
    def from_definitions(cls, definitions: Iterable[Any]) -> "RuleSet":
        """Compile a sequence of rule definitions.

        Raises:
            RuleError: If any definition is invalid. The message names the
                position of the offending rule.
        """
        rules = []
        for index, definition in enumerate(definitions):
            try:
                rules.append(compile_rule(definition))
            except RuleError as e:
                raise RuleError(f"rule #{index + 1}: {e}") from e
        return cls(rules)

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __add__(self, other: "RuleSet") -> "RuleSet":
        return RuleSet(self._rules + other._rules)

    def get_matching_rule(self, listing: Listing, title: ParsedTitle) -> Rule | None:
        """Return the first rule matching both the listing and its title.

        Args:
            listing: The raw listing (link flair is checked here).
            title: The parsed title (product type, description, price).

        Returns:
            The first matching Rule in declaration order, or None.
        """
        for rule in self._rules:
            if listing_matches(rule, listing) and title_matches(rule, title):
                return rule
        return None


def load_rules(path: Path) -> RuleSet:
    """Load and compile a JSON rule file.

    Args:
        path: Path to the rule file.

    Returns:
        The compiled RuleSet.

    Raises:
        RuleError: If the file is missing, is not a JSON array, or any rule
            in it is invalid.
    """
    try:
        contents = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise RuleError(f"rule file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise RuleError(f"rule file {path} is not valid JSON: {e}") from e

    if not isinstance(contents, list):
        raise RuleError("JSON should be an array")

    rule_set = RuleSet.from_definitions(contents)
    logger.info("Loaded rules", path=str(path), count=len(rule_set))
    return rule_set
