"""Matcher module for SaleWatch.

Provides pattern parsing, evaluation and rule matching.
"""

from salewatch.matcher.evaluator import listing_matches, match, match_optional, title_matches
from salewatch.matcher.parser import (
    And,
    Exact,
    Not,
    Or,
    Pattern,
    PatternParser,
    PatternSyntaxError,
    parse_pattern,
)
from salewatch.matcher.rules import (
    Rule,
    RuleError,
    RuleSet,
    compile_rule,
    fingerprint,
    load_rules,
    pattern_digest,
)

__all__ = [
    "And",
    "Exact",
    "Not",
    "Or",
    "Pattern",
    "PatternParser",
    "PatternSyntaxError",
    "parse_pattern",
    "match",
    "match_optional",
    "listing_matches",
    "title_matches",
    "Rule",
    "RuleError",
    "RuleSet",
    "compile_rule",
    "fingerprint",
    "load_rules",
    "pattern_digest",
]
