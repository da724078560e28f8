"""SaleWatch - Watch r/buildapcsales for deals matching your rules.

Polls new posts, parses their titles, matches them against pattern rules
and sends batched notifications for every match.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
