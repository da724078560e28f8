"""Entry point for running SaleWatch as a module.

Allows running with: python -m salewatch
"""

from salewatch.cli import app

if __name__ == "__main__":
    app()
