"""
Utility functions for the basket rebalancing agent.
"""

import logging
import os
from decimal import Decimal

from rich.console import Console
from rich.logging import RichHandler

# Set up rich console
console = Console()


def setup_logging(level: str = "INFO", log_file: str = "logs/rebalance.log") -> logging.Logger:
    """Set up logging configuration."""
    # Create log directory if it doesn't exist
    log_dir = os.path.dirname(log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            RichHandler(console=console, rich_tracebacks=True),
            logging.FileHandler(log_file, mode='a', encoding='utf-8')
        ],
        force=True,
    )

    return logging.getLogger("rebalancer")


def format_currency(amount: Decimal, currency: str = "USD") -> str:
    """Format a decimal amount as currency."""
    if currency == "USD":
        if amount < 0:
            return f"-${-amount:,.2f}"
        return f"${amount:,.2f}"
    else:
        return f"{amount} {currency}"


def format_signed_currency(amount: Decimal) -> str:
    """Format a USD delta with an explicit sign."""
    sign = "+" if amount > 0 else ""
    return f"{sign}{format_currency(amount)}"


def format_signed_percent(value: Decimal, places: int = 2) -> str:
    """Format a percentage with an explicit sign, e.g. ``+1.25%``."""
    return f"{value:+.{places}f}%"
