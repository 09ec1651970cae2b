"""Recurring-transaction detection for scraped bank and credit-card data."""

__version__ = "0.3.0"
