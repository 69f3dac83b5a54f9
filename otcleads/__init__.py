"""Scrape OTC market company pages, score companies against ICP models and store them."""

__version__ = "0.1.0"