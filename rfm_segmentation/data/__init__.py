"""
Synthetic transaction data for demos and tests.
"""

from .generate_sample_data import generate_retail_transactions

__all__ = ["generate_retail_transactions"]
