"""
Bonding curve pricing and trade quoting for creator coins

Reads per-token curve reserves from the chain, quotes buys and sells with
exact integer math, and builds unsigned transaction requests.
"""

__version__ = "0.1.0"
