"""Indexer and chain state synchronization service."""

__version__ = "0.4.0"
