"""Blockchain infrastructure module."""

from chainsync.infrastructure.blockchain.client import ChainClient, Web3ChainClient
from chainsync.infrastructure.blockchain.contracts import ContractReader
from chainsync.infrastructure.blockchain.probe import ChainProbe

__all__ = [
    "ChainClient",
    "Web3ChainClient",
    "ContractReader",
    "ChainProbe",
]
