"""Blockchain client for block height and read-only contract calls."""

import logging
from abc import ABC, abstractmethod
from typing import Any

from web3 import AsyncHTTPProvider, AsyncWeb3, Web3

from chainsync.core.exceptions import TransportError

logger = logging.getLogger(__name__)


class ChainClient(ABC):
    """Abstract base class for blockchain clients."""

    @abstractmethod
    async def get_block_number(self) -> int:
        """Get current block number."""
        ...

    @abstractmethod
    async def read_contract(
        self,
        address: str,
        abi: list[dict[str, Any]],
        function_name: str,
        args: list[Any] | None = None,
    ) -> Any:
        """Call a view function and return its decoded result."""
        ...


class Web3ChainClient(ChainClient):
    """JSON-RPC client for one chain endpoint.

    Every call goes to a single endpoint and is attempted once. Any
    transport or RPC failure surfaces as ``TransportError``; retry and
    failover are left to the caller.
    """

    def __init__(
        self,
        rpc_url: str,
        chain: str = "mainnet",
    ):
        """Initialize chain client.

        Args:
            rpc_url: JSON-RPC endpoint
            chain: Chain name used in logs
        """
        self.rpc_url = rpc_url
        self.chain = chain
        self._web3: AsyncWeb3 | None = None

    @property
    def web3(self) -> AsyncWeb3:
        """Get or create Web3 instance."""
        if self._web3 is None:
            self._web3 = AsyncWeb3(AsyncHTTPProvider(self.rpc_url))
        return self._web3

    async def get_block_number(self) -> int:
        """Get current block number."""
        try:
            return int(await self.web3.eth.get_block_number())
        except Exception as e:
            raise TransportError(self.rpc_url, f"eth_blockNumber failed: {e}") from e

    async def read_contract(
        self,
        address: str,
        abi: list[dict[str, Any]],
        function_name: str,
        args: list[Any] | None = None,
    ) -> Any:
        """Call contract function (read-only).

        Args:
            address: Contract address
            abi: Contract ABI
            function_name: Function name
            args: Function arguments

        Returns:
            Decoded function result
        """
        try:
            contract = self.web3.eth.contract(
                address=Web3.to_checksum_address(address), abi=abi
            )
            function = getattr(contract.functions, function_name)
            return await function(*(args or [])).call()
        except Exception as e:
            raise TransportError(
                self.rpc_url, f"{function_name}() on {address} failed: {e}"
            ) from e
