"""Block height probe."""

import logging

from chainsync.infrastructure.blockchain.client import ChainClient

logger = logging.getLogger(__name__)


class ChainProbe:
    """Reads the current block height of one chain.

    No retry is attempted here; the scheduler simply probes again on its
    next tick.
    """

    def __init__(self, client: ChainClient, chain: str = "mainnet"):
        self.client = client
        self.chain = chain

    async def current_block_height(self) -> int:
        """Get current block height.

        Raises:
            TransportError: Endpoint unreachable or timed out
        """
        height = await self.client.get_block_number()
        logger.debug(f"{self.chain} block height: {height}")
        return height
