"""Contract ABIs and typed read helpers.

Only the view functions the reconcilers need are declared.
"""

from typing import Any

from chainsync.infrastructure.blockchain.client import ChainClient


def _view(name: str, outputs: str, inputs: list[str] | None = None) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "view",
        "inputs": [{"name": f"arg{i}", "type": t} for i, t in enumerate(inputs or [])],
        "outputs": [{"name": "", "type": outputs}],
    }


ERC20_ABI: list[dict[str, Any]] = [
    _view("balanceOf", "uint256", ["address"]),
]

POSITION_V1_ABI: list[dict[str, Any]] = [
    _view("minted", "uint256"),
    _view("limitForClones", "uint256"),
]

POSITION_V2_ABI: list[dict[str, Any]] = [
    _view("minted", "uint256"),
    _view("availableForClones", "uint256"),
    _view("availableForMinting", "uint256"),
]

SAVINGS_ABI: list[dict[str, Any]] = [
    _view("currentRatePPM", "uint24"),
]

MINTING_HUB_ABI: list[dict[str, Any]] = [
    _view("price", "uint256", ["uint32"]),
]


class ContractReader:
    """Typed wrappers over ``ChainClient.read_contract``."""

    def __init__(self, client: ChainClient):
        self.client = client

    async def balance_of(self, token: str, owner: str) -> int:
        return await self.client.read_contract(token, ERC20_ABI, "balanceOf", [owner])

    async def position_v1_call(self, position: str, function_name: str) -> int:
        return await self.client.read_contract(position, POSITION_V1_ABI, function_name)

    async def position_v2_call(self, position: str, function_name: str) -> int:
        return await self.client.read_contract(position, POSITION_V2_ABI, function_name)

    async def lead_rate_ppm(self, savings: str) -> int:
        return await self.client.read_contract(savings, SAVINGS_ABI, "currentRatePPM")

    async def challenge_price(self, minting_hub: str, number: int) -> int:
        """Current auction price of a challenge on the given minting hub."""
        return await self.client.read_contract(
            minting_hub, MINTING_HUB_ABI, "price", [number]
        )
