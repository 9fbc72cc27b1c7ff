from unittest.mock import AsyncMock, MagicMock

from network.rpc import AbciQueryResult, BroadcastResult, NodeStatus

MNEMONIC = (
    "tip purse since square taste soccer future hat orbit blame anchor oppose "
    "onion garlic taxi daring aisle slide buzz theory bronze explain refuse surface"
)
MNEMONIC_ADDRESS = "cosmos10uuc6zj564lwhuvlutwsmsa2ruc8qmj6x8kp6x"
CHAIN_ID = "cosmoshub-4"


def fake_client(endpoint, *, status=None, abci=None, broadcast=None):
    """An RpcClient stand-in whose methods are AsyncMocks."""
    client = MagicMock()
    client.endpoint = endpoint
    client.status = AsyncMock(return_value=status or NodeStatus(CHAIN_ID, 100))
    if callable(abci):
        client.abci_query = AsyncMock(side_effect=abci)
    else:
        client.abci_query = AsyncMock(return_value=abci or AbciQueryResult(0, b""))
    client.broadcast_tx_sync = AsyncMock(return_value=broadcast or BroadcastResult(0, "", "ABC"))
    return client
