"""Attestation lookup against the Wormholescan API."""

import asyncio
import logging
from typing import Any

import httpx

from .types import AttestationId, BridgeWalletError, Chain, ErrorCode, Network

logger = logging.getLogger(__name__)

DEFAULT_API_URLS = {
    Network.MAINNET: "https://api.wormholescan.io",
    Network.TESTNET: "https://api.testnet.wormholescan.io",
}


def parse_attestation(entry: dict[str, Any]) -> AttestationId:
    """Parse one VAA record from the API into an AttestationId."""
    try:
        chain = Chain.from_wormhole_id(int(entry["emitterChain"]))
        emitter = str(entry["emitterAddr"])
        sequence = int(entry["sequence"])
    except (KeyError, TypeError, ValueError) as e:
        raise BridgeWalletError(
            ErrorCode.NETWORK_ERROR, f"Malformed attestation record: {entry!r}", e
        ) from e

    if not emitter:
        raise BridgeWalletError(ErrorCode.NETWORK_ERROR, f"Attestation without emitter: {entry!r}")
    return AttestationId(chain=chain, emitter=emitter, sequence=sequence)


class WormholescanClient:
    """
    Polls the attestation network for messages emitted by source transactions.

    Example:
        >>> client = WormholescanClient(Network.TESTNET)
        >>> ids = await client.wait_for_attestations(["0xabc..."], timeout_ms=60_000)
        >>> str(ids[0])
        '10002/0000000000000000000000007b1bd7a6b4e61c2a123ac6bc2cbfc614437d0470/1234'
    """

    def __init__(
        self,
        network: Network,
        base_url: str | None = None,
        poll_interval: float = 2.0,
        http_timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        base_url = base_url or DEFAULT_API_URLS.get(network)
        if not base_url:
            raise BridgeWalletError(
                ErrorCode.INVALID_CONFIG, f"No attestation API configured for {network.value}"
            )
        self._network = network
        self._base_url = base_url.rstrip("/")
        self._poll_interval = poll_interval
        self._http_timeout = http_timeout
        self._transport = transport

    @property
    def network(self) -> Network:
        return self._network

    @property
    def base_url(self) -> str:
        return self._base_url

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url, timeout=self._http_timeout, transport=self._transport
        )

    async def get_attestations(
        self, tx_id: str, client: httpx.AsyncClient | None = None
    ) -> list[AttestationId]:
        """Get attestations already produced for a source transaction."""
        if client is None:
            async with self._client() as owned:
                return await self.get_attestations(tx_id, owned)

        response = await client.get("/api/v1/vaas/", params={"txHash": tx_id})
        if response.status_code == 404:
            return []
        response.raise_for_status()

        records = response.json().get("data") or []
        if isinstance(records, dict):
            records = [records]
        return [parse_attestation(record) for record in records]

    async def wait_for_attestations(
        self, tx_ids: list[str], timeout_ms: int, required: int = 1
    ) -> list[AttestationId]:
        """
        Poll until `required` distinct attestations exist for the transactions.

        Raises:
            BridgeWalletError: ATTESTATION_TIMEOUT if the deadline passes first
        """
        if not tx_ids:
            raise BridgeWalletError(
                ErrorCode.INVALID_STATE, "No source transactions to wait on"
            )

        loop = asyncio.get_running_loop()
        deadline = loop.time() + max(timeout_ms, 0) / 1000
        found: list[AttestationId] = []

        async with self._client() as client:
            while True:
                for tx_id in tx_ids:
                    try:
                        for attestation in await self.get_attestations(tx_id, client):
                            if attestation not in found:
                                found.append(attestation)
                    except (httpx.HTTPError, ValueError) as e:
                        logger.warning("Attestation lookup for %s failed: %s", tx_id, e)

                if len(found) >= required:
                    logger.info(
                        "Observed %d attestation(s): %s", len(found), ", ".join(map(str, found))
                    )
                    return found

                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                await asyncio.sleep(min(self._poll_interval, remaining))

        raise BridgeWalletError(
            ErrorCode.ATTESTATION_TIMEOUT,
            f"Saw {len(found)} of {required} attestation(s) within {timeout_ms}ms",
        )
