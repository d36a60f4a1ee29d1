"""Core type definitions for the bridge wallet SDK."""

from enum import Enum, IntEnum
from typing import Any
from dataclasses import dataclass


class Network(str, Enum):
    """Deployment environment shared by wallets, registry and transfers."""

    MAINNET = "Mainnet"
    TESTNET = "Testnet"
    DEVNET = "Devnet"

    @classmethod
    def parse(cls, value: "str | Network") -> "Network":
        """Parse a network name, case-insensitively."""
        if isinstance(value, Network):
            return value
        for network in cls:
            if network.value.lower() == str(value).strip().lower():
                return network
        raise BridgeWalletError(ErrorCode.INVALID_CONFIG, f"Unknown network: {value}")


class Platform(IntEnum):
    """Chain families with a wallet adapter."""

    EVM = 0  # Ethereum and EVM-compatible chains
    SOLANA = 1  # Solana


class Chain(str, Enum):
    """Chains known to the bridge, named as the attestation network names them."""

    SOLANA = "Solana"
    ETHEREUM = "Ethereum"
    BSC = "Bsc"
    POLYGON = "Polygon"
    AVALANCHE = "Avalanche"
    FANTOM = "Fantom"
    CELO = "Celo"
    MOONBEAM = "Moonbeam"
    ARBITRUM = "Arbitrum"
    OPTIMISM = "Optimism"
    BASE = "Base"
    SEPOLIA = "Sepolia"
    ARBITRUM_SEPOLIA = "ArbitrumSepolia"
    BASE_SEPOLIA = "BaseSepolia"
    OPTIMISM_SEPOLIA = "OptimismSepolia"
    HOLESKY = "Holesky"
    POLYGON_SEPOLIA = "PolygonSepolia"

    @property
    def platform(self) -> Platform:
        """Get the chain family."""
        return Platform.SOLANA if self is Chain.SOLANA else Platform.EVM

    @property
    def wormhole_id(self) -> int:
        """Get the attestation-network chain id."""
        return _WORMHOLE_CHAIN_IDS[self]

    @classmethod
    def from_wormhole_id(cls, chain_id: int) -> "Chain":
        """Look up a chain by its attestation-network id."""
        for chain, wid in _WORMHOLE_CHAIN_IDS.items():
            if wid == chain_id:
                return chain
        raise BridgeWalletError(
            ErrorCode.UNKNOWN_CHAIN_ID, f"Unknown attestation chain id: {chain_id}"
        )

    @classmethod
    def parse(cls, value: "str | Chain") -> "Chain":
        """Parse a chain name."""
        if isinstance(value, Chain):
            return value
        try:
            return cls(value)
        except ValueError:
            raise BridgeWalletError(
                ErrorCode.INVALID_CONFIG, f"Unknown chain: {value}"
            ) from None


_WORMHOLE_CHAIN_IDS: dict[Chain, int] = {
    Chain.SOLANA: 1,
    Chain.ETHEREUM: 2,
    Chain.BSC: 4,
    Chain.POLYGON: 5,
    Chain.AVALANCHE: 6,
    Chain.FANTOM: 10,
    Chain.CELO: 14,
    Chain.MOONBEAM: 16,
    Chain.ARBITRUM: 23,
    Chain.OPTIMISM: 24,
    Chain.BASE: 30,
    Chain.SEPOLIA: 10002,
    Chain.ARBITRUM_SEPOLIA: 10003,
    Chain.BASE_SEPOLIA: 10004,
    Chain.OPTIMISM_SEPOLIA: 10005,
    Chain.HOLESKY: 10006,
    Chain.POLYGON_SEPOLIA: 10007,
}


class ErrorCode(IntEnum):
    """Error codes for SDK operations."""

    # Signer construction
    NO_ACCOUNT = 1
    NO_CHAIN = 2
    UNSUPPORTED_CHAIN = 3
    NETWORK_MISMATCH = 4
    # Build
    NO_SIGNER = 10
    NO_PLATFORM = 11
    # Submission
    INITIATION_FAILED = 20
    SIGN_REJECTED = 21
    # Waiting
    ATTESTATION_TIMEOUT = 30
    # Finalization
    COMPLETION_FAILED = 40
    # Registry lookups
    UNKNOWN_CHAIN_ID = 50
    UNMAPPED_CHAIN = 51
    # Orchestrator preconditions
    INVALID_STATE = 60
    PHASE_IN_PROGRESS = 61
    WRONG_CHAIN = 62
    STALE_SIGNER = 63
    # Configuration and transport
    INVALID_CONFIG = 70
    INVALID_AMOUNT = 71
    NETWORK_ERROR = 72
    WALLET_REQUEST_FAILED = 73
    UNKNOWN = 99

    @property
    def user_message(self) -> str:
        """Message the presentation layer shows for this failure."""
        return _USER_MESSAGES[self]


_NOT_CONNECTED = "wallet not connected"
_WRONG_NETWORK = "wrong network — please switch"
_REJECTED = "transaction rejected"
_TIMED_OUT = "waiting for confirmation — timed out, retry"

_USER_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.NO_ACCOUNT: _NOT_CONNECTED,
    ErrorCode.NO_CHAIN: _NOT_CONNECTED,
    ErrorCode.NO_SIGNER: _NOT_CONNECTED,
    ErrorCode.STALE_SIGNER: _NOT_CONNECTED,
    ErrorCode.UNSUPPORTED_CHAIN: _WRONG_NETWORK,
    ErrorCode.NETWORK_MISMATCH: _WRONG_NETWORK,
    ErrorCode.UNKNOWN_CHAIN_ID: _WRONG_NETWORK,
    ErrorCode.UNMAPPED_CHAIN: _WRONG_NETWORK,
    ErrorCode.WRONG_CHAIN: _WRONG_NETWORK,
    ErrorCode.NO_PLATFORM: _WRONG_NETWORK,
    ErrorCode.INITIATION_FAILED: _REJECTED,
    ErrorCode.SIGN_REJECTED: _REJECTED,
    ErrorCode.WALLET_REQUEST_FAILED: _REJECTED,
    # Requests the SDK refused before anything reached the chain
    ErrorCode.INVALID_STATE: _REJECTED,
    ErrorCode.PHASE_IN_PROGRESS: _REJECTED,
    ErrorCode.INVALID_CONFIG: _REJECTED,
    ErrorCode.INVALID_AMOUNT: _REJECTED,
    ErrorCode.UNKNOWN: _REJECTED,
    ErrorCode.ATTESTATION_TIMEOUT: _TIMED_OUT,
    ErrorCode.NETWORK_ERROR: _TIMED_OUT,
    ErrorCode.COMPLETION_FAILED: "completion failed — retry",
}


class BridgeWalletError(Exception):
    """Base exception for the bridge wallet SDK."""

    def __init__(self, code: ErrorCode, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.cause = cause

    @property
    def user_message(self) -> str:
        return self.code.user_message


class NetworkMismatchError(BridgeWalletError):
    """Wallet is connected to a chain on a different network."""

    def __init__(self, expected: Network, actual: Network, chain: "Chain | None" = None):
        where = f" ({chain.value})" if chain else ""
        super().__init__(
            ErrorCode.NETWORK_MISMATCH,
            f"Wallet is on {actual.value}{where}, expected {expected.value}",
        )
        self.expected = expected
        self.actual = actual


class SignRejectedError(BridgeWalletError):
    """Wallet returned no transaction id for a submission."""

    def __init__(self, message: str, tx_ids: list[str], cause: Exception | None = None):
        super().__init__(ErrorCode.SIGN_REJECTED, message, cause)
        # Transactions already broadcast in this batch
        self.tx_ids = list(tx_ids)


NATIVE = "native"


@dataclass(frozen=True)
class ChainAddress:
    """An account on a specific chain."""

    chain: Chain
    address: str

    def __str__(self) -> str:
        return f"{self.chain.value}:{self.address}"


@dataclass(frozen=True)
class TokenId:
    """A token on a specific chain; address is "native" for the gas token."""

    chain: Chain
    address: str = NATIVE

    @classmethod
    def native(cls, chain: Chain) -> "TokenId":
        return cls(chain, NATIVE)

    @property
    def is_native(self) -> bool:
        return self.address == NATIVE

    def __str__(self) -> str:
        return "Native" if self.is_native else self.address


@dataclass(frozen=True)
class TransferDetails:
    """What is being moved, from where, to where."""

    from_address: ChainAddress
    to_address: ChainAddress
    token: TokenId
    amount: int  # Base units
    decimals: int
    automatic: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "from": {"chain": self.from_address.chain.value, "address": self.from_address.address},
            "to": {"chain": self.to_address.chain.value, "address": self.to_address.address},
            "token": {"chain": self.token.chain.value, "address": self.token.address},
            "amount": str(self.amount),
            "decimals": self.decimals,
            "automatic": self.automatic,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TransferDetails":
        return cls(
            from_address=ChainAddress(Chain(data["from"]["chain"]), data["from"]["address"]),
            to_address=ChainAddress(Chain(data["to"]["chain"]), data["to"]["address"]),
            token=TokenId(Chain(data["token"]["chain"]), data["token"]["address"]),
            amount=int(data["amount"]),
            decimals=int(data["decimals"]),
            automatic=bool(data.get("automatic", False)),
        )


@dataclass
class UnsignedTransaction:
    """Platform-specific transaction payload awaiting a wallet signature."""

    transaction: Any
    description: str
    network: Network
    chain: Chain
    parallelizable: bool = False


@dataclass(frozen=True)
class AttestationId:
    """Identifies one attested message: (chain, emitter, sequence)."""

    chain: Chain
    emitter: str
    sequence: int

    def __str__(self) -> str:
        emitter = self.emitter.removeprefix("0x")
        return f"{self.chain.wormhole_id}/{emitter}/{self.sequence}"

    def to_dict(self) -> dict[str, Any]:
        return {"chain": self.chain.value, "emitter": self.emitter, "sequence": str(self.sequence)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AttestationId":
        return cls(Chain(data["chain"]), data["emitter"], int(data["sequence"]))


TxId = str
