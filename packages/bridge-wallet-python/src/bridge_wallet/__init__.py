"""
Bridge Wallet SDK

A Python SDK for moving tokens between chains through a bridge, signed by
the user's own browser-style wallets (EVM and Solana).

Example:
    >>> from bridge_wallet import (
    ...     Chain, ChainAddress, Platform, TransferOrchestrator, WalletSession,
    ... )
    >>>
    >>> wallet = WalletSession(connector, Platform.EVM)
    >>> signer = await wallet.connect()
    >>>
    >>> orchestrator = TransferOrchestrator(platform)
    >>> await orchestrator.build_transfer(signer, ChainAddress(Chain.SOLANA, receiver))
    >>> await orchestrator.initiate_transfer(signer, wallet)
    >>> await orchestrator.fetch_attestation()
    >>> outcome = await orchestrator.complete_transfer(wallet.signer, wallet)
    >>> outcome.ok
    True
"""

from .amount import format_amount, parse_amount
from .attestation import WormholescanClient
from .chains import (
    ChainConfig,
    ChainRegistry,
    EvmSigner,
    JsonRpcWalletProvider,
    ProviderRpcError,
    SolanaSigner,
    default_registry,
    set_default_registry,
)
from .config import BridgeWalletConfig, configure_logging, get_config, load_config, set_config
from .platform import (
    BridgePlatform,
    BridgePlatformProtocol,
    BridgeTransfer,
    ChainContext,
    TokenTransferHandle,
    TransferBuilder,
)
from .signer import EventEmitter, Signer, WalletConnector, WalletProvider
from .storage import FileSystemStore, MemoryStore, TransferStore
from .transfer import (
    DEFAULT_AMOUNT,
    Outcome,
    TransferOrchestrator,
    TransferSession,
    TransferSnapshot,
    TransferState,
)
from .types import (
    NATIVE,
    AttestationId,
    BridgeWalletError,
    Chain,
    ChainAddress,
    ErrorCode,
    Network,
    NetworkMismatchError,
    Platform,
    SignRejectedError,
    TokenId,
    TransferDetails,
    TxId,
    UnsignedTransaction,
)
from .wallet import WalletSession, get_wallet_session, init_wallet_session, reset_wallet_sessions

__version__ = "0.1.0"
__all__ = [
    # Transfers
    "TransferOrchestrator",
    "TransferSession",
    "TransferSnapshot",
    "TransferState",
    "Outcome",
    "DEFAULT_AMOUNT",
    # Wallets
    "WalletSession",
    "init_wallet_session",
    "get_wallet_session",
    "reset_wallet_sessions",
    "Signer",
    "WalletProvider",
    "WalletConnector",
    "EventEmitter",
    "EvmSigner",
    "SolanaSigner",
    "JsonRpcWalletProvider",
    "ProviderRpcError",
    # Platform
    "BridgePlatform",
    "BridgePlatformProtocol",
    "BridgeTransfer",
    "ChainContext",
    "TokenTransferHandle",
    "TransferBuilder",
    "WormholescanClient",
    # Registry & config
    "ChainConfig",
    "ChainRegistry",
    "default_registry",
    "set_default_registry",
    "BridgeWalletConfig",
    "load_config",
    "get_config",
    "set_config",
    "configure_logging",
    # Storage
    "TransferStore",
    "MemoryStore",
    "FileSystemStore",
    # Types
    "Network",
    "Platform",
    "Chain",
    "ChainAddress",
    "TokenId",
    "NATIVE",
    "TransferDetails",
    "UnsignedTransaction",
    "AttestationId",
    "TxId",
    "ErrorCode",
    "BridgeWalletError",
    "NetworkMismatchError",
    "SignRejectedError",
    "parse_amount",
    "format_amount",
]
