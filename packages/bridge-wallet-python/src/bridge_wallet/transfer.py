"""Cross-chain transfer state machine."""

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Protocol

from .amount import parse_amount
from .config import DEFAULT_ATTESTATION_TIMEOUT_MS
from .platform import BridgePlatformProtocol, TokenTransferHandle
from .signer import Signer, describe
from .storage import TransferStore
from .types import (
    AttestationId,
    BridgeWalletError,
    Chain,
    ChainAddress,
    ErrorCode,
    TokenId,
    TransferDetails,
)

logger = logging.getLogger(__name__)

# Amount sent when the caller does not choose one
DEFAULT_AMOUNT = "0.01"


class TransferState(Enum):
    """Transfer state."""

    IDLE = "idle"
    BUILT = "built"
    INITIATED = "initiated"
    ATTESTATION_PENDING = "attestation_pending"
    ATTESTED = "attested"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TransferState.COMPLETED, TransferState.FAILED)


class ChainSwitcher(Protocol):
    """Wallet connection able to change chains and detect stale signers."""

    def is_current(self, signer: Signer) -> bool:
        ...

    async def switch_chain(self, chain: Chain) -> Signer:
        ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TransferSnapshot:
    """Read-only view of a transfer for the presentation layer."""

    transfer_id: str
    state: TransferState
    details: TransferDetails | None = None
    src_tx_ids: tuple[str, ...] = ()
    attestations: tuple[AttestationId, ...] = ()
    dst_tx_ids: tuple[str, ...] = ()
    busy: bool = False
    error: str | None = None
    error_code: ErrorCode | None = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "transfer_id": self.transfer_id,
            "state": self.state.value,
            "details": self.details.to_dict() if self.details else None,
            "src_tx_ids": list(self.src_tx_ids),
            "attestations": [a.to_dict() for a in self.attestations],
            "attestation_ids": [str(a) for a in self.attestations],
            "dst_tx_ids": list(self.dst_tx_ids),
            "busy": self.busy,
            "error": self.error,
            "error_code": self.error_code.name if self.error_code else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TransferSnapshot":
        details = data.get("details")
        error_code = data.get("error_code")
        return cls(
            transfer_id=data["transfer_id"],
            state=TransferState(data["state"]),
            details=TransferDetails.from_dict(details) if details else None,
            src_tx_ids=tuple(data.get("src_tx_ids", ())),
            attestations=tuple(AttestationId.from_dict(a) for a in data.get("attestations", ())),
            dst_tx_ids=tuple(data.get("dst_tx_ids", ())),
            busy=False,
            error=data.get("error"),
            error_code=ErrorCode[error_code] if error_code else None,
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )


@dataclass(frozen=True)
class Outcome:
    """Settled result of a phase operation."""

    ok: bool
    value: Any = None
    error: BridgeWalletError | None = None

    @classmethod
    def success(cls, value: Any = None) -> "Outcome":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: BridgeWalletError) -> "Outcome":
        return cls(ok=False, error=error)

    @property
    def code(self) -> ErrorCode | None:
        return self.error.code if self.error else None

    @property
    def user_message(self) -> str | None:
        return self.error.user_message if self.error else None


class TransferSession:
    """
    State machine for one cross-chain token transfer.

    Phases run strictly in order; a failed phase leaves the transfer in
    its last reached state so the same phase can be retried.

    Example:
        >>> session = TransferSession(platform)
        >>> await session.build_transfer(signer, ChainAddress(Chain.SOLANA, "..."))
        >>> await session.initiate_transfer(signer)
        >>> await session.fetch_attestation(60_000)
        >>> await session.complete_transfer(signer, wallet=wallet)
        >>> session.state
        <TransferState.COMPLETED: 'completed'>
    """

    def __init__(self, platform: BridgePlatformProtocol, transfer_id: str | None = None) -> None:
        self._platform = platform
        self._transfer_id = transfer_id or f"xfer_{uuid.uuid4().hex[:16]}"
        self._state = TransferState.IDLE
        self._handle: TokenTransferHandle | None = None
        self._details: TransferDetails | None = None
        self._src_tx_ids: list[str] = []
        self._attestations: list[AttestationId] = []
        self._dst_tx_ids: list[str] = []
        self._last_error: BridgeWalletError | None = None
        self._lock = asyncio.Lock()
        self._created_at = _now()
        self._updated_at = self._created_at

    @classmethod
    def restore(
        cls,
        platform: BridgePlatformProtocol,
        snapshot: TransferSnapshot,
        handle: TokenTransferHandle | None = None,
    ) -> "TransferSession":
        """Rebuild a session from a saved snapshot; phases need a re-attached handle."""
        session = cls(platform, snapshot.transfer_id)
        session._state = snapshot.state
        session._handle = handle
        session._details = snapshot.details
        session._src_tx_ids = list(snapshot.src_tx_ids)
        session._attestations = list(snapshot.attestations)
        session._dst_tx_ids = list(snapshot.dst_tx_ids)
        session._created_at = snapshot.created_at
        session._updated_at = snapshot.updated_at
        return session

    @property
    def transfer_id(self) -> str:
        return self._transfer_id

    @property
    def state(self) -> TransferState:
        """Get current state."""
        return self._state

    @property
    def details(self) -> TransferDetails | None:
        return self._details

    @property
    def handle(self) -> TokenTransferHandle | None:
        return self._handle

    @property
    def src_tx_ids(self) -> list[str]:
        return list(self._src_tx_ids)

    @property
    def attestations(self) -> list[AttestationId]:
        return list(self._attestations)

    @property
    def dst_tx_ids(self) -> list[str]:
        return list(self._dst_tx_ids)

    @property
    def busy(self) -> bool:
        """Whether a phase operation is in flight."""
        return self._lock.locked()

    @property
    def last_error(self) -> BridgeWalletError | None:
        return self._last_error

    @property
    def is_complete(self) -> bool:
        return self._state == TransferState.COMPLETED

    @property
    def is_failed(self) -> bool:
        return self._state == TransferState.FAILED

    def snapshot(self) -> TransferSnapshot:
        error = self._last_error
        return TransferSnapshot(
            transfer_id=self._transfer_id,
            state=self._state,
            details=self._details,
            src_tx_ids=tuple(self._src_tx_ids),
            attestations=tuple(self._attestations),
            dst_tx_ids=tuple(self._dst_tx_ids),
            busy=self.busy,
            error=error.message if error else None,
            error_code=error.code if error else None,
            created_at=self._created_at,
            updated_at=self._updated_at,
        )

    # ============================================================================
    # Phase plumbing
    # ============================================================================

    @asynccontextmanager
    async def _phase(self, name: str, *allowed: TransferState) -> AsyncIterator[None]:
        if self._lock.locked():
            raise BridgeWalletError(
                ErrorCode.PHASE_IN_PROGRESS, f"Cannot {name}: another phase is in progress"
            )

        async with self._lock:
            if self._state not in allowed:
                raise BridgeWalletError(
                    ErrorCode.INVALID_STATE,
                    f"Cannot {name} in state {self._state.value}",
                )
            try:
                yield
            except BridgeWalletError as e:
                self._last_error = e
                logger.warning(
                    "Transfer %s: %s failed in state %s: %s",
                    self._transfer_id, name, self._state.value, e,
                )
                raise
            else:
                self._last_error = None
            finally:
                self._updated_at = _now()

    def _require_handle(self) -> TokenTransferHandle:
        if self._handle is None:
            raise BridgeWalletError(
                ErrorCode.INVALID_STATE, "Transfer is not attached to a platform handle"
            )
        return self._handle

    def _transition(self, state: TransferState) -> None:
        logger.info(
            "Transfer %s: %s -> %s", self._transfer_id, self._state.value, state.value
        )
        self._state = state

    @staticmethod
    def _check_signer(signer: Signer | None, wallet: ChainSwitcher | None) -> Signer:
        if signer is None:
            raise BridgeWalletError(ErrorCode.NO_SIGNER, "No signer")
        if wallet is not None and not wallet.is_current(signer):
            raise BridgeWalletError(
                ErrorCode.STALE_SIGNER,
                f"Signer {describe(signer)} was replaced after a wallet change",
            )
        return signer

    # ============================================================================
    # Phases
    # ============================================================================

    async def build_transfer(
        self,
        signer: Signer | None,
        to: ChainAddress,
        amount: str | int = DEFAULT_AMOUNT,
        token: TokenId | None = None,
        decimals: int | None = None,
    ) -> TransferDetails:
        """
        Create the transfer from the signer's account to `to`.

        String amounts are parsed with the token's decimals (the chain's native
        precision for native tokens); integer amounts are taken as base units.
        """
        async with self._phase("build transfer", TransferState.IDLE):
            if signer is None:
                raise BridgeWalletError(ErrorCode.NO_SIGNER, "No signer")

            try:
                chain_ctx = self._platform.get_chain(signer.chain())
            except Exception as e:
                raise BridgeWalletError(
                    ErrorCode.NO_PLATFORM,
                    f"No platform context for {signer.chain().value}",
                    e,
                ) from e

            sender = ChainAddress(signer.chain(), signer.address())
            if to.chain == sender.chain:
                raise BridgeWalletError(
                    ErrorCode.INVALID_CONFIG, f"Source and destination are both {to.chain.value}"
                )

            token = token or TokenId.native(chain_ctx.chain)
            if isinstance(amount, int):
                units = amount
            else:
                if token.is_native:
                    decimals = chain_ctx.native_decimals
                elif decimals is None:
                    raise BridgeWalletError(
                        ErrorCode.INVALID_AMOUNT, f"Decimals are required for token {token}"
                    )
                units = parse_amount(amount, decimals)

            try:
                handle = await self._platform.token_transfer(token, units, sender, to, False)
            except BridgeWalletError:
                raise
            except Exception as e:
                raise BridgeWalletError(
                    ErrorCode.NO_PLATFORM, f"Platform could not build transfer: {e}", e
                ) from e

            self._handle = handle
            self._details = handle.details
            self._transition(TransferState.BUILT)
            return handle.details

    async def initiate_transfer(
        self, signer: Signer | None, wallet: ChainSwitcher | None = None
    ) -> list[str]:
        """Submit the source-chain transactions through the source signer."""
        async with self._phase("initiate transfer", TransferState.BUILT):
            handle = self._require_handle()
            signer = self._check_signer(signer, wallet)

            source = handle.details.from_address.chain
            if signer.chain() != source:
                raise BridgeWalletError(
                    ErrorCode.WRONG_CHAIN,
                    f"Signer is on {signer.chain().value}, transfer starts on {source.value}",
                )

            try:
                txids = await handle.initiate_transfer(signer)
            except Exception as e:
                # Ids broadcast before a rejection stay on the handle for the retry
                self._src_tx_ids = list(handle.src_tx_ids)
                raise BridgeWalletError(
                    ErrorCode.INITIATION_FAILED, f"Could not initiate transfer: {e}", e
                ) from e

            self._src_tx_ids = list(handle.src_tx_ids)
            if not txids or not all(txids):
                raise BridgeWalletError(
                    ErrorCode.INITIATION_FAILED, "Wallet returned no source transaction ids"
                )

            logger.info("Transfer %s: source transactions %s", self._transfer_id, txids)
            self._transition(TransferState.INITIATED)
            return list(txids)

    async def fetch_attestation(
        self, timeout_ms: int = DEFAULT_ATTESTATION_TIMEOUT_MS
    ) -> list[AttestationId]:
        """Wait up to `timeout_ms` for the attestation network."""
        async with self._phase(
            "fetch attestation", TransferState.INITIATED, TransferState.ATTESTATION_PENDING
        ):
            handle = self._require_handle()
            if not self._src_tx_ids:
                raise BridgeWalletError(ErrorCode.INVALID_STATE, "No source transaction recorded")

            self._transition(TransferState.ATTESTATION_PENDING)

            try:
                found = await asyncio.wait_for(
                    handle.fetch_attestation(timeout_ms), timeout=max(timeout_ms, 0) / 1000
                )
            except asyncio.TimeoutError as e:
                raise BridgeWalletError(
                    ErrorCode.ATTESTATION_TIMEOUT, f"No attestation within {timeout_ms}ms", e
                ) from e
            except BridgeWalletError as e:
                if e.code == ErrorCode.ATTESTATION_TIMEOUT:
                    raise
                raise BridgeWalletError(
                    ErrorCode.ATTESTATION_TIMEOUT, f"Attestation not available: {e}", e
                ) from e
            except Exception as e:
                logger.error("Transfer %s: attestation lookup failed: %s", self._transfer_id, e)
                raise BridgeWalletError(
                    ErrorCode.ATTESTATION_TIMEOUT, f"Attestation not available: {e}", e
                ) from e

            for attestation in found or []:
                if not attestation.emitter:
                    raise BridgeWalletError(
                        ErrorCode.ATTESTATION_TIMEOUT, "Platform returned an empty attestation id"
                    )
                if attestation not in self._attestations:
                    self._attestations.append(attestation)

            required = getattr(handle, "required_attestations", 1)
            if len(self._attestations) < required:
                raise BridgeWalletError(
                    ErrorCode.ATTESTATION_TIMEOUT,
                    f"Have {len(self._attestations)} of {required} attestation(s)",
                )

            self._transition(TransferState.ATTESTED)
            return list(self._attestations)

    async def complete_transfer(
        self, signer: Signer | None, wallet: ChainSwitcher | None = None
    ) -> list[str]:
        """
        Redeem the attested transfer on the destination chain.

        A signer on the wrong chain is not an error when `wallet` is given:
        the wallet is asked to switch and the new signer is used instead.
        """
        async with self._phase("complete transfer", TransferState.ATTESTED):
            handle = self._require_handle()
            if not self._attestations:
                raise BridgeWalletError(ErrorCode.INVALID_STATE, "No attestation recorded")
            signer = self._check_signer(signer, wallet)

            destination = handle.details.to_address.chain
            if signer.chain() != destination:
                if wallet is None:
                    raise BridgeWalletError(
                        ErrorCode.WRONG_CHAIN,
                        f"Signer is on {signer.chain().value}, switch to {destination.value}",
                    )
                logger.info(
                    "Transfer %s: switching wallet from %s to %s",
                    self._transfer_id, signer.chain().value, destination.value,
                )
                signer = await wallet.switch_chain(destination)
                if signer.chain() != destination:
                    raise BridgeWalletError(
                        ErrorCode.WRONG_CHAIN,
                        f"Wallet switched to {signer.chain().value}, expected {destination.value}",
                    )

            try:
                txids = await handle.complete_transfer(signer)
            except Exception as e:
                raise BridgeWalletError(
                    ErrorCode.COMPLETION_FAILED, f"Could not complete transfer: {e}", e
                ) from e

            if not txids or not all(txids):
                raise BridgeWalletError(
                    ErrorCode.COMPLETION_FAILED, "Wallet returned no destination transaction ids"
                )

            self._dst_tx_ids.extend(txids)
            logger.info("Transfer %s: destination transactions %s", self._transfer_id, txids)
            self._transition(TransferState.COMPLETED)
            return list(txids)

    def abandon(self, reason: str = "abandoned by user") -> None:
        """Move a non-terminal transfer to FAILED."""
        if self._state.is_terminal:
            raise BridgeWalletError(
                ErrorCode.INVALID_STATE, f"Transfer already {self._state.value}"
            )
        if self._lock.locked():
            raise BridgeWalletError(
                ErrorCode.PHASE_IN_PROGRESS, "Cannot abandon while a phase is in progress"
            )
        self._last_error = BridgeWalletError(ErrorCode.UNKNOWN, reason)
        self._updated_at = _now()
        self._transition(TransferState.FAILED)


class TransferOrchestrator:
    """
    Presentation-facing entry point for transfers.

    Every phase returns an Outcome instead of raising, and the current
    transfer can be read at any time through snapshot().

    Example:
        >>> orchestrator = TransferOrchestrator(platform, store=MemoryStore())
        >>> outcome = await orchestrator.build_transfer(wallet.signer, receiver)
        >>> if not outcome.ok:
        ...     show(outcome.user_message)
    """

    def __init__(
        self,
        platform: BridgePlatformProtocol,
        store: TransferStore | None = None,
        attestation_timeout_ms: int = DEFAULT_ATTESTATION_TIMEOUT_MS,
    ) -> None:
        self._platform = platform
        self._store = store
        self._attestation_timeout_ms = attestation_timeout_ms
        self._session: TransferSession | None = None

    @property
    def session(self) -> TransferSession | None:
        return self._session

    def snapshot(self) -> TransferSnapshot | None:
        """Current transfer, or None before the first build."""
        return self._session.snapshot() if self._session else None

    def new_transfer(self) -> TransferSession:
        """Start a fresh transfer; the previous one must be idle or finished."""
        current = self._session
        if current is not None and current.state not in (
            TransferState.IDLE,
            TransferState.COMPLETED,
            TransferState.FAILED,
        ):
            raise BridgeWalletError(
                ErrorCode.INVALID_STATE,
                f"Transfer {current.transfer_id} is still {current.state.value}",
            )
        self._session = TransferSession(self._platform)
        return self._session

    def resume(self, snapshot: TransferSnapshot, handle: TokenTransferHandle | None) -> TransferSession:
        """Continue a saved transfer with a re-attached platform handle."""
        self._session = TransferSession.restore(self._platform, snapshot, handle)
        return self._session

    def load_snapshot(self, transfer_id: str) -> TransferSnapshot:
        """Read a saved transfer from the store."""
        if self._store is None:
            raise BridgeWalletError(ErrorCode.INVALID_CONFIG, "No transfer store configured")
        try:
            record = self._store.load(transfer_id)
        except KeyError as e:
            raise BridgeWalletError(
                ErrorCode.INVALID_STATE, f"Unknown transfer: {transfer_id}", e
            ) from e
        return TransferSnapshot.from_dict(record)

    async def build_transfer(
        self,
        signer: Signer | None,
        to: ChainAddress,
        amount: str | int = DEFAULT_AMOUNT,
        token: TokenId | None = None,
        decimals: int | None = None,
    ) -> Outcome:
        session = self._session
        if session is None or session.state.is_terminal:
            session = self.new_transfer()
        return await self._run(session, session.build_transfer(signer, to, amount, token, decimals))

    async def initiate_transfer(
        self, signer: Signer | None, wallet: ChainSwitcher | None = None
    ) -> Outcome:
        session = self._current()
        if isinstance(session, Outcome):
            return session
        return await self._run(session, session.initiate_transfer(signer, wallet))

    async def fetch_attestation(self, timeout_ms: int | None = None) -> Outcome:
        session = self._current()
        if isinstance(session, Outcome):
            return session
        timeout = self._attestation_timeout_ms if timeout_ms is None else timeout_ms
        return await self._run(session, session.fetch_attestation(timeout))

    async def complete_transfer(
        self, signer: Signer | None, wallet: ChainSwitcher | None = None
    ) -> Outcome:
        session = self._current()
        if isinstance(session, Outcome):
            return session
        return await self._run(session, session.complete_transfer(signer, wallet))

    def abandon(self, reason: str = "abandoned by user") -> Outcome:
        session = self._current()
        if isinstance(session, Outcome):
            return session
        try:
            session.abandon(reason)
        except BridgeWalletError as e:
            return Outcome.failure(e)
        self._persist(session)
        return Outcome.success(session.state)

    def _current(self) -> "TransferSession | Outcome":
        if self._session is None:
            return Outcome.failure(
                BridgeWalletError(ErrorCode.INVALID_STATE, "No transfer has been built")
            )
        return self._session

    async def _run(self, session: TransferSession, operation) -> Outcome:
        try:
            value = await operation
        except BridgeWalletError as e:
            outcome = Outcome.failure(e)
        else:
            outcome = Outcome.success(value)
        self._persist(session)
        return outcome

    def _persist(self, session: TransferSession) -> None:
        if self._store is not None:
            self._store.save(session.transfer_id, session.snapshot().to_dict())
