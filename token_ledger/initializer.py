"""
Supply Initializer

One-time creation of the token's total supply. Initialization credits
the whole supply to a single designated account, fixes the token
metadata, and records the genesis credit as a Transfer from the zero
address. A store can be initialized exactly once.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .addresses import ZERO_ADDRESS, normalize_address
from .amounts import require_amount
from .audit import RecordLog, RecordType
from .config import LedgerConfig, get_config
from .errors import AlreadyInitialized, InvalidMetadata, InvalidRecipient
from .events import EventDispatcher, create_transfer_event
from .ledger import BALANCES_TABLE, META_ID, META_TABLE, TokenLedger
from .logging_config import get_logger, log_action
from .storage import StorageInterface, create_storage


MAX_DECIMALS = 255


@dataclass(frozen=True)
class TokenMetadata:
    """Immutable descriptive metadata for the token"""
    name: str
    symbol: str
    decimals: int

    def __post_init__(self):
        if not isinstance(self.name, str) or not self.name.strip():
            raise InvalidMetadata("Token name cannot be empty")
        if not isinstance(self.symbol, str) or not self.symbol.strip():
            raise InvalidMetadata("Token symbol cannot be empty")
        if isinstance(self.decimals, bool) or not isinstance(self.decimals, int):
            raise InvalidMetadata(f"Decimals must be an integer, got {type(self.decimals).__name__}")
        if not 0 <= self.decimals <= MAX_DECIMALS:
            raise InvalidMetadata(f"Decimals must be between 0 and {MAX_DECIMALS}, got {self.decimals}")


class SupplyInitializer:
    """Creates the total supply in an empty store"""

    def __init__(
        self,
        storage: StorageInterface,
        record_log: Optional[RecordLog] = None,
        event_dispatcher: Optional[EventDispatcher] = None
    ):
        self.storage = storage
        self.record_log = record_log or RecordLog(storage)
        self._event_dispatcher = event_dispatcher
        self.logger = get_logger("token_ledger.initializer")

    def is_initialized(self) -> bool:
        """Check if this store already holds a supply"""
        return self.storage.exists(META_TABLE, META_ID)

    def initialize(
        self,
        designated_account: str,
        total_supply: int,
        metadata: TokenMetadata
    ) -> TokenLedger:
        """
        Credit the full supply to one account

        Args:
            designated_account: Account receiving the entire supply
            total_supply: Number of base units to create
            metadata: Token name, symbol and decimals

        Returns:
            TokenLedger attached to the initialized store

        Raises:
            AlreadyInitialized: If the store already holds a supply
            InvalidRecipient: If designated_account is the zero address
        """
        designated_account = normalize_address(designated_account)
        total_supply = require_amount(total_supply)

        if designated_account == ZERO_ADDRESS:
            raise InvalidRecipient("Supply cannot be credited to the zero address")

        with self.storage.atomic():
            if self.is_initialized():
                raise AlreadyInitialized("Token supply has already been initialized")

            self.storage.save(META_TABLE, META_ID, {
                "name": metadata.name,
                "symbol": metadata.symbol,
                "decimals": metadata.decimals,
                "total_supply": str(total_supply),
                "designated_account": designated_account,
                "initialized_at": datetime.now(timezone.utc).isoformat()
            })
            self.storage.save(BALANCES_TABLE, designated_account, {
                "account": designated_account,
                "amount": str(total_supply)
            })
            record = self.record_log.append(
                RecordType.TRANSFER, ZERO_ADDRESS, designated_account, total_supply
            )

        log_action(
            self.logger, "info", "Token supply initialized",
            user_id=designated_account, action="initialize", resource=f"token:{metadata.symbol}",
            extra={
                "name": metadata.name,
                "symbol": metadata.symbol,
                "decimals": metadata.decimals,
                "total_supply": str(total_supply)
            }
        )

        if self._event_dispatcher:
            self._event_dispatcher.publish(
                create_transfer_event(ZERO_ADDRESS, designated_account, total_supply, record.sequence)
            )

        return TokenLedger(self.storage, self.record_log, self._event_dispatcher)


def create_token(
    name: str,
    symbol: str,
    decimals: int,
    total_supply: int,
    designated_account: str,
    storage: Optional[StorageInterface] = None,
    event_dispatcher: Optional[EventDispatcher] = None
) -> TokenLedger:
    """
    Construct a new token: validate metadata, create the supply, return the ledger

    Uses in-memory storage unless a backend is given.
    """
    metadata = TokenMetadata(name=name, symbol=symbol, decimals=decimals)
    initializer = SupplyInitializer(storage or create_storage("memory"), event_dispatcher=event_dispatcher)
    return initializer.initialize(designated_account, total_supply, metadata)


def create_ledger(
    config: Optional[LedgerConfig] = None,
    storage: Optional[StorageInterface] = None,
    event_dispatcher: Optional[EventDispatcher] = None
) -> TokenLedger:
    """
    Build a ledger from configuration

    Initializes the store on first use; an already initialized store is
    re-attached as-is and the configured supply is ignored.
    """
    config = config or get_config()
    if storage is None:
        storage = create_storage(config.storage_backend, config.database_path)

    initializer = SupplyInitializer(storage, event_dispatcher=event_dispatcher)
    if initializer.is_initialized():
        return TokenLedger(storage, initializer.record_log, event_dispatcher)

    metadata = TokenMetadata(
        name=config.token_name,
        symbol=config.token_symbol,
        decimals=config.token_decimals
    )
    return initializer.initialize(config.designated_account, config.total_supply, metadata)
