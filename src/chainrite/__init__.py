__all__ = [
    # Errors
    "ChainriteError",
    "ConfigError",
    "ConfirmationCancelledError",
    "ConfirmationTimeoutError",
    "EncodingError",
    "EstimationError",
    "InsufficientBalanceError",
    "InvalidKeyError",
    "InvalidStateTransitionError",
    "InvalidTransactionError",
    "NotFoundError",
    "RpcError",
    "TransportError",
    # Config
    "Settings",
    "load_settings",
    # Chain access
    "Block",
    "BlockTransaction",
    "ChainClient",
    "Receipt",
    # Transactions
    "NonceAllocator",
    "SignedTransaction",
    "TransactionBuilder",
    "UnsignedTransaction",
    "bump_gas_price",
    "check_balance",
    # Lifecycle
    "Submitter",
    "TransactionAttempt",
    "TransactionSender",
    "TxState",
    # Contracts
    "COUNTER_ABI",
    "ContractInvoker",
    "contract_address_for",
    # Keys
    "LocalSigner",
    "generate_key",
    "load_private_key",
    "recover_sender",
]

from loguru import logger

from .errors import (
    ChainriteError,
    ConfigError,
    ConfirmationCancelledError,
    ConfirmationTimeoutError,
    EncodingError,
    EstimationError,
    InsufficientBalanceError,
    InvalidKeyError,
    InvalidStateTransitionError,
    InvalidTransactionError,
    NotFoundError,
    RpcError,
    TransportError,
)
from .config import Settings, load_settings
from .pneuma.rpc import Block, BlockTransaction, ChainClient, Receipt
from .pneuma.nonce import NonceAllocator
from .pneuma.tx import (
    SignedTransaction,
    TransactionBuilder,
    UnsignedTransaction,
    bump_gas_price,
    check_balance,
)
from .pneuma.confirm import Submitter, TransactionAttempt, TxState
from .pneuma.sender import TransactionSender
from .pneuma.abi import COUNTER_ABI
from .pneuma.contract import ContractInvoker, contract_address_for
from .sigil.eth import LocalSigner, generate_key, load_private_key, recover_sender

# Library users opt in to log output; the CLI enables it.
logger.disable("chainrite")
