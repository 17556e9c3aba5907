"""Standard handler sets"""

from adp.standard.handlers import (
    basic_process_handlers,
    token_handlers,
    standard_manifest,
    info_handler,
    ping_handler,
    balance_handler,
    transfer_handler,
    balances_handler,
)

__all__ = [
    "basic_process_handlers",
    "token_handlers",
    "standard_manifest",
    "info_handler",
    "ping_handler",
    "balance_handler",
    "transfer_handler",
    "balances_handler",
]
