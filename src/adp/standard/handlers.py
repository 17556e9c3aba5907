"""Standard handler descriptors

Handler sets shared by well-known process shapes: every self-describing
process answers Info (and should answer Ping); token processes add the
balance and transfer family.
"""

from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from adp.manifest import (
    CapabilityManifest,
    HandlerDescriptor,
    ManifestCapabilities,
    ParameterDescriptor,
    ParameterValidation,
)


# =============================================================================
# BASIC PROCESS HANDLERS
# =============================================================================


def info_handler() -> HandlerDescriptor:
    return HandlerDescriptor(
        action="Info",
        category="core",
        description="Get process information and handler metadata",
        examples=("Send Info message to get process details",),
        operation="read",
    )


def ping_handler() -> HandlerDescriptor:
    return HandlerDescriptor(
        action="Ping",
        category="utility",
        description="Test if process is responding",
        examples=("Send Ping to test connectivity",),
        operation="read",
    )


def basic_process_handlers() -> List[HandlerDescriptor]:
    """Handlers every self-describing process should expose"""
    return [info_handler(), ping_handler()]


# =============================================================================
# TOKEN HANDLERS
# =============================================================================


def balance_handler() -> HandlerDescriptor:
    return HandlerDescriptor(
        action="Balance",
        category="core",
        description="Get token balance for an account",
        examples=("check balance for alice", "what is my balance"),
        parameters=(
            ParameterDescriptor(
                name="Target",
                required=False,
                type="address",
                description="Account to check; defaults to the sender",
            ),
        ),
        operation="read",
    )


def transfer_handler() -> HandlerDescriptor:
    """Transfer with a recipient and a whole-unit quantity

    Quantity is carried as a number so free text like "100" coerces cleanly.
    """
    return HandlerDescriptor(
        action="Transfer",
        pattern=("Action", "Recipient", "Quantity"),
        category="core",
        description="Transfer tokens to another account",
        examples=("transfer 100 tokens to alice", "send 5 to bob"),
        parameters=(
            ParameterDescriptor(
                name="Recipient",
                required=True,
                type="address",
                description="Account receiving the tokens",
            ),
            ParameterDescriptor(
                name="Quantity",
                required=True,
                type="number",
                description="Amount to transfer",
                examples=("100",),
                validation=ParameterValidation(min=0),
            ),
        ),
        operation="write",
    )


def balances_handler() -> HandlerDescriptor:
    return HandlerDescriptor(
        action="Balances",
        category="core",
        description="List balances of all accounts",
        examples=("show all balances",),
        operation="read",
    )


def token_handlers() -> List[HandlerDescriptor]:
    """Handlers of a standard token process"""
    return [info_handler(), balance_handler(), transfer_handler(), balances_handler()]


# =============================================================================
# MANIFEST BUILDER
# =============================================================================


def standard_manifest(
    handlers: Iterable[HandlerDescriptor],
    last_updated: Optional[str] = None,
    **metadata: Any,
) -> CapabilityManifest:
    """Build a protocol 1.0 manifest with all capability flags set

    Keyword arguments set display metadata (name, ticker, description, ...).
    """
    if last_updated is None:
        last_updated = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return CapabilityManifest(
        handlers=tuple(handlers),
        last_updated=last_updated,
        capabilities=ManifestCapabilities(
            supports_examples=True,
            supports_handler_registry=True,
            supports_parameter_validation=True,
        ),
        **metadata,
    )
