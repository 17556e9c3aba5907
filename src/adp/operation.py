"""Read/write classification for handlers

A handler is dispatched as a read (query) or a write (transaction). An
explicit `operation` declaration on the handler wins; otherwise the action
name is matched against known read and write verbs.
"""

from typing import Optional

from adp.manifest import HandlerDescriptor


READ = "read"
WRITE = "write"

READ_VERBS = (
    "info",
    "balance",
    "get",
    "view",
    "check",
    "query",
    "list",
    "show",
    "ping",
    "status",
    "version",
    "details",
)

WRITE_VERBS = (
    "transfer",
    "send",
    "mint",
    "burn",
    "create",
    "update",
    "delete",
    "set",
    "add",
    "subtract",
    "multiply",
    "divide",
    "calculate",
    "remove",
    "approve",
    "vote",
    "stake",
    "unstake",
    "deposit",
    "withdraw",
    "swap",
    "execute",
)


def declared_operation(handler: HandlerDescriptor) -> Optional[str]:
    """The handler's explicit read/write declaration, if any"""
    if handler.operation in (READ, WRITE):
        return handler.operation
    return None


def infer_operation(action: str) -> str:
    """Infer read/write from the action name

    Read verbs are checked first. Unknown actions are treated as reads.
    """
    action_lower = action.lower()
    if any(verb in action_lower for verb in READ_VERBS):
        return READ
    if any(verb in action_lower for verb in WRITE_VERBS):
        return WRITE
    return READ


def classify_operation(handler: HandlerDescriptor) -> str:
    declared = declared_operation(handler)
    if declared is not None:
        return declared
    return infer_operation(handler.action)


def is_write(handler: HandlerDescriptor) -> bool:
    return classify_operation(handler) == WRITE
