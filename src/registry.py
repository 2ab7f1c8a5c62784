"""
Tool descriptors and the idempotent registry that hands them to the transport.

Tools come from several source lists (invoices, commissions, orders). The
registry merges them in a fixed order and registers each name exactly once:

- The first descriptor with a given name wins; later duplicates are dropped
- Malformed descriptors are rejected with an enumerated reason
- A descriptor the transport refuses is logged and skipped, never fatal

Initialization is a tiny state machine, UNINITIALIZED -> INITIALIZING ->
INITIALIZED. Only the caller that performs the first transition does any
work; every other call returns immediately. This matters because the host
may construct the server object more than once in the same process.
"""

import logging
import threading
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel

from src.errors import RegistrationError, RejectionReason

logger = logging.getLogger("bol-mcp.registry")

ToolHandler = Callable[[Any], Awaitable[dict[str, Any]]]


@dataclass(frozen=True)
class ToolDescriptor:
    """
    One remotely invocable tool.

    Attributes:
        name: Unique tool name exposed to the calling agent
        description: Shown to the agent in the tool list
        parameters: Pydantic model class validating the tool arguments
        execute: Async handler receiving a validated parameters instance
    """

    name: str | None
    description: str = ""
    parameters: type[BaseModel] | None = None
    execute: ToolHandler | None = None


class RegistryState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    INITIALIZED = "initialized"


def validate_descriptor(descriptor: ToolDescriptor) -> None:
    """Raise RegistrationError if the descriptor can't be registered."""
    if not isinstance(descriptor, ToolDescriptor):
        loose_name = getattr(descriptor, "name", None)
        raise RegistrationError(
            loose_name if isinstance(loose_name, str) else None,
            RejectionReason.NOT_A_DESCRIPTOR,
            f"got {type(descriptor).__name__}",
        )
    name = descriptor.name
    if not name:
        raise RegistrationError(name, RejectionReason.MISSING_NAME)
    if not isinstance(name, str):
        raise RegistrationError(
            None, RejectionReason.NOT_A_DESCRIPTOR, f"name must be a string, got {name!r}"
        )
    parameters = descriptor.parameters
    if parameters is None:
        raise RegistrationError(name, RejectionReason.MISSING_SCHEMA)
    if not (isinstance(parameters, type) and issubclass(parameters, BaseModel)):
        raise RegistrationError(
            name, RejectionReason.MISSING_SCHEMA, f"expected a pydantic model, got {parameters!r}"
        )
    if descriptor.execute is None:
        raise RegistrationError(name, RejectionReason.MISSING_HANDLER)
    if not callable(descriptor.execute):
        raise RegistrationError(name, RejectionReason.HANDLER_NOT_CALLABLE)


class ToolRegistry:
    """
    Registers tool descriptors with a transport, once per registry lifetime.

    Args:
        register: Transport hook; may raise to refuse a descriptor
        sources: Descriptor lists, merged in the given order
    """

    def __init__(
        self,
        register: Callable[[ToolDescriptor], None],
        sources: Sequence[Iterable[ToolDescriptor]],
    ):
        self._register = register
        self._sources = sources
        self._state = RegistryState.UNINITIALIZED
        self._state_lock = threading.Lock()
        self._registered: set[str] = set()
        self.rejections: list[tuple[str | None, RejectionReason]] = []

    @property
    def state(self) -> RegistryState:
        return self._state

    @property
    def registered_names(self) -> frozenset[str]:
        return frozenset(self._registered)

    def initialize_once(self) -> bool:
        """
        Register every source descriptor, unless that already happened.

        Returns:
            True if this call performed the registration, False otherwise
        """
        with self._state_lock:
            if self._state is not RegistryState.UNINITIALIZED:
                logger.debug("Registry already %s, skipping", self._state.value)
                return False
            self._state = RegistryState.INITIALIZING

        logger.info("Registering tools")
        try:
            for source in self._sources:
                for descriptor in source:
                    self._register_one(descriptor)
        finally:
            self._state = RegistryState.INITIALIZED

        logger.info(
            "Registered %d tools",
            len(self._registered),
            extra={
                "log_data": {
                    "registered": sorted(self._registered),
                    "rejected": [
                        {"tool": name, "reason": reason.value} for name, reason in self.rejections
                    ],
                }
            },
        )
        return True

    def _register_one(self, descriptor: ToolDescriptor) -> None:
        try:
            # Shape checks first, the duplicate lookup needs a string name.
            validate_descriptor(descriptor)
            if descriptor.name in self._registered:
                raise RegistrationError(descriptor.name, RejectionReason.DUPLICATE, "already registered")
            try:
                self._register(descriptor)
            except Exception as e:
                raise RegistrationError(
                    descriptor.name, RejectionReason.TRANSPORT_REJECTED, str(e)
                ) from e
        except RegistrationError as e:
            self.rejections.append((e.name, e.reason))
            if e.reason is RejectionReason.DUPLICATE:
                logger.warning("Skipping tool '%s': already registered", e.name)
            else:
                logger.error(
                    "Skipping tool '%s': %s",
                    e.name,
                    e.message,
                    extra={"log_data": {"tool": e.name, "reason": e.reason.value}},
                )
            return

        self._registered.add(descriptor.name)
        logger.debug("Registered tool '%s'", descriptor.name)
