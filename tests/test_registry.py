"""
Unit tests for the idempotent tool registry (src/registry.py).

A fake transport records every descriptor it is handed, so the tests can
assert exactly how many times each name reached the transport.
"""

import threading

import pytest
from pydantic import BaseModel

from src.errors import RegistrationError, RejectionReason
from src.registry import RegistryState, ToolDescriptor, ToolRegistry, validate_descriptor


class EmptyParams(BaseModel):
    pass


async def _handler(params):
    return {"ok": True, "data": None}


def tool(name, **overrides) -> ToolDescriptor:
    fields = {"name": name, "description": f"{name} tool", "parameters": EmptyParams, "execute": _handler}
    fields.update(overrides)
    return ToolDescriptor(**fields)


class RecordingTransport:
    def __init__(self, reject: set[str] | None = None):
        self.registered: list[ToolDescriptor] = []
        self.reject = reject or set()

    def __call__(self, descriptor: ToolDescriptor) -> None:
        if descriptor.name in self.reject:
            raise ValueError(f"transport refuses {descriptor.name}")
        self.registered.append(descriptor)

    @property
    def names(self) -> list[str]:
        return [d.name for d in self.registered]


class TestInitializeOnce:
    """Registration happens exactly once per registry."""

    def test_registers_all_sources_in_order(self):
        transport = RecordingTransport()
        registry = ToolRegistry(transport, [[tool("a"), tool("b")], [tool("c")]])

        assert registry.initialize_once() is True

        assert transport.names == ["a", "b", "c"]
        assert registry.registered_names == {"a", "b", "c"}
        assert registry.state is RegistryState.INITIALIZED

    def test_second_call_registers_nothing(self):
        transport = RecordingTransport()
        registry = ToolRegistry(transport, [[tool("a"), tool("b")]])

        registry.initialize_once()
        assert registry.initialize_once() is False

        assert transport.names == ["a", "b"]

    def test_starts_uninitialized(self):
        registry = ToolRegistry(RecordingTransport(), [])

        assert registry.state is RegistryState.UNINITIALIZED
        assert registry.registered_names == frozenset()

    def test_concurrent_initialization_registers_once(self):
        transport = RecordingTransport()
        registry = ToolRegistry(transport, [[tool(f"t{i}") for i in range(20)]])
        barrier = threading.Barrier(8)

        def initialize():
            barrier.wait()
            registry.initialize_once()

        threads = [threading.Thread(target=initialize) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(transport.registered) == 20
        assert len(registry.registered_names) == 20

    def test_independent_registries_do_not_share_state(self):
        first = RecordingTransport()
        second = RecordingTransport()

        ToolRegistry(first, [[tool("a")]]).initialize_once()
        ToolRegistry(second, [[tool("a")]]).initialize_once()

        assert first.names == ["a"]
        assert second.names == ["a"]


class TestDeduplication:
    """The first descriptor with a name wins."""

    def test_duplicate_across_sources_registered_once(self):
        transport = RecordingTransport()
        first = tool("shared", description="first")
        second = tool("shared", description="second")
        registry = ToolRegistry(transport, [[first], [tool("other"), second]])

        registry.initialize_once()

        assert transport.names == ["shared", "other"]
        assert transport.registered[0].description == "first"
        assert registry.registered_names == {"shared", "other"}
        assert ("shared", RejectionReason.DUPLICATE) in registry.rejections

    def test_duplicate_within_source(self):
        transport = RecordingTransport()
        registry = ToolRegistry(transport, [[tool("a"), tool("a")]])

        registry.initialize_once()

        assert transport.names == ["a"]


class TestResilience:
    """One bad descriptor never stops the others."""

    def test_missing_handler_does_not_block_others(self):
        transport = RecordingTransport()
        registry = ToolRegistry(
            transport, [[tool("good-1"), tool("broken", execute=None), tool("good-2")]]
        )

        registry.initialize_once()

        assert transport.names == ["good-1", "good-2"]
        assert registry.rejections == [("broken", RejectionReason.MISSING_HANDLER)]

    def test_transport_rejection_is_logged_and_skipped(self, caplog):
        transport = RecordingTransport(reject={"bad"})
        registry = ToolRegistry(transport, [[tool("bad"), tool("good")]])

        registry.initialize_once()

        assert transport.names == ["good"]
        assert registry.registered_names == {"good"}
        assert registry.rejections == [("bad", RejectionReason.TRANSPORT_REJECTED)]
        assert "bad" in caplog.text

    def test_non_descriptor_entries_do_not_block_others(self):
        transport = RecordingTransport()
        registry = ToolRegistry(
            transport, [[tool("a"), None, {"name": "dict-tool"}, tool("b")]]
        )

        registry.initialize_once()

        assert transport.names == ["a", "b"]
        assert registry.rejections == [
            (None, RejectionReason.NOT_A_DESCRIPTOR),
            (None, RejectionReason.NOT_A_DESCRIPTOR),
        ]
        assert registry.state is RegistryState.INITIALIZED

    def test_unhashable_name_is_rejected_not_raised(self):
        transport = RecordingTransport()
        registry = ToolRegistry(transport, [[tool(["x"]), tool("ok")]])

        registry.initialize_once()

        assert transport.names == ["ok"]
        assert registry.rejections == [(None, RejectionReason.NOT_A_DESCRIPTOR)]

    def test_rejected_name_can_register_from_a_later_source(self):
        transport = RecordingTransport()
        registry = ToolRegistry(
            transport, [[tool("a", parameters=None)], [tool("a")]]
        )

        registry.initialize_once()

        assert transport.names == ["a"]


class TestValidateDescriptor:
    """Each malformation maps to one rejection reason."""

    @pytest.mark.parametrize(
        "descriptor, reason",
        [
            (tool(None), RejectionReason.MISSING_NAME),
            (tool(""), RejectionReason.MISSING_NAME),
            (tool("x", parameters=None), RejectionReason.MISSING_SCHEMA),
            (tool("x", parameters={"type": "object"}), RejectionReason.MISSING_SCHEMA),
            (tool("x", parameters=str), RejectionReason.MISSING_SCHEMA),
            (tool("x", execute=None), RejectionReason.MISSING_HANDLER),
            (tool("x", execute="not a function"), RejectionReason.HANDLER_NOT_CALLABLE),
            (None, RejectionReason.NOT_A_DESCRIPTOR),
            ({"name": "x"}, RejectionReason.NOT_A_DESCRIPTOR),
            (tool(["x"]), RejectionReason.NOT_A_DESCRIPTOR),
            (tool(42), RejectionReason.NOT_A_DESCRIPTOR),
        ],
    )
    def test_rejection_reason(self, descriptor, reason):
        with pytest.raises(RegistrationError) as exc_info:
            validate_descriptor(descriptor)

        assert exc_info.value.reason is reason

    def test_valid_descriptor_passes(self):
        validate_descriptor(tool("ok"))
