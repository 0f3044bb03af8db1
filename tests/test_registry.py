"""Tests for bedita_client/interceptors/registry.py — InterceptorRegistry."""

import random

import pytest

from bedita_client.interceptors.base import InterceptorKind, RequestInterceptor, ResponseInterceptor
from bedita_client.interceptors.registry import InterceptorHandle, InterceptorRegistry


class StampRequest(RequestInterceptor):
    key = "stamp"

    async def on_request(self, config):
        return config


class TraceRequest(RequestInterceptor):
    key = "trace"

    async def on_request(self, config):
        return config


class EchoResponse(ResponseInterceptor):
    key = "echo"

    async def on_response(self, response):
        return response


class NoKeyResponse(ResponseInterceptor):

    async def on_response(self, response):
        return response


def _keyed(kind: InterceptorKind, key: str):
    base = RequestInterceptor if kind is InterceptorKind.REQUEST else ResponseInterceptor
    method = "on_request" if kind is InterceptorKind.REQUEST else "on_response"

    async def _passthrough(self, value):
        return value

    cls = type(f"Dyn_{key}", (base,), {"key": key, method: _passthrough})
    return cls(client=None)


def assert_consistent(registry: InterceptorRegistry) -> None:
    """Map entries and chain entries are in 1:1 correspondence."""
    for kind in InterceptorKind:
        handle_ids = sorted(registry.handle_for(i).id for i in registry.snapshot(kind))
        assert handle_ids == sorted(registry.chain_ids(kind))
        assert len(registry.keys(kind)) == len(registry.chain_ids(kind))


@pytest.fixture
def registry():
    return InterceptorRegistry()


class TestAdd:

    def test_returns_handle_with_kind(self, registry):
        handle = registry.add(StampRequest(client=None))
        assert isinstance(handle, InterceptorHandle)
        assert handle.kind is InterceptorKind.REQUEST

        handle = registry.add(EchoResponse(client=None))
        assert handle.kind is InterceptorKind.RESPONSE

    def test_same_key_is_idempotent(self, registry):
        first = registry.add(StampRequest(client=None))
        second = registry.add(StampRequest(client=None))
        assert first == second
        assert len(registry.snapshot(InterceptorKind.REQUEST)) == 1

    def test_first_instance_wins(self, registry):
        original = StampRequest(client=None)
        registry.add(original)
        registry.add(StampRequest(client=None))
        assert registry.snapshot(InterceptorKind.REQUEST) == [original]

    def test_kinds_have_separate_maps(self, registry):
        registry.add(_keyed(InterceptorKind.REQUEST, "shared"))
        registry.add(_keyed(InterceptorKind.RESPONSE, "shared"))
        assert registry.keys(InterceptorKind.REQUEST) == ["shared"]
        assert registry.keys(InterceptorKind.RESPONSE) == ["shared"]

    def test_registration_order_preserved(self, registry):
        stamp, trace = StampRequest(client=None), TraceRequest(client=None)
        registry.add(stamp)
        registry.add(trace)
        assert registry.snapshot(InterceptorKind.REQUEST) == [stamp, trace]

    def test_rejects_missing_key(self, registry):
        with pytest.raises(ValueError, match="no identity key"):
            registry.add(NoKeyResponse(client=None))

    def test_rejects_non_interceptor(self, registry):
        with pytest.raises(TypeError):
            registry.add(object())


class TestRemove:

    def test_removes_exactly_one_entry(self, registry):
        stamp_handle = registry.add(StampRequest(client=None))
        registry.add(TraceRequest(client=None))

        assert registry.remove(stamp_handle) is True
        assert registry.keys(InterceptorKind.REQUEST) == ["trace"]
        assert len(registry.snapshot(InterceptorKind.REQUEST)) == 1
        assert_consistent(registry)

    def test_double_remove_is_safe(self, registry):
        handle = registry.add(EchoResponse(client=None))
        assert registry.remove(handle) is True
        assert registry.remove(handle) is False
        assert registry.snapshot(InterceptorKind.RESPONSE) == []

    def test_unknown_handle(self, registry):
        registry.add(StampRequest(client=None))
        assert registry.remove(InterceptorHandle(InterceptorKind.REQUEST, 99)) is False
        assert registry.keys(InterceptorKind.REQUEST) == ["stamp"]

    def test_wrong_kind_does_not_remove(self, registry):
        handle = registry.add(StampRequest(client=None))
        assert registry.remove(InterceptorHandle(InterceptorKind.RESPONSE, handle.id)) is False
        assert registry.keys(InterceptorKind.REQUEST) == ["stamp"]

    def test_readd_after_remove_gets_new_handle(self, registry):
        first = registry.add(StampRequest(client=None))
        registry.remove(first)
        second = registry.add(StampRequest(client=None))
        assert second != first
        assert registry.remove(first) is False
        assert registry.keys(InterceptorKind.REQUEST) == ["stamp"]


class TestTransientEntries:

    def test_excluded_from_default_snapshot(self, registry):
        stamp = StampRequest(client=None)
        registry.add(stamp)
        registry.add(TraceRequest(client=None), transient=True)

        assert registry.snapshot(InterceptorKind.REQUEST) == [stamp]
        assert registry.keys(InterceptorKind.REQUEST) == ["stamp", "trace"]

    def test_included_by_handle_in_registration_order(self, registry):
        trace = TraceRequest(client=None)
        stamp = StampRequest(client=None)
        handle = registry.add(trace, transient=True)
        registry.add(stamp)

        assert registry.snapshot(InterceptorKind.REQUEST, include={handle}) == [trace, stamp]

    def test_other_transient_entries_stay_hidden(self, registry):
        mine = registry.add(StampRequest(client=None), transient=True)
        registry.add(TraceRequest(client=None), transient=True)

        snapshot = registry.snapshot(InterceptorKind.REQUEST, include={mine})
        assert [i.key for i in snapshot] == ["stamp"]

    def test_remove_clears_transient_mark(self, registry):
        handle = registry.add(EchoResponse(client=None), transient=True)
        assert registry.is_transient(handle)

        registry.remove(handle)
        readded = registry.add(EchoResponse(client=None))

        assert not registry.is_transient(handle)
        assert not registry.is_transient(readded)
        assert len(registry.snapshot(InterceptorKind.RESPONSE)) == 1

    def test_existing_key_keeps_shared_entry(self, registry):
        shared = registry.add(StampRequest(client=None))
        assert registry.add(StampRequest(client=None), transient=True) == shared
        assert not registry.is_transient(shared)


class TestConsistency:

    def test_random_add_remove_sequences(self, registry):
        rng = random.Random(1234)
        keys = [f"k{i}" for i in range(6)]
        handles: list[InterceptorHandle] = []

        for _ in range(500):
            if handles and rng.random() < 0.45:
                registry.remove(rng.choice(handles))
            else:
                kind = rng.choice(list(InterceptorKind))
                handles.append(registry.add(_keyed(kind, rng.choice(keys))))
            assert_consistent(registry)
