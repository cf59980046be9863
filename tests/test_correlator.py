"""Tests for the response correlator."""

import asyncio

import pytest

from lightningrpc.correlator import Correlator
from lightningrpc.error import ConnectionLost, RemoteError, UnknownId
from lightningrpc.wire import WireErrorObject, WireResponse


@pytest.mark.asyncio
class TestCorrelator:
    """Tests for Correlator."""

    async def test_register_creates_pending_call(self) -> None:
        """Test registration tracks the call."""
        correlator = Correlator()
        pending = correlator.register(1, "getinfo")

        assert pending.request_id == 1
        assert pending.method == "getinfo"
        assert not pending.future.done()
        assert 1 in correlator
        assert len(correlator) == 1

    async def test_register_duplicate_id(self) -> None:
        """Test an outstanding id cannot be registered twice."""
        correlator = Correlator()
        correlator.register(1, "getinfo")
        with pytest.raises(ValueError, match="already outstanding"):
            correlator.register(1, "getpeers")

    async def test_resolve_result(self) -> None:
        """Test a result resolves the matching wait-handle."""
        correlator = Correlator()
        pending = correlator.register(1, "getinfo")

        resolved = correlator.resolve(WireResponse(1, result={"port": 9735}))

        assert resolved is pending
        assert await pending.future == {"port": 9735}
        assert len(correlator) == 0

    async def test_resolve_error(self) -> None:
        """Test an error response fails the wait-handle with RemoteError."""
        correlator = Correlator()
        pending = correlator.register(2, "getroute")

        correlator.resolve(WireResponse(2, error=WireErrorObject(-1, "no route found")))

        with pytest.raises(RemoteError) as exc_info:
            await pending.future
        assert exc_info.value.code == -1
        assert exc_info.value.message == "no route found"

    async def test_unknown_id(self) -> None:
        """Test an unmatched response fails and leaves other calls alone."""
        correlator = Correlator()
        other = correlator.register(1, "getinfo")

        with pytest.raises(UnknownId) as exc_info:
            correlator.resolve(WireResponse(99, result="stray"))

        assert exc_info.value.request_id == 99
        assert not other.future.done()
        assert 1 in correlator

    async def test_null_id_is_unknown(self) -> None:
        """Test a null id never matches a call."""
        correlator = Correlator()
        correlator.register(1, "getinfo")
        with pytest.raises(UnknownId):
            correlator.resolve(WireResponse(None, error=WireErrorObject(-32700, "Parse error")))

    async def test_duplicate_response(self) -> None:
        """Test a second response for the same id is a protocol violation."""
        correlator = Correlator()
        pending = correlator.register(1, "getinfo")
        correlator.resolve(WireResponse(1, result="first"))

        with pytest.raises(UnknownId):
            correlator.resolve(WireResponse(1, result="second"))

        assert await pending.future == "first"

    async def test_out_of_order_responses(self) -> None:
        """Test responses resolve their own calls regardless of order."""
        correlator = Correlator()
        first = correlator.register(1, "getroute")
        second = correlator.register(2, "getinfo")

        correlator.resolve(WireResponse(2, result="info"))
        correlator.resolve(WireResponse(1, result="route"))

        assert await first.future == "route"
        assert await second.future == "info"

    async def test_abandoned_call_accepts_late_response(self) -> None:
        """Test a late response for an abandoned call is a no-op."""
        correlator = Correlator()
        pending = correlator.register(1, "sendpay")

        correlator.abandon(1)

        assert pending.future.cancelled()
        assert 1 not in correlator
        assert correlator.resolve(WireResponse(1, result="late")) is None

        # Only once: a second late response is a protocol violation again.
        with pytest.raises(UnknownId):
            correlator.resolve(WireResponse(1, result="later"))

    async def test_abandoned_ids_are_bounded(self) -> None:
        """Test only the most recent abandoned ids are remembered."""
        correlator = Correlator(max_abandoned=3)
        for request_id in range(1, 101):
            correlator.register(request_id, "waitinvoice")
            correlator.abandon(request_id)

        assert len(correlator._abandoned) == 3
        with pytest.raises(UnknownId):
            correlator.resolve(WireResponse(97, result="late"))
        for request_id in (98, 99, 100):
            assert correlator.resolve(WireResponse(request_id, result="late")) is None

    async def test_abandon_unknown_is_noop(self) -> None:
        """Test abandoning an id that is not outstanding does nothing."""
        correlator = Correlator()
        correlator.abandon(5)
        with pytest.raises(UnknownId):
            correlator.resolve(WireResponse(5, result=None))

    async def test_fail_one(self) -> None:
        """Test failing a single call."""
        correlator = Correlator()
        pending = correlator.register(1, "getinfo")
        other = correlator.register(2, "getpeers")

        assert correlator.fail(1, ConnectionLost("gone"))
        assert not correlator.fail(1, ConnectionLost("gone"))

        with pytest.raises(ConnectionLost):
            await pending.future
        assert not other.future.done()

    async def test_fail_all(self) -> None:
        """Test every outstanding call fails with the same error."""
        correlator = Correlator()
        calls = [correlator.register(i, "getinfo") for i in range(1, 4)]
        correlator.register(4, "stop")
        correlator.abandon(4)

        error = ConnectionLost("daemon went away")
        assert correlator.fail_all(error) == 3
        assert len(correlator) == 0

        results = await asyncio.gather(*(c.future for c in calls), return_exceptions=True)
        assert results == [error, error, error]

        # Abandoned ids are forgotten with the connection.
        with pytest.raises(UnknownId):
            correlator.resolve(WireResponse(4, result=None))

    async def test_elapsed(self) -> None:
        """Test elapsed time grows from issue time."""
        correlator = Correlator()
        pending = correlator.register(1, "getinfo")
        await asyncio.sleep(0.01)
        assert pending.elapsed > 0
