import pytest

from tests.conftest import FakeReader, FakeWriter
from wsveil.models.enums import PumpDirection
from wsveil.tunnel.pump import PacketSkipper, pump

C2B = PumpDirection.CLIENT_TO_BACKEND


class TestPacketSkipper:
    def test_zero_limit_never_skips(self):
        skipper = PacketSkipper(0)
        assert skipper.exhausted
        assert not skipper.should_skip()
        assert skipper.skipped == 0

    def test_skips_exactly_limit_reads(self):
        skipper = PacketSkipper(3)
        results = [skipper.should_skip() for _ in range(6)]
        assert results == [True, True, True, False, False, False]

    def test_counter_is_monotonic_and_bounded(self):
        skipper = PacketSkipper(2)
        seen = []
        for _ in range(10):
            skipper.should_skip()
            seen.append(skipper.skipped)
        assert seen == sorted(seen)
        assert max(seen) == 2

    def test_rejects_negative_limit(self):
        with pytest.raises(ValueError):
            PacketSkipper(-1)


async def test_pump_forwards_everything_in_order():
    reader = FakeReader([b"one", b"two", b"three"])
    writer = FakeWriter()

    transferred = await pump(reader, writer, C2B)

    assert writer.writes == [b"one", b"two", b"three"]
    assert transferred == len(b"onetwothree")


@pytest.mark.parametrize(
    "skip, expected",
    [
        (0, [b"A", b"B", b"C"]),
        (1, [b"B", b"C"]),
        (2, [b"C"]),
        (3, []),
        (10, []),
    ],
)
async def test_pump_discards_first_reads(skip, expected):
    reader = FakeReader([b"A", b"B", b"C"])
    writer = FakeWriter()

    await pump(reader, writer, C2B, skipper=PacketSkipper(skip))

    assert writer.writes == expected


async def test_skip_counts_reads_not_bytes():
    reader = FakeReader([b"x" * 4000, b"y", b"tail"])
    writer = FakeWriter()

    transferred = await pump(reader, writer, C2B, skipper=PacketSkipper(1))

    assert writer.writes == [b"y", b"tail"]
    assert transferred == 5


async def test_pump_stops_on_read_error():
    reader = FakeReader([b"ok", ConnectionResetError("reset"), b"never"])
    writer = FakeWriter()

    transferred = await pump(reader, writer, PumpDirection.BACKEND_TO_CLIENT)

    assert writer.writes == [b"ok"]
    assert transferred == 2


async def test_pump_stops_on_write_error():
    reader = FakeReader([b"first", b"second"])
    writer = FakeWriter(drain_error=BrokenPipeError("closed"))

    transferred = await pump(reader, writer, C2B)

    assert writer.writes == [b"first"]
    assert transferred == 0
    assert reader.chunks == [b"second"]
