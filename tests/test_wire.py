import unittest

from nettest.config import PACKET_BYTES
from nettest.errors import DecodeError, TruncatedRequestError
from nettest.net.wire import (
    MAX_PACKET_COUNT,
    REQUEST_BYTES,
    decode_request,
    encode_request,
    filler_packet,
)


class TestEncodeRequest(unittest.TestCase):
    def test_little_endian_layout(self) -> None:
        self.assertEqual(encode_request(1), b"\x01\x00\x00\x00")
        self.assertEqual(encode_request(0x01020304), b"\x04\x03\x02\x01")
        self.assertEqual(len(encode_request(7878)), REQUEST_BYTES)

    def test_round_trip_edges(self) -> None:
        for value in [0, 1, 3, 255, 256, 7878, 2**31, MAX_PACKET_COUNT]:
            self.assertEqual(decode_request(encode_request(value)), value)

    def test_out_of_range_rejected(self) -> None:
        with self.assertRaises(ValueError):
            encode_request(-1)
        with self.assertRaises(ValueError):
            encode_request(MAX_PACKET_COUNT + 1)


class TestDecodeRequest(unittest.TestCase):
    def test_short_datagrams_are_truncated(self) -> None:
        for n in range(REQUEST_BYTES):
            with self.assertRaises(TruncatedRequestError) as ctx:
                decode_request(b"\xff" * n)
            self.assertEqual(ctx.exception.length, n)
            self.assertEqual(ctx.exception.needed, REQUEST_BYTES)
            self.assertIsInstance(ctx.exception, DecodeError)

    def test_trailing_bytes_ignored(self) -> None:
        data = encode_request(42) + b"\xaa" * (PACKET_BYTES - REQUEST_BYTES)
        self.assertEqual(decode_request(data), 42)

    def test_accepts_buffer_slices(self) -> None:
        buf = bytearray(PACKET_BYTES)
        buf[:4] = encode_request(9)
        self.assertEqual(decode_request(memoryview(buf)[:4]), 9)
        self.assertEqual(decode_request(buf), 9)


def test_filler_packet_is_zeroed_and_sized() -> None:
    pkt = filler_packet()
    assert len(pkt) == PACKET_BYTES == 1100
    assert pkt.count(0) == len(pkt)
    assert len(filler_packet(64)) == 64


if __name__ == "__main__":
    unittest.main()
