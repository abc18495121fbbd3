# Credits: Nightfire Research Team - 2024

import struct

from csbloader.errors import CsbDecodeError, CsbTruncatedError
from csbloader.util import align


class CsbReader:
    def __init__(self, buffer: bytes | bytearray | memoryview, big_endian=False):
        self.f = buffer  # buffer, never modified
        self.en = ">" if big_endian else "<"
        self.offset = 0

    """
    name len range
    s8  | 1 | -128 to 127
    s16 | 2 | -32768 to 32767
    s32 | 4 | -2147483648 to 2147483647
    u8  | 1 | 0 to 255
    u16 | 2 | 0 to 65535
    u32 | 4 | 0 to 4294967295
    f32 | 4 | IEEE 754 single
    """

    @property
    def big_endian(self):
        return self.en == ">"

    @big_endian.setter
    def big_endian(self, value):
        self.en = ">" if value else "<"

    def btell(self):
        return self.offset

    def bseek(self, offset):
        self.offset = offset

    def bskip(self, length):
        self.offset += length

    def balign(self, word_size):
        self.offset = align(self.offset, word_size)

    def remaining(self):
        return len(self.f) - self.offset

    def ensure(self, length, what="data"):
        if self.offset < 0 or self.offset + length > len(self.f):
            raise CsbTruncatedError(f"File ends before {length} bytes of {what} could be read", self.offset)

    def _unpack(self, fmt, length):
        self.ensure(length)
        val = struct.unpack_from(self.en + fmt, self.f, offset=self.offset); self.offset += length
        return val

    ### Buffer Get

    # signed
    def bget_s8(self):
        return self._unpack("b", 1)[0]
    def bget_s16(self):
        return self._unpack("h", 2)[0]
    def bget_s32(self):
        return self._unpack("i", 4)[0]

    # unsigned
    def bget_u8(self):
        return self._unpack("B", 1)[0]
    def bget_u16(self):
        return self._unpack("H", 2)[0]
    def bget_u32(self):
        return self._unpack("I", 4)[0]

    # other
    def bget(self, length):
        self.ensure(length)
        val = bytes(self.f[self.offset:self.offset + length]); self.offset += length
        return val

    def bget_float32(self):
        return self._unpack("f", 4)[0]

    def bget_vec3(self):
        return self._unpack("fff", 12)

    def bget_string(self, length):
        """Fixed-size field, cut at the first null"""
        start = self.offset
        raw = self.bget(length).split(b"\x00")[0]
        try:
            return raw.decode("ascii")
        except UnicodeDecodeError:
            raise CsbDecodeError(f"String {raw!r} is not ascii", start) from None

    def bpeek_s32s(self, count):
        """Reads count signed ints without moving"""
        start = self.offset
        try:
            return self._unpack(f"{count}i", 4 * count)
        finally:
            self.offset = start
