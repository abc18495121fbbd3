# Credits: Nightfire Research Team - 2024

import struct


class CsbWriter:
    def __init__(self, big_endian=False):
        self.f = bytearray()
        self.en = ">" if big_endian else "<"

    @property
    def size(self):
        return len(self.f)

    def getvalue(self) -> bytes:
        return bytes(self.f)

    ### Buffer Put

    # signed
    def bput_s8(self, val):
        self.f += struct.pack(self.en + "b", val)
    def bput_s16(self, val):
        self.f += struct.pack(self.en + "h", val)
    def bput_s32(self, val):
        self.f += struct.pack(self.en + "i", val)

    # unsigned
    def bput_u8(self, val):
        self.f += struct.pack(self.en + "B", val)
    def bput_u16(self, val):
        self.f += struct.pack(self.en + "H", val)
    def bput_u32(self, val):
        self.f += struct.pack(self.en + "I", val)

    # other
    def bput(self, data):
        self.f += data

    def bput_zeros(self, length):
        self.f += bytes(length)

    def bput_float32(self, val):
        self.f += struct.pack(self.en + "f", val)

    def bput_vec3(self, vec):
        self.f += struct.pack(self.en + "fff", vec[0], vec[1], vec[2])

    def bput_string(self, string, length):
        """Null-padded fixed-size field; there must be room for at least one null"""
        raw = string.encode("ascii")
        if len(raw) >= length:
            raise ValueError(f"String {string!r} does not fit a {length} byte field")
        self.f += raw
        self.f += bytes(length - len(raw))

    def bput_string_c(self, string):
        self.f += string.encode("ascii") + b"\x00"

    def balign(self, word_size):
        self.f += bytes(-len(self.f) % word_size)
