# Credits: Nightfire Research Team - 2024

"""
Boyer-Moore search using only the bad character rule.

CSB files can be several megabytes and the "Collision" marker sits somewhere
after an unknown header, so we skip through the buffer instead of testing every
offset.
"""


class BoyerMoore:
    def __init__(self, pattern: bytes):
        if len(pattern) == 0:
            raise ValueError("Cannot search for an empty pattern")

        self.pattern = bytes(pattern)

        # Last position of every byte value within the pattern, -1 if it doesn't occur
        self.last_occurrence = [-1] * 256
        for i, c in enumerate(self.pattern):
            self.last_occurrence[c] = i

    def find_index(self, buffer, start=0) -> int:
        """Returns the offset of the first occurrence at or after start, or -1"""
        data = memoryview(buffer).cast("B")
        m = len(self.pattern)
        n = len(data)

        shift = start
        while shift <= n - m:
            j = m - 1

            # Compare right to left
            while j >= 0 and self.pattern[j] == data[shift + j]:
                j -= 1

            if j < 0:
                return shift

            # Line the mismatched byte up with its last occurrence in the pattern,
            # always moving forward by at least one
            shift += max(1, j - self.last_occurrence[data[shift + j]])

        return -1
