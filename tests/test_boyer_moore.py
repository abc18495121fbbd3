import random

import pytest

from csbloader.boyer_moore import BoyerMoore

PATTERN = b"Collision"


@pytest.mark.parametrize("size", [9, 10, 64, 4096])
def test_finds_pattern_at_start(size):
    buffer = PATTERN + bytes(size - len(PATTERN))
    assert BoyerMoore(PATTERN).find_index(buffer) == 0


@pytest.mark.parametrize("size", [9, 10, 64, 4096])
def test_finds_pattern_at_tail(size):
    buffer = bytes(size - len(PATTERN)) + PATTERN
    assert BoyerMoore(PATTERN).find_index(buffer) == size - len(PATTERN)


@pytest.mark.parametrize("position", [1, 0x4E, 1000, 65535])
def test_finds_planted_pattern(position):
    rng = random.Random(position)
    buffer = bytearray(rng.randrange(256) for _ in range(position + 200))
    buffer[position:position + len(PATTERN)] = PATTERN

    assert BoyerMoore(PATTERN).find_index(buffer) == bytes(buffer).find(PATTERN)


def test_returns_first_occurrence():
    buffer = b"xxCollisionyyCollision"
    assert BoyerMoore(PATTERN).find_index(buffer) == 2


def test_start_offset():
    buffer = b"xxCollisionyyCollision"
    assert BoyerMoore(PATTERN).find_index(buffer, start=3) == 13


def test_not_found():
    assert BoyerMoore(PATTERN).find_index(b"Collisio" * 100) == -1
    assert BoyerMoore(PATTERN).find_index(b"ollision") == -1
    assert BoyerMoore(PATTERN).find_index(b"") == -1


def test_repeated_characters():
    assert BoyerMoore(b"aab").find_index(b"aaaaaaab") == 5
    assert BoyerMoore(b"abab").find_index(b"abaabab") == 3


def test_matches_bytes_find_on_random_buffers():
    rng = random.Random(1234)
    for _ in range(200):
        pattern = bytes(rng.choice(b"ab") for _ in range(rng.randint(1, 5)))
        buffer = bytes(rng.choice(b"abc") for _ in range(rng.randint(0, 60)))
        assert BoyerMoore(pattern).find_index(buffer) == buffer.find(pattern)


def test_empty_pattern_is_rejected():
    with pytest.raises(ValueError):
        BoyerMoore(b"")
