# Credits: Nightfire Research Team - 2024

import json
import logging
from dataclasses import asdict, dataclass

from csbloader import external_knowledge
from csbloader.boyer_moore import BoyerMoore
from csbloader.csb_reader import CsbReader
from csbloader.csb_writer import CsbWriter
from csbloader.errors import CsbEncodeError, CsbMarkerNotFoundError
from csbloader.geometry import Vector3
from csbloader.parser.parse_vertex_group import (VertexGroup, looks_like_tri,
                                                 parse_vertex_group,
                                                 read_vector,
                                                 write_vertex_group)
from csbloader.util import align

logger = logging.getLogger()

"""

Only the part after the "Collision" string is understood:

char strings[];     // null separated names, starting with "Collision"
u16 terminator;     // 0, then padding up to a multiple of 4
u32 groupCount;     // upper 16 bits only, the lower ones are unknown

struct GroupDescriptor {
u8 index;
u8 unk1;
u8 flag;            // 1 = group is in the file, 0 and 3 also seen
u8 unk3;
} descriptors[groupCount];

VertexGroup groups[count of flag == 1, plus the implicit DEADBEEF group];

float trailing[3][3];   // only when there is exactly one group

"""


class CsbRevision:
    """The parts of the format that changed between revisions"""

    def __init__(self, name, big_endian_header=False, strict_version=False, record_is_tri=looks_like_tri):
        self.name = name
        # Whether the group count word is stored big endian
        self.big_endian_header = big_endian_header
        # Whether an unexpected group version aborts the decode instead of warning
        self.strict_version = strict_version
        # Predicate telling a leftover Tri apart from the next group header
        self.record_is_tri = record_is_tri

    def __repr__(self):
        return f"CsbRevision({self.name!r})"


REVISION_DEFAULT = CsbRevision("little endian")
REVISION_BIG_ENDIAN_HEADER = CsbRevision("big endian header", big_endian_header=True)


@dataclass(frozen=True)
class GroupDescriptor:
    index: int
    unk1: int
    flag: int
    unk3: int

    @property
    def is_defined(self):
        return self.flag == external_knowledge.descriptor_flag_defined


@dataclass
class CollisionBinary:
    vertex_groups: list[VertexGroup]
    other_vectors: list[Vector3]
    is_serializable: bool


def find_collision_string(buffer) -> int:
    result = BoyerMoore(external_knowledge.marker).find_index(buffer)

    if result < 0:
        logger.error("No Collision string in file, is this really a CSB?")
        raise CsbMarkerNotFoundError(f"Could not find {external_knowledge.marker!r} in {len(buffer)} bytes")

    return result


def skip_string_table(reader: CsbReader):
    # Names are separated by single nulls, so the first all-zero short is the end of the table
    while reader.bget_u16() != 0:
        pass

    reader.bskip(-2)
    reader.balign(4)


def read_descriptors(reader: CsbReader, revision=REVISION_DEFAULT) -> tuple[int, list[GroupDescriptor]]:
    """Reads everything up to the first vertex group. Returns the marker offset and the descriptor table."""
    strings_begin = find_collision_string(reader.f)
    reader.bseek(strings_begin)
    skip_string_table(reader)

    reader.big_endian = revision.big_endian_header
    group_count = reader.bget_u32() >> 16
    reader.big_endian = False

    reader.ensure(4 * group_count, f"{group_count} group descriptors")
    descriptors = [GroupDescriptor(reader.bget_u8(), reader.bget_u8(), reader.bget_u8(), reader.bget_u8())
                   for _ in range(group_count)]

    return strings_begin, descriptors


def find_group_records(data, revision=REVISION_DEFAULT) -> int:
    """Offset of the first vertex group, which is where files can be compared byte for byte"""
    reader = CsbReader(data)
    read_descriptors(reader, revision)
    return reader.btell()


def parse_csb(data, revision=REVISION_DEFAULT) -> CollisionBinary:
    reader = CsbReader(data)
    strings_begin, descriptors = read_descriptors(reader, revision)

    # The implicit group is never flagged
    defined_count = sum(1 for d in descriptors if d.is_defined) + 1

    logger.info(f"String table at 0x{strings_begin:x}, {len(descriptors)} groups declared, {defined_count} defined")
    for d in descriptors:
        if d.flag not in (0, 1, 3):
            logger.debug(f"Descriptor {d.index} has unseen flag {d.flag}")

    vertex_groups = []
    for i in range(defined_count):
        group = parse_vertex_group(reader, revision.strict_version)
        vertex_groups.append(group)

        if i < defined_count - 1 and revision.record_is_tri(reader, group.header.vertex_amount):
            logger.debug(f"Record at 0x{reader.btell():x} looks like another tri of group {group.header.group_name!r}, "
                         "its tri count may be off")

    other_vectors = []
    if defined_count == 1:
        reader.ensure(external_knowledge.trailing_vector_count * external_knowledge.vector_size, "trailing vectors")
        other_vectors = [read_vector(reader) for _ in range(external_knowledge.trailing_vector_count)]

    if reader.remaining() > 0:
        logger.debug(f"{reader.remaining()} bytes after 0x{reader.btell():x} were not decoded")

    at_canonical_offset = strings_begin == external_knowledge.canonical_string_table_offset
    if not at_canonical_offset:
        logger.info(f"String table starts at 0x{strings_begin:x} instead of 0x{external_knowledge.canonical_string_table_offset:x}, "
                    "file was not made by the game's tools")

    is_serializable = at_canonical_offset and all(group.is_serializable for group in vertex_groups)

    return CollisionBinary(vertex_groups, other_vectors, is_serializable)


def _build_string_table(names, start) -> bytes:
    table = bytearray(external_knowledge.marker + b"\x00")
    for name in names:
        # An empty name would put two nulls in a row and end the table early
        if name:
            table += name.encode("ascii") + b"\x00"

    end = start + len(table)

    # The reader stops at the first even offset holding two nulls and aligns from there.
    # When that lands on a multiple of 4 the count word's zero low half is the terminator.
    terminator = end - 1 if end % 2 else end
    count_word = align(terminator, 4)

    if count_word < end:
        del table[count_word - start:]
    else:
        table += bytes(count_word - end)

    return bytes(table)


def serialize_csb(binary: CollisionBinary) -> bytes:
    groups = binary.vertex_groups

    if len(groups) == 0:
        raise CsbEncodeError("A CSB needs at least the implicit vertex group")

    if len(groups) > 0xFFFF:
        raise CsbEncodeError(f"{len(groups)} vertex groups don't fit the group count")

    if len(groups) != 1 and len(binary.other_vectors) != 0:
        raise CsbEncodeError("Trailing vectors can only be stored in files with a single vertex group")

    if len(binary.other_vectors) not in (0, external_knowledge.trailing_vector_count):
        raise CsbEncodeError(f"Expected {external_knowledge.trailing_vector_count} trailing vectors, got {len(binary.other_vectors)}")

    writer = CsbWriter()

    # Nothing before the string table is understood, so it's left empty
    writer.bput_zeros(external_knowledge.canonical_string_table_offset)

    try:
        writer.bput(_build_string_table([g.header.group_name for g in groups], writer.size))
    except UnicodeEncodeError as e:
        raise CsbEncodeError(f"Group names must be ascii: {e}") from e

    writer.bput_u32(len(groups) << 16)

    # Exactly one group stays unflagged so the reader counts it as the implicit one
    implicit = next((i for i, g in enumerate(groups) if g.header.is_implicit), 0)
    for i in range(len(groups)):
        writer.bput_u8(i & 0xFF)
        writer.bput_u8(0)
        writer.bput_u8(0 if i == implicit else external_knowledge.descriptor_flag_defined)
        writer.bput_u8(0)

    for group in groups:
        write_vertex_group(writer, group)

    if len(groups) == 1:
        trailing = binary.other_vectors or [Vector3.ZERO] * external_knowledge.trailing_vector_count
        for vector in trailing:
            writer.bput_vec3(vector)

    logger.info(f"Serialized {len(groups)} vertex groups into {writer.size} bytes")

    return writer.getvalue()


def binary_to_json(binary: CollisionBinary) -> str:
    return json.dumps(asdict(binary), indent="\t")
