# Credits: Nightfire Research Team - 2024

import logging
import re
import struct
from dataclasses import dataclass, field

from csbloader import external_knowledge
from csbloader.csb_reader import CsbReader
from csbloader.csb_writer import CsbWriter
from csbloader.errors import CsbDecodeError, CsbEncodeError, CsbLabelError, CsbVersionError
from csbloader.geometry import BoundingBox, Vector3

logger = logging.getLogger()

"""

struct VertexGroupHeader {
s32 unk00;          // version? always 3
s32 groupIndex;
s32 unk08;          // metadata slot 0
s32 unk0c;          // metadata slot 1
s32 unk10;          // metadata slot 2
s32 unk14;
char name[64];      // null padded
s32 unk58;          // 1 on every group except the implicit one
s32 vertexAmount;
s32 triAmount;
s32 unk64;
s32 unk68;
s32 unk6c;
s32 unk70;          // metadata slot 3
s32 unk74;          // metadata slot 4
s32 unk78;          // metadata slot 5
};

vertexAmount == 0:
    float zero[3][3];
    float otherVector[3];
    float bbMin[3];
    float bbMax[3];

vertexAmount > 0:
    float zero[3];
    float bbMin[3];
    float bbMax[3];
    float vertices[vertexAmount][3];

struct Tri {
s32 indices[3];     // local to the group
float normal[3];
} tris[triAmount];

"""

# Matches labels like these:
# 00_[mobj]_DEADBEEF
# 01_Sync_1_Col [1020:80:5:1::]
# 58_Yeah [:21::1::]
# Groups: index, reserved tag (or None), name, metadata (or None)
LABEL_REGEX = re.compile(r"^(\d{2})_(?:(\[mobj\])_)?([^ \[\]]+)(?: \[((?:-?[0-9A-Fa-f]*:)*-?[0-9A-Fa-f]*)\])?$")
# Names have to survive being put in a label and read back
NAME_REGEX = re.compile(r"^[^\s\[\]]+$")

S32_MIN = -0x80000000
S32_MAX = 0x7FFFFFFF


@dataclass
class VertexGroupHeader:
    unk00: int = external_knowledge.expected_group_version
    group_index: int = 0
    unk08: int = 0
    unk0c: int = 0
    unk10: int = 0
    unk14: int = 0
    group_name: str = ""
    unk58: int = 0
    vertex_amount: int = 0
    tri_amount: int = 0
    unk64: int = 0
    unk68: int = 0
    unk6c: int = 0
    unk70: int = 0
    unk74: int = 0
    unk78: int = 0

    @property
    def metadata(self) -> list[int]:
        return [getattr(self, name) for name in external_knowledge.metadata_fields]

    @property
    def is_implicit(self) -> bool:
        return self.group_name == external_knowledge.implicit_group_name


@dataclass(frozen=True)
class Tri:
    indices: tuple[int, int, int]
    normal: Vector3


@dataclass
class VertexGroup:
    header: VertexGroupHeader
    bounding_box: BoundingBox
    vertices: list[Vector3]
    faces: list[Tri]
    other_vector: Vector3 | None = None
    # Every reason this group won't re-encode byte for byte, in the order they were found
    violations: list[str] = field(default_factory=list)

    @property
    def is_serializable(self) -> bool:
        return len(self.violations) == 0

    @property
    def status(self) -> str:
        return "ok" if self.is_serializable else self.violations[0]


def format_label(header: VertexGroupHeader, name_override=None) -> str:
    """Builds the "NN_Name [h0:h1:h2:h3:h4:h5]" label used for objects in obj files"""
    if not 0 <= header.group_index <= 99:
        raise CsbLabelError(f"Too many vertex groups, group {header.group_index} exceeds index 99.")

    if NAME_REGEX.match(header.group_name) is None:
        raise CsbLabelError(f"Vertex group name {header.group_name!r} can't be put in a label, "
                            "it must be non-empty and have no whitespace or brackets")

    name = name_override if name_override is not None else header.group_name
    label = f"{header.group_index:02}_{name}"

    metadata = header.metadata
    if any(x != 0 for x in metadata):
        # Zero slots stay empty to keep labels short
        label += " [" + ":".join(f"{x:X}" if x != 0 else "" for x in metadata) + "]"

    return label


def match_label(label: str):
    """Returns (index, tagged, name, metadata) or None if the label is not in the expected form"""
    match = LABEL_REGEX.match(label)
    if match is None:
        return None

    index_str, tag, name, metadata_str = match.groups()

    if metadata_str is None:
        metadata = [0] * len(external_knowledge.metadata_fields)
    else:
        metadata = [int(x, 16) if x not in ("", "-") else 0 for x in metadata_str.split(":")]

    return int(index_str), tag is not None, name, metadata


def parse_label(label: str, vertex_amount=0, tri_amount=0) -> VertexGroupHeader:
    """
    Creates a VertexGroupHeader from a label made by format_label.

    Fields that labels don't carry get the values the game's own files use, so
    a header only survives parse_label(format_label(h)) unchanged if those
    fields were at their defaults to begin with.
    """
    matched = match_label(label)
    if matched is None:
        raise CsbLabelError(f"Label {label!r} is not of the form NN_Name [h0:h1:h2:h3:h4:h5]")

    index, _, name, metadata = matched

    if len(metadata) != len(external_knowledge.metadata_fields):
        raise CsbLabelError(f"Invalid metadata in vertex group label {label!r}: "
                            f"expected {len(external_knowledge.metadata_fields)} slots, got {len(metadata)}")

    for value in metadata:
        if not S32_MIN <= value <= S32_MAX:
            raise CsbLabelError(f"Metadata value {value:X} in vertex group label {label!r} does not fit in 32 bits")

    header = VertexGroupHeader(
        group_index=index,
        group_name=name,
        unk58=1 if index > 0 else 0,
        vertex_amount=vertex_amount,
        tri_amount=tri_amount,
    )
    for field_name, value in zip(external_knowledge.metadata_fields, metadata):
        setattr(header, field_name, value)

    return header


def parse_header(reader: CsbReader, strict_version=False) -> VertexGroupHeader:
    start = reader.btell()
    reader.ensure(external_knowledge.group_header_size, "vertex group header")

    header = VertexGroupHeader()
    header.unk00 = reader.bget_s32()
    header.group_index = reader.bget_s32()
    header.unk08 = reader.bget_s32()
    header.unk0c = reader.bget_s32()
    header.unk10 = reader.bget_s32()
    header.unk14 = reader.bget_s32()
    header.group_name = reader.bget_string(external_knowledge.group_name_size)
    header.unk58 = reader.bget_s32()
    header.vertex_amount = reader.bget_s32()
    header.tri_amount = reader.bget_s32()
    header.unk64 = reader.bget_s32()
    header.unk68 = reader.bget_s32()
    header.unk6c = reader.bget_s32()
    header.unk70 = reader.bget_s32()
    header.unk74 = reader.bget_s32()
    header.unk78 = reader.bget_s32()

    if header.unk00 != external_knowledge.expected_group_version:
        message = f"Vertex group {header.group_name!r} has version {header.unk00}, expected {external_knowledge.expected_group_version}"
        if strict_version:
            logger.error(message)
            raise CsbVersionError(message, start)
        logger.warning(f"{message} (at offset 0x{start:x})")

    return header


def write_header(writer: CsbWriter, header: VertexGroupHeader):
    try:
        writer.bput_s32(header.unk00)
        writer.bput_s32(header.group_index)
        writer.bput_s32(header.unk08)
        writer.bput_s32(header.unk0c)
        writer.bput_s32(header.unk10)
        writer.bput_s32(header.unk14)

        try:
            writer.bput_string(header.group_name, external_knowledge.group_name_size)
        except (ValueError, UnicodeEncodeError) as e:
            raise CsbEncodeError(f"Vertex group name {header.group_name!r} can't be stored: {e}") from e

        writer.bput_s32(header.unk58)
        writer.bput_s32(header.vertex_amount)
        writer.bput_s32(header.tri_amount)
        writer.bput_s32(header.unk64)
        writer.bput_s32(header.unk68)
        writer.bput_s32(header.unk6c)
        writer.bput_s32(header.unk70)
        writer.bput_s32(header.unk74)
        writer.bput_s32(header.unk78)
    except struct.error as e:
        raise CsbEncodeError(f"Vertex group {header.group_name!r} has a header field that doesn't fit in 32 bits: {e}") from e


def read_vector(reader: CsbReader) -> Vector3:
    return Vector3(*reader.bget_vec3())


def read_tri(reader: CsbReader) -> Tri:
    indices = (reader.bget_s32(), reader.bget_s32(), reader.bget_s32())
    return Tri(indices, read_vector(reader))


def looks_like_tri(reader: CsbReader, vertex_amount: int) -> bool:
    """
    Guesses whether the next record is another Tri rather than the header of the next group.

    One revision of the format had to be walked this way: if the next three ints are
    all valid indices into the vertices we just read, it is almost certainly a face.
    A header starts with the version (3) and the group index instead, which only pass
    when the previous group was tiny, so this is a guess and nothing more.
    """
    if reader.remaining() < external_knowledge.tri_size:
        return False

    indices = reader.bpeek_s32s(3)
    return all(0 <= i < vertex_amount for i in indices)


def parse_vertex_group(reader: CsbReader, strict_version=False) -> VertexGroup:
    start = reader.btell()
    header = parse_header(reader, strict_version)

    violations = []

    def violation(message):
        logger.warning(f"Group {header.group_index:02} {header.group_name!r} (at 0x{start:x}): {message}")
        violations.append(message)

    other_vector = None

    if header.vertex_amount < 0 or header.tri_amount < 0:
        raise CsbDecodeError(f"Vertex group {header.group_name!r} has negative counts "
                             f"({header.vertex_amount} vertices, {header.tri_amount} tris)", start)

    if header.vertex_amount == 0:
        leading = [read_vector(reader) for _ in range(3)]
        if not all(v.is_positive_zero() for v in leading):
            violation("Vertex group does not start with three (0, 0, 0) vectors.")

        other_vector = read_vector(reader)
        bounding_box = BoundingBox(read_vector(reader), read_vector(reader))
        vertices = []
    else:
        if not read_vector(reader).is_positive_zero():
            violation("Vertex group's origin is not zero.")

        bounding_box = BoundingBox(read_vector(reader), read_vector(reader))

        reader.ensure(header.vertex_amount * external_knowledge.vector_size, f"{header.vertex_amount} vertices")
        vertices = [read_vector(reader) for _ in range(header.vertex_amount)]

    expected_box = bounding_box.check_bounds(vertices)
    if expected_box is not None:
        violation(f"Invalid bounding box: should be {expected_box} when it actually is {bounding_box}.")

    reader.ensure(header.tri_amount * external_knowledge.tri_size, f"{header.tri_amount} tris")
    faces = [read_tri(reader) for _ in range(header.tri_amount)]

    logger.debug(f"Group {header.group_index:02} {header.group_name!r}: {len(vertices)} vertices, {len(faces)} tris, ends at 0x{reader.btell():x}")

    return VertexGroup(header, bounding_box, vertices, faces, other_vector, violations)


def write_vertex_group(writer: CsbWriter, group: VertexGroup):
    header = group.header
    if header.vertex_amount != len(group.vertices) or header.tri_amount != len(group.faces):
        raise CsbEncodeError(f"Vertex group {header.group_name!r} claims {header.vertex_amount} vertices and {header.tri_amount} tris "
                             f"but has {len(group.vertices)} and {len(group.faces)}")

    write_header(writer, header)

    if len(group.vertices) == 0:
        if group.other_vector is None:
            raise CsbEncodeError(f"Vertex group {group.header.group_name!r} has no vertices, "
                                 "so it must have an other vector")

        for _ in range(3):
            writer.bput_vec3(Vector3.ZERO)

        writer.bput_vec3(group.other_vector)
        writer.bput_vec3(group.bounding_box.low)
        writer.bput_vec3(group.bounding_box.high)
    else:
        writer.bput_vec3(Vector3.ZERO)
        writer.bput_vec3(group.bounding_box.low)
        writer.bput_vec3(group.bounding_box.high)

        for vertex in group.vertices:
            writer.bput_vec3(vertex)

    for face in group.faces:
        for i in face.indices:
            writer.bput_s32(i)
        writer.bput_vec3(face.normal)
