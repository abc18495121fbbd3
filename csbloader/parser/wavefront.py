# Credits: Nightfire Research Team - 2024

import dataclasses
import logging
import math

from csbloader import external_knowledge
from csbloader.errors import CsbEncodeError, CsbLabelError, InvalidFileError
from csbloader.geometry import BoundingBox, Vector3
from csbloader.parser.parse_collision import CollisionBinary
from csbloader.parser.parse_vertex_group import (Tri, VertexGroup,
                                                 format_label, match_label,
                                                 parse_label)

logger = logging.getLogger()


# Obj files have nowhere to put a lone vector, so a group's other vector is stored as an edge
# from the origin to the vector blown up by this much. Nothing that looks like real geometry
# ends up out there, and the scale keeps tools from rounding the coordinates to integers.
SCALE = external_knowledge.other_vector_scale


def _format_vertex(x, y, z):
    return f"v {x} {y} {z}"


def _tagged_name(group: VertexGroup):
    return f"{external_knowledge.reserved_tag}_{group.header.group_name}"


# Take a CollisionBinary and write it out as the text of an .obj file
def serialize_wavefront_obj(binary: CollisionBinary) -> str:
    output = []
    total_vertex_count = 0
    group_vertex_offsets = []

    # All vertices come first, the obj format has no way to reset the index per object
    for group in binary.vertex_groups:
        group_vertex_offsets.append(total_vertex_count)

        if len(group.vertices) == 0 and group.other_vector is not None:
            if not group.header.is_implicit:
                message = (f"Vertex group {group.header.group_index:02} {group.header.group_name!r} has an other vector, "
                           f"only the {external_knowledge.implicit_group_name} group can carry one in an obj file")
                logger.error(message)
                raise CsbEncodeError(message)

            other = group.other_vector
            output.append(_format_vertex(0.0, 0.0, 0.0))
            output.append(_format_vertex(other.x * SCALE, other.y * SCALE, other.z * SCALE))
            total_vertex_count += 2

        for vertex in group.vertices:
            output.append(_format_vertex(vertex.x, vertex.y, vertex.z))

        total_vertex_count += len(group.vertices)

    output.append("")

    for group, offset in zip(binary.vertex_groups, group_vertex_offsets):
        # The tag is the only way to carry the file's serializability through the obj
        name_override = _tagged_name(group) if group.header.is_implicit and binary.is_serializable else None
        output.append(f"o {format_label(group.header, name_override)}")

        if len(group.faces) == 0:
            if len(group.vertices) == 0 and group.other_vector is not None:
                output.append(f"l {offset + 1} {offset + 2}")
        else:
            for face in group.faces:
                a, b, c = face.indices
                output.append(f"f {a + offset + 1} {b + offset + 1} {c + offset + 1}")

        output.append("")

    logger.info(f"Wrote {total_vertex_count} vertices in {len(binary.vertex_groups)} objects")

    return "\n".join(output)


class _ObjObject:
    def __init__(self, header, tagged, line_number):
        self.header = header
        self.tagged = tagged
        self.line_number = line_number
        self.faces = []  # tuples of 0-based indices into the whole file's vertices
        self.line = None

    @property
    def is_implicit(self):
        return self.header.is_implicit


def _parse_vertex(tokens, line_number, line):
    if len(tokens) not in (4, 5):
        raise InvalidFileError("Vertex must have three coordinates", line_number, line)

    try:
        coords = tuple(float(t) for t in tokens[1:4])
    except ValueError:
        raise InvalidFileError("Vertex has a malformed coordinate", line_number, line) from None

    if not all(math.isfinite(c) for c in coords):
        raise InvalidFileError("Vertex coordinates must be finite", line_number, line)

    return coords


def _parse_index(token, vertex_count, line_number, line):
    # f 1/1/1 style references, only the position is of interest
    position = token.split("/")[0]

    try:
        index = int(position)
    except ValueError:
        raise InvalidFileError(f"Malformed vertex reference {token!r}", line_number, line) from None

    # Negative references count back from the most recent vertex
    if index < 0:
        index += vertex_count + 1

    if not 1 <= index <= vertex_count:
        raise InvalidFileError(f"Vertex reference {token!r} is out of range, indices are 1-based "
                               f"and only {vertex_count} vertices are defined so far", line_number, line)

    return index - 1


def _parse_object(line_number, line):
    parts = line.strip().split(None, 1)
    if len(parts) < 2:
        raise InvalidFileError("Object without a label", line_number, line)

    label = parts[1].strip()
    matched = match_label(label)
    if matched is None:
        raise InvalidFileError(f"Object label {label!r} is not of the form NN_Name [h0:h1:h2:h3:h4:h5]", line_number, line)

    try:
        header = parse_label(label)
    except CsbLabelError as e:
        raise InvalidFileError(str(e), line_number, line) from e

    return _ObjObject(header, matched[1], line_number)


def _build_group(obj: _ObjObject, vertices, synthetic) -> VertexGroup:
    # Vertices keep the order they have in the file, which matches the CSB they were extracted from
    referenced = sorted({i for face in obj.faces for i in face})
    local_index = {global_index: n for n, global_index in enumerate(referenced)}
    group_vertices = [Vector3(*vertices[i]) for i in referenced]

    faces = []
    for face in obj.faces:
        a, b, c = (group_vertices[local_index[i]] for i in face)
        normal = (b - a).cross(c - b).normalized()
        faces.append(Tri(tuple(local_index[i] for i in face), normal))

    if obj.is_implicit:
        # The implicit group bounds the whole file, minus the points that only encode other vectors
        bounded = [Vector3(*v) for i, v in enumerate(vertices) if i not in synthetic]
    else:
        bounded = group_vertices
    bounding_box = BoundingBox.from_vertices(bounded) or BoundingBox.EMPTY

    other_vector = None
    if obj.line is not None:
        start, end = (vertices[i] for i in obj.line)
        other_vector = Vector3(*((e - s) / SCALE for s, e in zip(start, end)))

    if len(group_vertices) == 0 and other_vector is None:
        logger.warning(f"Object {format_label(obj.header)} (line {obj.line_number}) has no faces and no line, "
                       "it can't be built into a CSB")

    header = dataclasses.replace(obj.header, vertex_amount=len(group_vertices), tri_amount=len(faces))

    return VertexGroup(header, bounding_box, group_vertices, faces, other_vector)


def parse_wavefront_obj(text: str) -> CollisionBinary:
    vertices = []
    objects = []
    current = None

    for line_number, line in enumerate(text.splitlines(), start=1):
        tokens = line.split()

        if len(tokens) == 0 or tokens[0].startswith("#"):
            continue

        keyword = tokens[0]

        if keyword == "v":
            vertices.append(_parse_vertex(tokens, line_number, line))

        elif keyword == "o":
            current = _parse_object(line_number, line)
            objects.append(current)

        elif keyword == "f":
            if current is None:
                raise InvalidFileError("Face outside of any object", line_number, line)
            if len(tokens) != 4:
                raise InvalidFileError(f"Only triangles are supported, face has {len(tokens) - 1} vertices", line_number, line)

            current.faces.append(tuple(_parse_index(t, len(vertices), line_number, line) for t in tokens[1:]))

        elif keyword == "l":
            if current is None:
                raise InvalidFileError("Line outside of any object", line_number, line)
            if not current.is_implicit:
                raise InvalidFileError(f"Lines are only allowed in the {external_knowledge.implicit_group_name} object", line_number, line)
            if current.line is not None:
                raise InvalidFileError(f"The {external_knowledge.implicit_group_name} object can only have one line", line_number, line)
            if len(tokens) != 3:
                raise InvalidFileError("Line must connect exactly two vertices", line_number, line)

            current.line = tuple(_parse_index(t, len(vertices), line_number, line) for t in tokens[1:])

        else:
            # vt, vn, g, s, usemtl, mtllib... carry nothing a CSB can hold
            logger.debug(f"Ignoring line {line_number}: {keyword}")

    synthetic = {i for obj in objects if obj.line is not None for i in obj.line}
    vertex_groups = [_build_group(obj, vertices, synthetic) for obj in objects]

    is_serializable = any(obj.tagged and obj.is_implicit for obj in objects)

    logger.info(f"Read {len(vertices)} vertices and {len(objects)} objects")

    return CollisionBinary(vertex_groups, [], is_serializable)
