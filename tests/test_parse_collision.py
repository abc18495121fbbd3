import logging

import pytest

from csb_samples import (DEADBEEF_OTHER, FLOOR_TRIS, FLOOR_VERTICES,
                         WALL_TRIS, WALL_VERTICES, csb_bytes, group_bytes,
                         sample_groups)
from csbloader.errors import (CsbEncodeError, CsbMarkerNotFoundError,
                              CsbTruncatedError)
from csbloader.geometry import BoundingBox, Vector3
from csbloader.parser.parse_collision import (REVISION_BIG_ENDIAN_HEADER,
                                              CollisionBinary, binary_to_json,
                                              find_collision_string,
                                              find_group_records, parse_csb,
                                              serialize_csb)
from csbloader.parser.parse_vertex_group import (VertexGroup,
                                                 VertexGroupHeader)


def test_minimal_file(minimal_data):
    binary = parse_csb(minimal_data)

    assert len(binary.vertex_groups) == 1
    group = binary.vertex_groups[0]
    assert group.header.group_name == "DEADBEEF"
    assert group.vertices == []
    assert group.other_vector == Vector3(0.25, 0.0, -4.0)
    assert len(binary.other_vectors) == 3
    assert binary.other_vectors[2] == Vector3(-1.0, 0.5, 8.0)
    assert binary.is_serializable


def test_sample_file(sample_data):
    binary = parse_csb(sample_data)

    assert [g.header.group_name for g in binary.vertex_groups] == ["DEADBEEF", "Wall", "Floor"]
    assert binary.vertex_groups[0].other_vector == Vector3(*DEADBEEF_OTHER)
    assert len(binary.vertex_groups[1].vertices) == 4
    assert len(binary.vertex_groups[2].faces) == 1
    assert binary.other_vectors == []
    assert binary.is_serializable


def test_undefined_groups_are_skipped():
    # Flags 0 and 3 declare a group without it being in the file
    data = csb_bytes(sample_groups(), flags=[0, 1, 3, 0, 1])
    binary = parse_csb(data)

    assert len(binary.vertex_groups) == 3


def test_marker_not_found():
    with pytest.raises(CsbMarkerNotFoundError):
        parse_csb(bytes(200))


def test_marker_offset(sample_data):
    assert find_collision_string(sample_data) == 0x4E


def test_moved_string_table_is_not_serializable():
    binary = parse_csb(csb_bytes(sample_groups(), marker_offset=0x60))

    assert len(binary.vertex_groups) == 3
    assert all(g.is_serializable for g in binary.vertex_groups)
    assert not binary.is_serializable


def test_group_violation_is_not_serializable(caplog):
    groups = sample_groups()
    groups[2] = group_bytes(2, "Floor", FLOOR_VERTICES, FLOOR_TRIS, box=((0.0, 0.0, 0.0), (1.0, 1.0, 1.0)))

    with caplog.at_level(logging.WARNING):
        binary = parse_csb(csb_bytes(groups))

    assert not binary.is_serializable
    assert binary.vertex_groups[2].status.startswith("Invalid bounding box")
    assert "Floor" in caplog.text


def test_truncated_file(sample_data):
    with pytest.raises(CsbTruncatedError):
        parse_csb(sample_data[:-10])


def test_truncated_minimal_file(minimal_data):
    with pytest.raises(CsbTruncatedError):
        parse_csb(minimal_data[:-12])


def test_big_endian_header_revision():
    data = csb_bytes(sample_groups(), marker_offset=0x50, big_endian_header=True)
    binary = parse_csb(data, REVISION_BIG_ENDIAN_HEADER)

    assert [g.header.group_name for g in binary.vertex_groups] == ["DEADBEEF", "Wall", "Floor"]
    assert not binary.is_serializable


def test_decode_of_encode_is_identical(sample_data, minimal_data):
    for data in (sample_data, minimal_data):
        binary = parse_csb(data)
        assert parse_csb(serialize_csb(binary)) == binary


def test_group_section_is_byte_identical(sample_data, minimal_data):
    for data in (sample_data, minimal_data):
        reserialized = serialize_csb(parse_csb(data))

        assert find_collision_string(reserialized) == 0x4E
        assert reserialized[find_group_records(reserialized):] == data[find_group_records(data):]


@pytest.mark.parametrize("name", ["A", "Ab", "Abc", "Abcd", "Abcde", "Abcdef", "Abcdefg", "Abcdefgh"])
def test_string_table_alignment(name):
    # Every name length moves the end of the table to a different alignment
    wall = group_bytes(1, name, WALL_VERTICES, WALL_TRIS)
    binary = parse_csb(csb_bytes([sample_groups()[0], wall]))

    data = serialize_csb(binary)
    assert parse_csb(data) == binary


@pytest.mark.parametrize("names", [["", "Wall"], ["DEADBEEF", ""]])
def test_empty_names_stay_out_of_the_string_table(names):
    groups = [
        group_bytes(0, names[0], other=DEADBEEF_OTHER),
        group_bytes(1, names[1], WALL_VERTICES, WALL_TRIS),
    ]
    binary = parse_csb(csb_bytes(groups))

    assert parse_csb(serialize_csb(binary)) == binary


def test_implicit_group_does_not_have_to_come_first():
    groups = sample_groups()
    binary = parse_csb(csb_bytes([groups[1], groups[0], groups[2]]))

    assert parse_csb(serialize_csb(binary)) == binary


def test_single_group_gets_trailing_vectors():
    group = VertexGroup(VertexGroupHeader(group_name="DEADBEEF"), BoundingBox.EMPTY, [], [], Vector3(0.0, 1.0, 0.0))
    binary = parse_csb(serialize_csb(CollisionBinary([group], [], True)))

    assert binary.other_vectors == [Vector3.ZERO] * 3


def test_encode_errors(sample_data, minimal_data):
    with pytest.raises(CsbEncodeError):
        serialize_csb(CollisionBinary([], [], True))

    sample = parse_csb(sample_data)
    sample.other_vectors = [Vector3.ZERO] * 3
    with pytest.raises(CsbEncodeError):
        serialize_csb(sample)

    minimal = parse_csb(minimal_data)
    minimal.other_vectors = minimal.other_vectors[:2]
    with pytest.raises(CsbEncodeError):
        serialize_csb(minimal)


def test_json_dump(minimal_data):
    dump = binary_to_json(parse_csb(minimal_data))

    assert '"group_name": "DEADBEEF"' in dump
    assert '"is_serializable": true' in dump
