# Credits: Nightfire Research Team - 2024

# Knowledge about the CSB collision format gathered from sample files, since
# there is no documentation to go on.

# Every CSB file carries this string at the start of its string table
marker = b"Collision"

# Files written by the game's own tooling start the string table here. Anything
# else has been rebuilt by hand (or by another tool).
canonical_string_table_offset = 0x4E

# First header word of every vertex group. Always 3 in the files we have seen.
expected_group_version = 3

# Group names live in a fixed-size, null-padded field
group_name_size = 64

# Group 0 is always present, never flagged in the descriptor table and holds
# file-wide data instead of geometry.
implicit_group_name = "DEADBEEF"

# Prefix used on the implicit group's label when the binary was serializable
reserved_tag = "[mobj]"

# Header fields surfaced on labels, by offset within the group header
metadata_fields = ["unk08", "unk0c", "unk10", "unk70", "unk74", "unk78"]

# Descriptor table flag marking a group as present in the file. 0 and 3 also
# show up but their meaning is unknown.
descriptor_flag_defined = 1

# Files with exactly one defined group carry this many extra vectors at the end
trailing_vector_count = 3

# Scale applied to a group's other vector when it is stored as a mesh edge. Big
# enough that no modelling tool mistakes it for real geometry and rounds it.
other_vector_scale = 10e40

# Sizes of the fixed records, in bytes
group_header_size = 0x7C
vector_size = 12
tri_size = 24
