# Credits: Nightfire Research Team - 2024

import glob
import logging
import os
from multiprocessing import Process
from pathlib import Path

from csbloader.parser.parse_collision import (REVISION_DEFAULT, binary_to_json,
                                              find_group_records, parse_csb,
                                              serialize_csb)
from csbloader.parser.wavefront import (parse_wavefront_obj,
                                        serialize_wavefront_obj)
from csbloader.util import Utils

logger = logging.getLogger()


def compare_group_sections(original: bytes, reserialized: bytes, revision=REVISION_DEFAULT) -> bool:
    """
    Compares everything from the first vertex group on.
    The header and string table are not reproduced, so they are left out.
    """
    original_body = original[find_group_records(original, revision):]
    reserialized_body = reserialized[find_group_records(reserialized):]

    if len(original_body) > len(reserialized_body):
        logger.info(f"Original has {len(original_body) - len(reserialized_body)} bytes after the last group that were not decoded")
        original_body = original_body[:len(reserialized_body)]

    return original_body == reserialized_body


def debug_csb_file(file: str, out_directory: str, revision=REVISION_DEFAULT):
    """Runs one file through every conversion and dumps what came out of each step"""
    filename = os.path.basename(file)
    target = os.path.join(out_directory, filename)
    os.makedirs(target, exist_ok=True)

    original = parsed = wavefront = from_wavefront = serialized = from_wavefront_serialized = None

    try:
        with open(file, "rb") as f:
            original = f.read()

        parsed = parse_csb(original, revision)
        wavefront = serialize_wavefront_obj(parsed)
        from_wavefront = parse_wavefront_obj(wavefront)

        serialized = serialize_csb(parsed)
        from_wavefront_serialized = serialize_csb(from_wavefront)
    except Exception:
        # Keep going so whatever was produced can still be inspected
        logger.exception(f"Issue in file {filename}.")

    artifacts = [
        ("00_original.csb", original),
        ("01_reserialized.csb", serialized),
        ("02_fromWavefront.csb", from_wavefront_serialized),
        ("03_wavefront.obj", wavefront),
        ("04_original.json", parsed and binary_to_json(parsed)),
        ("05_fromWavefront.json", from_wavefront and binary_to_json(from_wavefront)),
    ]

    for name, content in artifacts:
        if content is None:
            continue

        mode = "w" if isinstance(content, str) else "wb"
        with open(os.path.join(target, name), mode) as f:
            f.write(content)

    if original is not None and serialized is not None:
        identical = compare_group_sections(original, serialized, revision)
        logger.info(f"{filename}: serializable={parsed.is_serializable}, groups identical={identical}, "
                    f"sha1 {Utils.calc_data_hash(original).hexdigest()} -> {Utils.calc_data_hash(serialized).hexdigest()}")

    logger.info(f"File {filename} completed.")


def debug_csb_folder(in_directory: str, out_directory: str, revision=REVISION_DEFAULT):
    logger.info(f"Running every CSB in {in_directory} through the converters")

    csb_files = sorted(glob.glob(os.path.join(in_directory, "*.csb")))
    if len(csb_files) == 0:
        logger.warning(f"No .csb files found in {in_directory}")
        return

    # Every file gets its own process and its own buffer, nothing is shared
    processes = [Process(target=debug_csb_file, args=(file, out_directory, revision), name=Path(file).stem) for file in csb_files]
    for process in processes:
        process.start()
    for process in processes:
        process.join()
