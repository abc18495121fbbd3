#!/usr/bin/env python3
# Credits: Nightfire Research Team - 2024

import argparse
import logging
import os
import sys

from csbloader.errors import InvalidFileError
from csbloader.debug_roundtrip import debug_csb_folder
from csbloader.parser.parse_collision import (REVISION_BIG_ENDIAN_HEADER,
                                              REVISION_DEFAULT, CsbRevision,
                                              parse_csb, serialize_csb)
from csbloader.parser.wavefront import (parse_wavefront_obj,
                                        serialize_wavefront_obj)

logger = logging.getLogger()

TOOL_VERSION = "2.0.1"

DESCRIPTION = """Load Paper Mario: The Origami King's CSB collision files into Wavefront obj files.

extract:
  Extracts a proprietary CSB collision file and outputs it as a .obj file.
  <input>: The input collision mesh (*.csb)
  <output>: The output mesh to be loaded into other applications like blender (*.obj)

build:
  Takes an .obj mesh and builds it into a CSB collision file.
  <input>: The input 3D mesh (*.obj)
  <output>: The output CSB file to be loaded into Paper Mario: The Origami King (*.csb)
"""


def pick_revision(args) -> CsbRevision:
    revision = REVISION_BIG_ENDIAN_HEADER if args.big_endian_header else REVISION_DEFAULT
    if args.strict:
        revision = CsbRevision(revision.name + ", strict", revision.big_endian_header, True, revision.record_is_tri)
    return revision


def check_paths(method, input_path, output_path):
    if method == "_debug":
        if not os.path.isdir(input_path):
            logger.error("%s is not a directory.", input_path)
            return False
        if os.path.exists(output_path) and not os.path.isdir(output_path):
            logger.error("%s exists already and is not a directory.", output_path)
            return False
        return True

    if not os.path.isfile(input_path):
        logger.error("%s does not exist or is not a file.", input_path)
        return False
    if os.path.exists(output_path) and not os.path.isfile(output_path):
        logger.error("%s exists already and is not a file.", output_path)
        return False
    return True


def extract(input_path, output_path, revision):
    with open(input_path, "rb") as f:
        csb = f.read()

    binary = parse_csb(csb, revision)
    if not binary.is_serializable:
        logger.warning("%s won't rebuild into an identical file", input_path)

    with open(output_path, "w", encoding="utf8") as f:
        f.write(serialize_wavefront_obj(binary))


def build(input_path, output_path):
    with open(input_path, "r", encoding="utf8") as f:
        text = f.read()

    try:
        binary = parse_wavefront_obj(text)
    except InvalidFileError:
        logger.error("Unable to parse file %s.", input_path)
        raise

    with open(output_path, "wb") as f:
        f.write(serialize_csb(binary))


def main(argv=None):
    parser = argparse.ArgumentParser(prog='csbloader', description=DESCRIPTION,
                                     formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument('method', choices=['extract', 'build', '_debug'])
    parser.add_argument('input')
    parser.add_argument('output')
    parser.add_argument('-v', '--version', action='version', version=f'v{TOOL_VERSION}')
    parser.add_argument('--verbose', action="store_true")
    parser.add_argument('--big-endian-header', action="store_true")
    parser.add_argument('--strict', action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        stream=sys.stdout,
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='[%(asctime)s] [%(module)s] [%(levelname)s] %(message)s',
        datefmt='%H:%M:%S')

    logger.info("Running csbloader v%s", TOOL_VERSION)

    if not check_paths(args.method, args.input, args.output):
        return 2

    revision = pick_revision(args)

    if args.method == '_debug':
        os.makedirs(args.output, exist_ok=True)
        debug_csb_folder(args.input, args.output, revision)
    elif args.method == 'extract':
        extract(args.input, args.output, revision)
    else:
        build(args.input, args.output)

    return 0


if __name__ == '__main__':
    sys.exit(main())
