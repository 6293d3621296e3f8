# cli.py
import argparse
import logging
import sys
from pathlib import Path

from plymesh import settings
from plymesh.errors import PlyError
from plymesh.header import ListProperty
from plymesh.loader import PlyLoader
from plymesh.logging import logger, setup_logging
from plymesh.writer import save_mesh


def _print_schema(schema) -> None:
    print(f"format: {schema.format} {schema.version}")
    for comment in schema.comments:
        print(f"comment: {comment}")
    if schema.obj_info:
        print(f"obj_info: {schema.obj_info}")
    for element in schema.elements:
        print(f"element {element.name} ({element.count})")
        for prop in element.properties:
            if isinstance(prop, ListProperty):
                print(f"  list {prop.count_type} {prop.item_type} {prop.name}")
            else:
                print(f"  {prop.type_name} {prop.name}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="plymesh PLY decoding tool")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable debug logging."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # info
    p_info = subparsers.add_parser("info", help="Print the header of a PLY file.")
    p_info.add_argument("input", type=str, help="Path to input PLY file.")

    # convert
    p_conv = subparsers.add_parser(
        "convert", help="Decode a PLY mesh and write it back in another format."
    )
    p_conv.add_argument("input", type=str, help="Path to input PLY file.")
    p_conv.add_argument("output", type=str, help="Path to output PLY file.")
    p_conv.add_argument(
        "--format",
        dest="fmt",
        choices=sorted(settings.PLY_FORMATS),
        default=settings.DEFAULT_WRITE_FORMAT,
        help="Output body format.",
    )
    p_conv.add_argument(
        "--face-policy",
        choices=settings.FACE_POLICIES,
        default=settings.DEFAULT_FACE_POLICY,
        help="What to do with faces that are neither triangles nor quads.",
    )
    p_conv.add_argument(
        "--progress", action="store_true", help="Show progress bars while decoding."
    )

    args = parser.parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        data = Path(args.input).read_bytes()
        if args.command == "info":
            _print_schema(PlyLoader().read_schema(data))
        elif args.command == "convert":
            loader = PlyLoader(
                face_policy=args.face_policy, show_progress=args.progress
            )
            mesh = loader.parse(data)
            Path(args.output).write_bytes(save_mesh(mesh, fmt=args.fmt))
            logger.info(f"Wrote {args.output} ({args.fmt})")
    except PlyError as e:
        logger.error(f"{args.input}: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
