#!/usr/bin/env python3
"""Command-line interface for generating bb scenario Lua files.

Examples:
    python texture_cli.py lua texture -s dirt:0..127 grass:128..255 -i map.png -o texture.lua
    python texture_cli.py lua texture -s water:0..63 sand:64..95 grass:96..255 \\
        -i map.png -o texture.lua --blending 20 --seed 42
"""
from __future__ import annotations

import argparse
import logging
from pathlib import Path

import grayscale
import texture_toolkit as tt

__version__ = "0.0.1"

logger = logging.getLogger(__name__)


def _unsigned(bits: int):
    limit = 2**bits - 1

    def parse(value: str) -> int:
        try:
            number = int(value)
        except ValueError:
            raise argparse.ArgumentTypeError(f"invalid {bits}-bit unsigned integer: '{value}'") from None
        if not 0 <= number <= limit:
            raise argparse.ArgumentTypeError(f"number '{value}' does not fit in {bits} bits")
        return number

    parse.__name__ = f"u{bits}"
    return parse


def _write_output(output: Path, code: str):
    output.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(output, "w", encoding="utf-8", newline="") as fh:
            fh.write(code)
    except OSError:
        output.unlink(missing_ok=True)
        raise


def cmd_texture(args: argparse.Namespace):
    """Convert ``args.image`` into a Lua texture module at ``args.output``."""
    steps = tt.parse_steps(args.steps)
    if args.blending > 100:
        raise tt.BlendingOutOfRange(args.blending)
    # 0 on the command line asks for a generated seed.
    seed = args.seed or None
    series = tt.Series.from_steps(steps).with_blending(args.blending, seed)

    luma = grayscale.load_grayscale(args.image)
    grid = tt.encode_grid(luma, series)
    code = tt.to_lua(grid, series)

    output = Path(args.output)
    _write_output(output, code)
    width = len(grid[0]) if grid else 0
    print(f"Saved lua texture {width}x{len(grid)} with {len(steps)} steps -> {output}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bb", description="Command line interface for bb scenario")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", action="store_true", help="Log series and image details")
    sub = parser.add_subparsers(dest="command", required=True)

    lua = sub.add_parser("lua", help="Generate lua files based on input parameters")
    lua_sub = lua.add_subparsers(dest="lua_command", required=True)

    # texture
    texture = lua_sub.add_parser(
        "texture",
        help="Generate lua texture file using reference image. The image is automatically converted to grayscale.",
    )
    texture.add_argument(
        "-s",
        "--steps",
        nargs="+",
        required=True,
        help=(
            "Range between [0..255] that maps onto name of a tile. The value is derived from grayscale."
            " Format: $tile-name:$x..$y. Multiple space-separated steps can be provided at once."
            " Entire [0..255] range must be covered"
        ),
    )
    texture.add_argument("-i", "--image", required=True, help="Path of an input image")
    texture.add_argument("-o", "--output", required=True, help="Path of a generated lua script")
    texture.add_argument(
        "-b",
        "--blending",
        type=_unsigned(8),
        default=0,
        help=(
            "Does a blending noise pass over grayscale. Value is between 0 - 100(%%)."
            " 0 disables blending pass, 20 makes smooth transitions and 100 is pure randomness"
        ),
    )
    texture.add_argument(
        "-x",
        "--seed",
        type=_unsigned(64),
        default=0,
        help="64 bit value that initializes PRNG, 0 - pick random seed",
    )
    texture.set_defaults(func=cmd_texture)

    return parser


def main(argv: list[str] | None = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        args.func(args)
    except (tt.TextureError, OSError) as exc:
        logger.debug("command failed", exc_info=True)
        parser.exit(1, f"{parser.prog}: error: {exc}\n")


if __name__ == "__main__":
    main()
