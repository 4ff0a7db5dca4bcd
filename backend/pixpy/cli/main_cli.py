"""
Command-line interface for pixpy.

Runs one editing operation and writes the resulting image next to the input
(or to --output). Credentials come from --api-key/--base-url, otherwise from
GOOGLE_API_KEY / GEMINI_BASE_URL in the environment or .env.
"""

import argparse
import asyncio
import base64
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from ..config import Settings, UserOverrides
from ..llm.errors import ClassifiedError
from ..media.normalizer import DecodeError, load_asset
from ..media.parts import to_inline_part
from ..media.utils import SUPPORTED_ASPECT_RATIOS, build_data_url, extension_for_mime, split_data_url
from ..services.editing_service import EditingService

logger = logging.getLogger(__name__)

INSTRUCTION_COMMANDS = {
    'filter': 'apply_filter',
    'adjust': 'apply_adjustment',
    'texture': 'apply_texture',
    'style': 'apply_style',
}


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pixpy", description="pixpy image editing CLI")
    parser.add_argument("--api-key", help="API key (overrides GOOGLE_API_KEY)")
    parser.add_argument("--base-url", help="API endpoint override")
    parser.add_argument("--output", "-o", help="Output file path")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    for name in INSTRUCTION_COMMANDS:
        p = sub.add_parser(name, help=f"Apply a {name} described by a prompt")
        p.add_argument("image")
        p.add_argument("prompt")

    p = sub.add_parser("retouch", help="Localized edit at a pixel coordinate")
    p.add_argument("image")
    p.add_argument("prompt")
    p.add_argument("--x", type=int, required=True)
    p.add_argument("--y", type=int, required=True)

    p = sub.add_parser("remove-bg", help="Remove the background")
    p.add_argument("image")

    p = sub.add_parser("fuse", help="Fuse source images into the main image")
    p.add_argument("image")
    p.add_argument("prompt")
    p.add_argument("sources", nargs="+")

    p = sub.add_parser("decade", help="Re-imagine the subject in a decade, e.g. 'as if living in the 1970s'")
    p.add_argument("image")
    p.add_argument("prompt")

    p = sub.add_parser("generate", help="Generate an image from text")
    p.add_argument("prompt")
    p.add_argument("--aspect-ratio", default="1:1", choices=SUPPORTED_ASPECT_RATIOS)

    p = sub.add_parser("suggest", help="Suggest creative edits for an image")
    p.add_argument("image")
    p.add_argument("kind", choices=["filter", "adjustment", "texture"])

    return parser


def _file_to_data_url(path: str) -> str:
    part = to_inline_part(load_asset(path))
    return build_data_url(part.mime_type, part.data_b64)


async def run_command(args: argparse.Namespace, service: EditingService):
    """Dispatch one parsed command; returns a data URL or a list of suggestions."""
    command = args.command
    if command in INSTRUCTION_COMMANDS:
        return await getattr(service, INSTRUCTION_COMMANDS[command])(args.image, args.prompt)
    if command == "retouch":
        return await service.retouch(args.image, args.prompt, (args.x, args.y))
    if command == "remove-bg":
        return await service.remove_background(args.image)
    if command == "fuse":
        return await service.fuse(args.image, args.sources, args.prompt)
    if command == "decade":
        return await service.generate_decade_image(_file_to_data_url(args.image), args.prompt)
    if command == "generate":
        return await service.generate_from_text(args.prompt, args.aspect_ratio)
    if command == "suggest":
        return await service.creative_suggestions(args.image, args.kind)
    raise ValueError(f"Unknown command: {command}")


def write_data_url(data_url: str, output: Optional[str], source: Optional[str]) -> Path:
    parsed = split_data_url(data_url)
    if parsed is None:
        raise ValueError("Result is not an image data URL")
    mime_type, payload = parsed
    if output:
        path = Path(output)
    else:
        stem = Path(source).stem if source else "generated"
        path = Path(f"{stem}_edited.{extension_for_mime(mime_type)}")
    path.write_bytes(base64.b64decode(payload))
    return path


def main(argv: Optional[List[str]] = None) -> int:
    args = create_parser().parse_args(argv)
    settings = Settings.from_env()
    logging.basicConfig(
        level=logging.DEBUG if args.debug else getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    service = EditingService(
        overrides=UserOverrides(api_key=args.api_key, base_url=args.base_url),
        settings=settings,
    )

    logger.debug(f"Running command {args.command}")
    try:
        result = asyncio.run(run_command(args, service))
    except (DecodeError, ClassifiedError) as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1

    if isinstance(result, list):
        print(json.dumps(result, ensure_ascii=False, indent=2))
        return 0

    path = write_data_url(result, args.output, getattr(args, "image", None))
    print(f"✓ Saved {path}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
