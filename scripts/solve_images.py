# Path: scripts/solve_images.py
# Purpose: CLI tool to crop problem images and stream their solutions to the terminal.
# Layer: scripts.
# Details: Demonstrates how to wire settings, services, the cropper, and solution sessions together.

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

# Ensure project root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from PIL import Image
from tqdm import tqdm

from config import AppSettings, configure_logging
from core.errors import PersistenceUnavailable
from core.imaging.geometry import Rect
from core.services import Services


def _parse_rect(value: str) -> Rect:
    try:
        x, y, width, height = (float(part) for part in value.split(","))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Expected x,y,width,height but got {value!r}") from exc
    return Rect(x, y, width, height)


async def _solve(services: Services, image: Image.Image, stream_to_stdout: bool, bookmark: bool) -> str:
    session = services.new_session()
    if stream_to_stdout:
        session.delta_observer = lambda _message_id, fragment: print(fragment, end="", flush=True)
    outcome = await session.start_session(image)
    if stream_to_stdout:
        print()
    if outcome.error:
        print(outcome.error, file=sys.stderr)
    elif bookmark:
        try:
            session.on_bookmark_toggled(True)
        except PersistenceUnavailable as exc:
            print(f"Bookmark not saved: {exc}", file=sys.stderr)
    return session.solution_text()


def main(argv: Optional[List[str]] = None) -> None:
    """Solve one or more problem images."""

    parser = argparse.ArgumentParser(description="Stream solutions for problem images")
    parser.add_argument("images", type=Path, nargs="+", help="Image files to solve")
    parser.add_argument("--crop", type=_parse_rect, default=None, help="Crop rect x,y,width,height in display units (default: centered initial crop)")
    parser.add_argument("--frame", type=_parse_rect, default=None, help="Display frame x,y,width,height the crop refers to")
    parser.add_argument("--bookmark", action="store_true", help="Bookmark every solved image")
    parser.add_argument("--output-dir", type=Path, default=None, help="Write solutions as .txt files here")
    args = parser.parse_args(argv)

    settings = AppSettings.from_env()
    configure_logging(settings)
    services = Services.from_settings(settings)

    crop_rect = args.crop
    display_frame = args.frame
    if crop_rect is not None and display_frame is None:
        parser.error("--crop requires --frame")
    if crop_rect is None and display_frame is not None:
        crop_rect = services.initial_crop_rect(display_frame).to_rect()

    single = len(args.images) == 1
    for path in tqdm(args.images, desc="Solving images", unit="img", disable=single):
        with Image.open(path) as source:
            image = source.copy()
        if crop_rect is not None and display_frame is not None:
            result = services.cropper.crop_display_selection(image, crop_rect, display_frame)
            image = result.image

        solution = asyncio.run(_solve(services, image, stream_to_stdout=single, bookmark=args.bookmark))
        if args.output_dir is not None:
            args.output_dir.mkdir(parents=True, exist_ok=True)
            (args.output_dir / f"{path.stem}.txt").write_text(solution, encoding="utf-8")


if __name__ == "__main__":
    main()
