from __future__ import annotations
from io import BytesIO
from pathlib import Path
from typing import Optional, Union, Iterable, Iterator
import logging
import os

import numpy as np
from PIL import Image as PILImage, UnidentifiedImageError
from dotenv import load_dotenv

from ..errors import DecodeError
from ..models.raster import Raster

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class RasterRepository:
    """
    Handles decode/encode and file I/O for Raster entities.
    Every raster leaves this class as (H, W, 4) uint8 RGBA.
    """
    def __init__(self):
        self.VALID_EXTS = {
            ext.strip().lower()
            for ext in os.getenv("VALID_IMAGE_EXTENSIONS", ".png,.jpg,.jpeg,.webp").split(",")
        }

    @staticmethod
    def create_raster(pixels: np.ndarray, path: Optional[Union[str, Path]] = None) -> Raster:
        if path is None:
            return Raster(pixels)
        return Raster(pixels=pixels, path=Path(path))

    @staticmethod
    def _to_rgba(pil_img: PILImage.Image) -> np.ndarray:
        if pil_img.mode != "RGBA":
            pil_img = pil_img.convert("RGBA")
        return np.asarray(pil_img, dtype=np.uint8).copy()

    @classmethod
    def decode(cls, data: bytes) -> Raster:
        """
        Bytes (PNG, JPEG, WebP, ...) → Raster.
        Raises DecodeError for empty, unsupported or zero-sized images.
        """
        if not data:
            raise DecodeError("Empty image data.")
        try:
            with PILImage.open(BytesIO(data)) as pil_img:
                pil_img.load()
                if pil_img.width == 0 or pil_img.height == 0:
                    raise DecodeError("Image has zero width or height.")
                pixels = cls._to_rgba(pil_img)
        except (UnidentifiedImageError, OSError, ValueError) as err:
            raise DecodeError(f"Unable to decode image: {err}") from err
        return Raster(pixels=pixels)

    @staticmethod
    def encode(raster: Raster) -> bytes:
        """Raster → PNG bytes, alpha preserved."""
        buffer = BytesIO()
        PILImage.fromarray(raster.pixels).save(buffer, format="PNG")
        return buffer.getvalue()

    @classmethod
    def load(cls, path: Union[str, Path]) -> Raster:
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Image not found or unreadable: {path}")
        raster = cls.decode(path.read_bytes())
        raster.path = path
        return raster

    @classmethod
    def save(cls, raster: Raster) -> None:
        if raster.path is None:
            raise ValueError("Raster has no destination path.")
        Path(raster.path).parent.mkdir(parents=True, exist_ok=True)
        Path(raster.path).write_bytes(cls.encode(raster))

    def iter_dir(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Raster]:
        """
        Yield Raster objects one at a time.  Nothing accumulates in memory.
        Undecodable files are logged and skipped.
        """
        folder = Path(folder)
        if not folder.is_dir():
            raise NotADirectoryError(folder)

        allowed = {e.lower() for e in (exts or self.VALID_EXTS)}
        pattern = "**/*" if recursive else "*"

        for p in sorted(folder.glob(pattern)):
            if p.suffix.lower() not in allowed or not p.is_file():
                logger.debug(f"Skipping {p}")
                continue
            try:
                yield self.load(p)
            except DecodeError as err:
                logger.warning(f"Skipping {p.name}: {err}")
