from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import numpy as np

from ..errors import DecodeError


@dataclass
class Raster:
    """
    Simple data object: RGBA pixels (+ optional source path for bookkeeping).
    No codec logic outside the repository layer.
    """
    pixels: np.ndarray # Shape (H, W, 4), dtype uint8, RGBA order.
    path: Path | None = None # Source or destination of the raster.

    def __post_init__(self):
        if self.pixels.ndim != 3 or self.pixels.shape[2] != 4:
            raise ValueError(f"Raster needs (H, W, 4) pixels, got {self.pixels.shape}")
        if self.pixels.shape[0] == 0 or self.pixels.shape[1] == 0:
            raise DecodeError(f"Raster has zero dimension: {self.pixels.shape[1]}x{self.pixels.shape[0]}")
        if self.pixels.dtype != np.uint8:
            self.pixels = np.clip(self.pixels, 0, 255).astype(np.uint8)

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def size(self):
        return self.width, self.height

    @property
    def alpha(self) -> np.ndarray:
        return self.pixels[:, :, 3]

    @property
    def rgb(self) -> np.ndarray:
        return self.pixels[:, :, :3]
