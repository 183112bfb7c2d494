from pathlib import Path
from typing import Iterable, Optional, Union, Iterator, Tuple

import cv2
import numpy as np

from ..errors import DimensionMismatch
from ..models.raster import Raster
from ..repositories.raster_repository import RasterRepository

# 8-neighbourhood offsets (dy, dx)
NEIGHBORS_8: Tuple[Tuple[int, int], ...] = (
    (-1, -1), (-1, 0), (-1, 1),
    (0, -1),           (0, 1),
    (1, -1),  (1, 0),  (1, 1),
)
NEIGHBORS_4: Tuple[Tuple[int, int], ...] = ((-1, 0), (1, 0), (0, -1), (0, 1))


class RasterService:
    """Codec access plus the array helpers every pixel phase shares."""
    def __init__(self):
        self.raster_repository = RasterRepository()

    def create_raster(self, pixels: np.ndarray, path: Optional[Union[str, Path]] = None) -> Raster:
        return self.raster_repository.create_raster(pixels, path)

    def load(self, path: str | Path) -> Raster:
        """Load a single image from disk into a Raster object."""
        return self.raster_repository.load(path)

    def decode(self, data: bytes) -> Raster:
        return self.raster_repository.decode(data)

    def encode(self, raster: Raster) -> bytes:
        return self.raster_repository.encode(raster)

    def save(self, raster: Raster) -> None:
        self.raster_repository.save(raster)

    def stream_folder(
        self,
        folder: Union[str, Path],
        *,
        recursive: bool = False,
        exts: Iterable[str] | None = None,
    ) -> Iterator[Raster]:
        return self.raster_repository.iter_dir(folder, recursive=recursive, exts=exts)

    # ─── Normalisation ────────────────────────────────────────────────
    @staticmethod
    def flatten_on_white(raster: Raster) -> Raster:
        """
        Alpha-over a white background; the result is fully opaque.
        Makes diffs independent of whether the source carried transparency.
        """
        alpha = raster.pixels[:, :, 3:4].astype(np.float32) / 255.0
        rgb = raster.pixels[:, :, :3].astype(np.float32)
        flat = rgb * alpha + 255.0 * (1.0 - alpha)
        out = np.empty_like(raster.pixels)
        out[:, :, :3] = np.clip(np.floor(flat + 0.5), 0, 255).astype(np.uint8)
        out[:, :, 3] = 255
        return Raster(pixels=out, path=raster.path)

    @staticmethod
    def with_opaque_alpha(raster: Raster) -> Raster:
        out = raster.pixels.copy()
        out[:, :, 3] = 255
        return Raster(pixels=out, path=raster.path)

    @staticmethod
    def check_same_size(base: Raster, composite: Raster) -> None:
        if base.size != composite.size:
            raise DimensionMismatch(base.size, composite.size)

    @staticmethod
    def resample(raster: Raster, width: int, height: int) -> Raster:
        if (width, height) == raster.size:
            return raster
        interpolation = cv2.INTER_AREA if width < raster.width else cv2.INTER_LINEAR
        pixels = cv2.resize(raster.pixels, (width, height), interpolation=interpolation)
        return Raster(pixels=pixels, path=raster.path)

    @staticmethod
    def crop_pixels(raster: Raster, bound_r, bound_l, bound_t, bound_b) -> np.ndarray:
        """Bounds are exclusive on the right/bottom, like numpy slices."""
        if bound_l >= bound_r or bound_t >= bound_b:
            raise ValueError(
                f"Invalid crop bounds ({bound_l},{bound_t},{bound_r},{bound_b}) "
                f"for {raster.width}x{raster.height} raster"
            )
        return raster.pixels[bound_t:bound_b, bound_l:bound_r].copy()

    # ─── Array helpers ────────────────────────────────────────────────
    @staticmethod
    def color_distance(a: np.ndarray, b: np.ndarray) -> np.ndarray:
        """Euclidean RGB distance, float32 (H, W). `b` may be a broadcastable colour."""
        diff = a[..., :3].astype(np.float32) - np.asarray(b, dtype=np.float32)[..., :3]
        return np.sqrt(np.sum(diff * diff, axis=-1))

    @staticmethod
    def shifted(arr: np.ndarray, dy: int, dx: int, fill=0) -> np.ndarray:
        """
        out[y, x] = arr[y + dy, x + dx], or `fill` where that falls outside.
        """
        h, w = arr.shape[:2]
        out = np.full_like(arr, fill)
        if abs(dy) >= h or abs(dx) >= w:
            return out
        src_y = slice(max(dy, 0), h + min(dy, 0))
        src_x = slice(max(dx, 0), w + min(dx, 0))
        dst_y = slice(max(-dy, 0), h + min(-dy, 0))
        dst_x = slice(max(-dx, 0), w + min(-dx, 0))
        out[dst_y, dst_x] = arr[src_y, src_x]
        return out

    @classmethod
    def neighbor_count(cls, mask: np.ndarray, offsets=NEIGHBORS_8) -> np.ndarray:
        """Number of True neighbours per pixel (out-of-bounds counts as False)."""
        count = np.zeros(mask.shape, dtype=np.int32)
        for dy, dx in offsets:
            count += cls.shifted(mask, dy, dx, False)
        return count

    @classmethod
    def in_bounds_neighbors(cls, shape, offsets=NEIGHBORS_8) -> np.ndarray:
        return cls.neighbor_count(np.ones(shape, dtype=bool), offsets)

    @staticmethod
    def window_sum(mask: np.ndarray, radius: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        Sum of `mask` over the (2r+1)² window around every pixel, clipped to
        the image, plus the number of in-bounds pixels of each window.
        """
        h, w = mask.shape
        integral = cv2.integral(mask.astype(np.uint8)).astype(np.int64)  # (h+1, w+1)

        ys = np.arange(h)
        xs = np.arange(w)
        y0 = np.clip(ys - radius, 0, h)
        y1 = np.clip(ys + radius + 1, 0, h)
        x0 = np.clip(xs - radius, 0, w)
        x1 = np.clip(xs + radius + 1, 0, w)

        total = (integral[np.ix_(y1, x1)] - integral[np.ix_(y0, x1)]
                 - integral[np.ix_(y1, x0)] + integral[np.ix_(y0, x0)])
        counts = (y1 - y0)[:, None] * (x1 - x0)[None, :]
        return total, counts

    @classmethod
    def window_fraction(cls, mask: np.ndarray, radius: int) -> np.ndarray:
        total, counts = cls.window_sum(mask, radius)
        return total / counts

    @staticmethod
    def dilate(mask: np.ndarray, radius: int) -> np.ndarray:
        if radius <= 0:
            return mask.copy()
        k = cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (radius * 2 + 1, radius * 2 + 1))
        return cv2.dilate(mask.astype(np.uint8), k) > 0
