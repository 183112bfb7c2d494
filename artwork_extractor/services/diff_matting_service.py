from __future__ import annotations
from dataclasses import dataclass
import logging

import numpy as np

from ..errors import DimensionMismatch
from ..models.extraction_config import MattingConfig
from ..models.raster import Raster
from .raster_service import RasterService

logger = logging.getLogger(__name__)


@dataclass
class MattingResult:
    """
    matted    : extracted RGBA raster, base dimensions
    diff_map  : (H, W) float32 RGB distance base ↔ composite
    composite : the flattened, size-aligned composite the diff was taken on
    """
    matted: Raster
    diff_map: np.ndarray
    composite: Raster


class DiffMattingService:
    """
    Recovers artwork colour and opacity from a blank base photo and the same
    photo with artwork on it.

    Matting model: composite = alpha·fg + (1 - alpha)·base, with alpha
    estimated from the colour distance and fg solved for per channel.
    """

    def __init__(self, config: MattingConfig = MattingConfig()):
        self.config = config
        self.raster_service = RasterService()

    # ─── Alignment ────────────────────────────────────────────────────
    def align(self, base: Raster, composite: Raster):
        """Flatten both onto white and bring the composite to the base size."""
        base = self.raster_service.flatten_on_white(base)
        composite = self.raster_service.flatten_on_white(composite)
        try:
            self.raster_service.check_same_size(base, composite)
        except DimensionMismatch as err:
            logger.warning(f"{err}; resampling composite")
            composite = self.raster_service.resample(composite, base.width, base.height)
        return base, composite

    # ─── Core math ────────────────────────────────────────────────────
    def compute_diff_map(self, base: Raster, composite: Raster) -> np.ndarray:
        return self.raster_service.color_distance(base.pixels, composite.pixels)

    def unmix(self, base: Raster, composite: Raster, diff_map: np.ndarray,
              tolerance: float) -> np.ndarray:
        """
        Per pixel:
          d <= τ  → (0, 0, 0, 0)
          else    → alpha = clamp((d - τ)/(255 - τ), 0, 1),
                    fg    = clamp((c - (1 - alpha)·b)/alpha, 0, 255)   (alpha > ε)
                    fg    = c                                           (otherwise)
        """
        h, w = diff_map.shape
        out = np.zeros((h, w, 4), dtype=np.uint8)

        design = diff_map > tolerance
        if not design.any():
            return out

        alpha = np.clip((diff_map - tolerance) / (255.0 - tolerance), 0.0, 1.0)
        alpha = np.where(design, alpha, 0.0).astype(np.float32)

        b = base.pixels[:, :, :3].astype(np.float32)
        c = composite.pixels[:, :, :3].astype(np.float32)

        unmixable = design & (alpha > self.config.alpha_epsilon)
        safe_alpha = np.where(unmixable, alpha, 1.0)[:, :, None]
        fg = (c - (1.0 - safe_alpha) * b) / safe_alpha
        fg = np.clip(np.floor(fg + 0.5), 0, 255)
        fg = np.where(unmixable[:, :, None], fg, c)

        out[:, :, :3] = np.where(design[:, :, None], fg, 0).astype(np.uint8)
        out[:, :, 3] = np.where(design, np.floor(alpha * 255.0 + 0.5), 0).astype(np.uint8)
        return out

    def remove_isolated_pixels(self, pixels: np.ndarray) -> int:
        """
        Clear faint pixels (alpha < limit) that have at most one visible
        8-neighbour.  Neighbours are counted on the alpha before this pass;
        the one-pixel image border is left untouched.
        Returns the number of cleared pixels.
        """
        visible = pixels[:, :, 3] > 0
        neighbors = self.raster_service.neighbor_count(visible)

        noise = visible & (neighbors <= 1) & (pixels[:, :, 3] < self.config.isolated_alpha_limit)
        noise[0, :] = noise[-1, :] = False
        noise[:, 0] = noise[:, -1] = False

        pixels[noise] = 0
        return int(noise.sum())

    # ─── Public API ───────────────────────────────────────────────────
    def extract(self, base: Raster, composite: Raster, tolerance: float | None = None) -> MattingResult:
        """Callers validate τ (0 <= τ < 255) before matting."""
        tolerance = self.config.tolerance if tolerance is None else float(tolerance)

        base, composite = self.align(base, composite)
        diff_map = self.compute_diff_map(base, composite)
        pixels = self.unmix(base, composite, diff_map, tolerance)
        cleared = self.remove_isolated_pixels(pixels)

        logger.debug(
            f"Diff matting τ={tolerance}: {int((pixels[:, :, 3] > 0).sum())} design pixels, "
            f"{cleared} isolated pixels cleared"
        )
        return MattingResult(matted=Raster(pixels=pixels), diff_map=diff_map, composite=composite)
