from __future__ import annotations
from typing import Optional
import logging
import os

import numpy as np
from dotenv import load_dotenv

from ..errors import ArtworkExtractorError, ExtractionFailure
from ..models.extraction_config import MattingConfig, GridConfig, FilterPreset, get_preset
from ..models.raster import Raster
from .component_filter_service import ComponentFilterService
from .cropping_service import CroppingService
from .diff_matting_service import DiffMattingService
from .grid_pattern_service import GridPatternService
from .mask_refinement_service import MaskRefinementService
from .raster_service import RasterService

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class ExtractionService:
    """
    Chooses the extraction path and runs it end to end:

        base given   → diff matting → component filter → auto-crop
        no base      → grid detection → component filter → mask refinement → auto-crop

    Any unexpected fault inside the pixel phases surfaces as ExtractionFailure;
    `extract` turns that into the opaque composite so a request still succeeds.
    """

    def __init__(self,
                 matting_config: Optional[MattingConfig] = None,
                 grid_config: Optional[GridConfig] = None,
                 diff_preset: Optional[FilterPreset] = None,
                 grid_preset: Optional[FilterPreset] = None):
        self.matting_config = matting_config or MattingConfig(
            tolerance=float(os.getenv("MATTING_TOLERANCE", "30"))
        )
        self.grid_config = grid_config or GridConfig()
        self.diff_preset = diff_preset or get_preset(os.getenv("FILTER_PRESET", "permissive"))
        self.grid_preset = grid_preset or get_preset(os.getenv("GRID_FILTER_PRESET", "grid"))

        self.raster_service = RasterService()
        self.matting_service = DiffMattingService(self.matting_config)
        self.grid_service = GridPatternService(self.grid_config)
        self.refinement_service = MaskRefinementService(self.grid_config)
        self.filter_service = ComponentFilterService()
        self.cropping_service = CroppingService()

    # ─── Paths ────────────────────────────────────────────────────────
    def extract_with_base(self, base: Raster, composite: Raster, tolerance: float | None = None) -> Raster:
        tolerance = self.matting_config.tolerance if tolerance is None else float(tolerance)
        if not 0 <= tolerance < 255:
            raise ValueError(f"tolerance must be in [0, 255), got {tolerance}")

        logger.info(f"Diff extraction: base {base.width}x{base.height}, τ={tolerance}, preset={self.diff_preset.name}")
        try:
            result = self.matting_service.extract(base, composite, tolerance)
            filtered = self.filter_service.filter(
                result.matted,
                self.diff_preset,
                diff_map=result.diff_map,
                composite=result.composite,
                tolerance=tolerance,
            )
            return self.cropping_service.auto_crop(filtered)
        except ArtworkExtractorError:
            raise
        except Exception as err:
            raise ExtractionFailure(f"Diff extraction failed: {err}") from err

    def extract_with_grid(self, composite: Raster) -> Raster:
        logger.info(f"Grid extraction: composite {composite.width}x{composite.height}, preset={self.grid_preset.name}")
        try:
            mask = self.grid_service.detect(composite)
            # already-transparent pixels are background as well
            mask.removal |= (composite.alpha == 0) & ~mask.protected

            provisional = composite.pixels.copy()
            provisional[:, :, 3] = mask.apply(composite.alpha)
            filtered = self.filter_service.filter(Raster(pixels=provisional), self.grid_preset)
            mask.removal |= (provisional[:, :, 3] > 0) & (filtered.alpha == 0) & ~mask.protected

            mask = self.refinement_service.refine(mask, composite)

            pixels = composite.pixels.copy()
            pixels[:, :, 3] = mask.apply(composite.alpha)
            pixels[pixels[:, :, 3] == 0] = 0
            return self.cropping_service.auto_crop(Raster(pixels=pixels))
        except ArtworkExtractorError:
            raise
        except Exception as err:
            raise ExtractionFailure(f"Grid extraction failed: {err}") from err

    # ─── Public API ───────────────────────────────────────────────────
    def extract(self, composite: Raster, base: Raster | None = None, tolerance: float | None = None) -> Raster:
        """
        Diff path when a base is available, grid path otherwise.
        On ExtractionFailure the composite comes back fully opaque.
        """
        try:
            if base is not None:
                return self.extract_with_base(base, composite, tolerance)
            return self.extract_with_grid(composite)
        except ExtractionFailure as err:
            logger.warning(f"Extraction failed, using original with alpha: {err}")
            return self.raster_service.with_opaque_alpha(composite)

    @staticmethod
    def coverage(raster: Raster) -> float:
        """Share of visible pixels, handy for logging and batch reports."""
        return float(np.count_nonzero(raster.alpha) / raster.alpha.size)
