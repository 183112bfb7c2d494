import logging

import numpy as np

from ..models.extraction_config import GridConfig
from ..models.grid_mask import GridMask, NO_OVERRIDE
from ..models.raster import Raster
from .grid_pattern_service import classify_colors, NONE
from .raster_service import RasterService, NEIGHBORS_8

logger = logging.getLogger(__name__)


class MaskRefinementService:
    """
    Softens the hard checkerboard removal mask along artwork borders.

    • Edge protection  – stops the mask from eating into the artwork rim.
    • Smoothing        – partial alpha for boundary pixels.
    • Feathering       – one more half-weight ring outside the smoothed edge.
    """

    def __init__(self, config: GridConfig = GridConfig()):
        self.config = config
        self.raster_service = RasterService()

    def protect_edges(self, removal: np.ndarray, grid_colored: np.ndarray) -> np.ndarray:
        """
        Removal-marked pixels in the 1 px ring next to kept (or protected)
        pixels are kept too when they look like grid but fewer than
        `edge_min_grid_neighbors` of their 8 neighbours are removal-marked.
        """
        ring = removal & (self.raster_service.neighbor_count(~removal) > 0)
        removed_nb = self.raster_service.neighbor_count(removal)
        demoted = ring & grid_colored & (removed_nb < self.config.edge_min_grid_neighbors)
        return removal & ~demoted

    def smooth(self, removal: np.ndarray, protected: np.ndarray, grid_colored: np.ndarray,
               overrides: np.ndarray) -> np.ndarray:
        """
        blend = 0.7·(kept neighbours / neighbours) + 0.3·(non-grid-coloured
        share of the kept neighbours).  Inside (low, high) → partial alpha;
        at or above high → pixel is kept.
        """
        cfg = self.config
        rs = self.raster_service
        kept = ~removal
        boundary = removal & (rs.neighbor_count(kept & ~protected) > 0)
        if not boundary.any():
            return removal

        neighbors = rs.in_bounds_neighbors(removal.shape)
        kept_nb = rs.neighbor_count(kept)
        kept_plain_nb = rs.neighbor_count(kept & ~grid_colored)

        blend = (cfg.smooth_neighbor_weight * kept_nb / np.maximum(neighbors, 1)
                 + cfg.smooth_color_weight * kept_plain_nb / np.maximum(kept_nb, 1))

        partial = boundary & (blend > cfg.smooth_low) & (blend < cfg.smooth_high)
        solid = boundary & (blend >= cfg.smooth_high)

        overrides[partial] = np.floor(blend[partial] * 255.0 + 0.5).astype(np.int16)
        return removal & ~solid

    def feather(self, removal: np.ndarray, overrides: np.ndarray) -> None:
        """Half-weight mean of neighbouring overrides, kept only above feather_min_alpha."""
        cfg = self.config
        rs = self.raster_service
        has = overrides >= 0
        if not has.any():
            return

        values = np.where(has, overrides, 0).astype(np.int32)
        total = np.zeros(removal.shape, dtype=np.int32)
        for dy, dx in NEIGHBORS_8:
            total += rs.shifted(values, dy, dx, 0)
        count = rs.neighbor_count(has)

        candidates = removal & ~has & (count > 0)
        feathered = np.floor(cfg.feather_weight * total / np.maximum(count, 1) + 0.5)
        apply = candidates & (feathered > cfg.feather_min_alpha)
        overrides[apply] = feathered[apply].astype(np.int16)

    def refine(self, mask: GridMask, composite: Raster) -> GridMask:
        grid_colored = classify_colors(composite.rgb, self.config, self.config.extended_tolerance) != NONE
        overrides = mask.overrides.copy()

        removal = self.protect_edges(mask.removal, grid_colored)
        removal &= ~mask.protected
        removal = self.smooth(removal, mask.protected, grid_colored, overrides)
        self.feather(removal, overrides)

        # overrides only ever describe removal-marked pixels
        overrides[~removal] = NO_OVERRIDE

        logger.debug(
            f"Mask refinement: {int(mask.removal.sum()) - int(removal.sum())} pixels kept, "
            f"{int((overrides >= 0).sum())} partial-alpha pixels"
        )
        return GridMask(removal=removal, protected=mask.protected, overrides=overrides)
