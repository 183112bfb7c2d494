from typing import Optional, Tuple
import logging

import numpy as np

from ..models.raster import Raster
from .raster_service import RasterService

logger = logging.getLogger(__name__)


class CroppingService:
    def __init__(self):
        self.raster_service = RasterService()

    @staticmethod
    def content_bounds(raster: Raster) -> Optional[Tuple[int, int, int, int]]:
        """
        Tight box around alpha > 0 as (left, top, right, bottom), right/bottom
        exclusive.  None when nothing is visible.
        """
        visible = raster.alpha > 0
        rows = np.flatnonzero(visible.any(axis=1))
        if rows.size == 0:
            return None
        cols = np.flatnonzero(visible.any(axis=0))
        return int(cols[0]), int(rows[0]), int(cols[-1]) + 1, int(rows[-1]) + 1

    def auto_crop(self, raster: Raster) -> Raster:
        """
        Trim to the visible content.  A fully transparent raster is returned
        unchanged; that is a normal outcome, not an error.
        """
        bounds = self.content_bounds(raster)
        if bounds is None:
            logger.info(f"Auto-crop: nothing visible, keeping {raster.width}x{raster.height}")
            return raster

        bound_l, bound_t, bound_r, bound_b = bounds
        new_pixels = self.raster_service.crop_pixels(raster, bound_r=bound_r, bound_l=bound_l,
                                                     bound_t=bound_t, bound_b=bound_b)
        logger.debug(f"Auto-crop: {raster.width}x{raster.height} → {bound_r - bound_l}x{bound_b - bound_t}")
        return self.raster_service.create_raster(new_pixels, raster.path)
