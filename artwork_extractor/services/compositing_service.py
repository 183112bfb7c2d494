from typing import Optional
import logging

import cv2
import numpy as np

from ..models.raster import Raster

logger = logging.getLogger(__name__)


class CompositingService:
    """
    Business-level helper for placing extracted artwork on a product photo.

    • Scales the artwork to a fraction of the mockup width (aspect kept).
    • Alpha-composites it at a fractional offset, then the optional overlay.
    • Returns a **new** Raster; inputs are never modified.
    """

    @staticmethod
    def _scale_to_width(raster: Raster, width: int) -> Raster:
        width = max(1, width)
        height = max(1, round(raster.height * width / raster.width))
        if (width, height) == raster.size:
            return raster

        # premultiply so transparent pixels do not bleed their colour into edges
        px = raster.pixels.astype(np.float32)
        px[:, :, :3] *= px[:, :, 3:4] / 255.0
        interpolation = cv2.INTER_AREA if width < raster.width else cv2.INTER_LINEAR
        scaled = cv2.resize(px, (width, height), interpolation=interpolation)

        alpha = scaled[:, :, 3:4]
        rgb = np.where(alpha > 0, scaled[:, :, :3] * 255.0 / np.maximum(alpha, 1e-6), 0)
        out = np.concatenate([rgb, alpha], axis=2)
        return Raster(pixels=np.clip(np.floor(out + 0.5), 0, 255).astype(np.uint8))

    @staticmethod
    def _compose(dst: np.ndarray, src: np.ndarray, left: int, top: int) -> None:
        """
        Porter-Duff "over" of `src` onto `dst` (both RGBA uint8) at (left, top),
        in place, clipped to the destination.
        """
        dh, dw = dst.shape[:2]
        sh, sw = src.shape[:2]
        x0, y0 = max(left, 0), max(top, 0)
        x1, y1 = min(left + sw, dw), min(top + sh, dh)
        if x0 >= x1 or y0 >= y1:
            return

        s = src[y0 - top:y1 - top, x0 - left:x1 - left].astype(np.float32) / 255.0
        d = dst[y0:y1, x0:x1].astype(np.float32) / 255.0

        sa = s[:, :, 3:4]
        da = d[:, :, 3:4]
        out_a = sa + da * (1.0 - sa)
        out_rgb = (s[:, :, :3] * sa + d[:, :, :3] * da * (1.0 - sa)) / np.maximum(out_a, 1e-6)

        out = np.concatenate([out_rgb, out_a], axis=2) * 255.0
        dst[y0:y1, x0:x1] = np.clip(np.floor(out + 0.5), 0, 255).astype(np.uint8)

    # --------------------------------------------------------------
    def place(
            self,
            artwork: Raster,
            target: Raster,
            scale: float,
            offset_x: float,
            offset_y: float,
            overlay: Optional[Raster] = None,
    ) -> Raster:
        """
        scale     : artwork width as a fraction of the target width
        offset_x  : left edge as a fraction of the target width
        offset_y  : top edge as a fraction of the target height
        overlay   : drawn at the origin after the artwork (fabric folds etc.)
        """
        canvas = target.pixels.copy()
        scaled = self._scale_to_width(artwork, round(target.width * scale))
        left = round(target.width * offset_x)
        top = round(target.height * offset_y)

        self._compose(canvas, scaled.pixels, left, top)
        if overlay is not None:
            self._compose(canvas, overlay.pixels, 0, 0)

        logger.debug(
            f"Placed {scaled.width}x{scaled.height} artwork at ({left},{top}) "
            f"on {target.width}x{target.height} mockup"
        )
        return Raster(pixels=canvas)
