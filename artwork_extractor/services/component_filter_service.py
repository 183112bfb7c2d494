from __future__ import annotations
from typing import List, Optional
import logging

import cv2
import numpy as np

from ..models.component import Component
from ..models.extraction_config import FilterPreset, PERMISSIVE
from ..models.raster import Raster
from .raster_service import RasterService

logger = logging.getLogger(__name__)


class ComponentFilterService:
    """
    Connected-component cleanup shared by both extraction paths.

    • Thin/small components are erased (stray lines, JPEG speckle).
    • Components far from the main one are erased (diff path).
    • Under-estimated alpha inside the surviving mask is restored (diff path).
    """

    def __init__(self):
        self.raster_service = RasterService()

    # ─── Labelling ────────────────────────────────────────────────────
    @staticmethod
    def label_components(alpha: np.ndarray) -> List[Component]:
        """
        8-connected components of alpha > 0, in raster-scan order of their
        first pixel.  Iterative labelling, safe for very large images.
        """
        visible = (alpha > 0).astype(np.uint8)
        num, labels, stats, _ = cv2.connectedComponentsWithStats(visible, connectivity=8)
        if num <= 1:
            return []

        flat = labels.ravel()
        order = np.argsort(flat, kind="stable")
        starts = np.searchsorted(flat[order], np.arange(1, num + 1))

        components = []
        for label in range(1, num):
            indices = order[starts[label - 1]:starts[label]]
            x, y, bw, bh = (int(v) for v in stats[label, :4])
            components.append(Component(indices=indices, bbox=(x, y, x + bw - 1, y + bh - 1)))

        # cv2 label order depends on the algorithm; ties need scan order
        components.sort(key=lambda c: int(c.indices.min()))
        return components

    @staticmethod
    def main_component(components: List[Component]) -> Optional[Component]:
        """Largest by pixel count; the first one found wins ties."""
        main = None
        for comp in components:
            if main is None or comp.size > main.size:
                main = comp
        return main

    @staticmethod
    def _erase(pixels: np.ndarray, comp: Component) -> None:
        pixels.reshape(-1, 4)[comp.indices] = 0

    # ─── Passes ───────────────────────────────────────────────────────
    def remove_thin_components(self, pixels: np.ndarray, preset: FilterPreset = PERMISSIVE) -> int:
        """
        Erase every component with size < max(min_size, main·f) whose average
        thickness (size / longer bbox side) is below the preset threshold.
        Returns the number of erased components.
        """
        components = self.label_components(pixels[:, :, 3])
        main = self.main_component(components)
        if main is None:
            return 0

        size_threshold = max(preset.min_size, main.size * preset.size_fraction)
        erased = 0
        for comp in components:
            if comp.size >= size_threshold:
                continue
            if comp.thickness < preset.thickness:
                self._erase(pixels, comp)
                erased += 1
        return erased

    def remove_distant_components(self, pixels: np.ndarray, radius: float) -> int:
        """
        Erase every non-main component with no pixel within `radius`
        (Euclidean) of a main-component pixel.
        """
        components = self.label_components(pixels[:, :, 3])
        main = self.main_component(components)
        if main is None or len(components) == 1:
            return 0

        h, w = pixels.shape[:2]
        not_main = np.full(h * w, 255, dtype=np.uint8)
        not_main[main.indices] = 0
        distance = cv2.distanceTransform(not_main.reshape(h, w), cv2.DIST_L2, cv2.DIST_MASK_PRECISE).ravel()

        erased = 0
        for comp in components:
            if comp is main:
                continue
            if distance[comp.indices].min() > radius:
                self._erase(pixels, comp)
                erased += 1
        return erased

    def restore_underestimated(
        self,
        pixels: np.ndarray,
        diff_map: np.ndarray,
        composite: Raster,
        tolerance: float,
        preset: FilterPreset = PERMISSIVE,
    ) -> int:
        """
        Inside the surviving (optionally dilated) mask, pixels whose matted
        alpha stayed below the preset limit although the raw diff exceeds τ/2
        become fully opaque with the composite colour.
        """
        region = self.raster_service.dilate(pixels[:, :, 3] > 0, preset.dilation_radius)
        restore = region & (pixels[:, :, 3] < preset.restore_alpha_below) & (diff_map > tolerance / 2.0)
        pixels[restore, :3] = composite.pixels[restore, :3]
        pixels[restore, 3] = 255
        return int(restore.sum())

    # ─── Public API ───────────────────────────────────────────────────
    def filter(
        self,
        raster: Raster,
        preset: FilterPreset = PERMISSIVE,
        *,
        diff_map: np.ndarray | None = None,
        composite: Raster | None = None,
        tolerance: float | None = None,
    ) -> Raster:
        """
        Run the passes the preset enables and return a new Raster.
        Restoration needs the diff map, the aligned composite and τ; it is
        skipped when they are not given (grid path).
        """
        pixels = raster.pixels.copy()

        thin = self.remove_thin_components(pixels, preset)

        distant = 0
        if preset.proximity_radius is not None:
            distant = self.remove_distant_components(pixels, preset.proximity_radius)

        restored = 0
        if preset.restore and diff_map is not None and composite is not None and tolerance is not None:
            restored = self.restore_underestimated(pixels, diff_map, composite, tolerance, preset)

        logger.debug(
            f"Component filter [{preset.name}]: {thin} thin, {distant} distant removed, "
            f"{restored} pixels restored"
        )
        return Raster(pixels=pixels, path=raster.path)
