from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
import logging

import cv2
import numpy as np

from ..models.extraction_config import GridConfig
from ..models.grid_mask import GridMask
from ..models.raster import Raster
from .raster_service import RasterService, NEIGHBORS_4

logger = logging.getLogger(__name__)

NONE, WHITE, GRAY = 0, 1, 2


def classify_colors(rgb: np.ndarray, config: GridConfig, tolerance: float) -> np.ndarray:
    """
    (H, W) uint8 colour class: WHITE / GRAY when within `tolerance` (RGB
    distance) of the checkerboard levels, NONE otherwise.
    """
    white = (config.white_level,) * 3
    gray = (config.gray_level,) * 3
    classes = np.zeros(rgb.shape[:2], dtype=np.uint8)
    classes[RasterService.color_distance(rgb, gray) <= tolerance] = GRAY
    classes[RasterService.color_distance(rgb, white) <= tolerance] = WHITE
    return classes


@dataclass(frozen=True)
class CellGeometry:
    """Checkerboard lattice estimated from confirmed blocks."""
    cell: int
    origin_x: int
    origin_y: int
    white_parity: int

    def expected_classes(self, shape) -> np.ndarray:
        h, w = shape
        cy = (np.arange(h) - self.origin_y) // self.cell
        cx = (np.arange(w) - self.origin_x) // self.cell
        parity = (cy[:, None] + cx[None, :]) % 2
        return np.where(parity == self.white_parity, WHITE, GRAY).astype(np.uint8)


class GridPatternService:
    """
    Finds the checkerboard placeholder ("no artwork here") in a composite
    that has no blank base.

    Phases, in order:
      1. protected runs of uniform colour (real content, never removed)
      2. block detection with checkerboard alternation check
      3. expansion into anti-aliased block borders
      4. overlay detection (grid showing through semi-opaque artwork)
      5. window-based refinement
      6. seam release next to artwork edges
    """

    def __init__(self, config: GridConfig = GridConfig()):
        self.config = config
        self.raster_service = RasterService()

    # ─── 1. Protected regions ─────────────────────────────────────────
    def detect_protected(self, classes: np.ndarray) -> np.ndarray:
        """
        Runs of one colour class that are large, or elongated and
        medium-sized.  Pixels touching only at a corner do not join a run,
        which leaves the two 4-connected colour lattices of the checkerboard
        in separate blocks; that makes the runs 4-connected components.
        """
        cfg = self.config
        protected = np.zeros(classes.shape, dtype=bool)
        for cls in (WHITE, GRAY):
            binm = (classes == cls).astype(np.uint8)
            num, labels, stats, _ = cv2.connectedComponentsWithStats(binm, connectivity=4)
            if num <= 1:
                continue
            area = stats[:, cv2.CC_STAT_AREA]
            bw = stats[:, cv2.CC_STAT_WIDTH]
            bh = stats[:, cv2.CC_STAT_HEIGHT]
            aspect = np.maximum(bw, bh) / np.maximum(1, np.minimum(bw, bh))
            keep = (area >= cfg.protected_area) | (
                (aspect > cfg.protected_aspect) & (area >= cfg.protected_elongated_area)
            )
            keep[0] = False
            protected |= keep[labels]
        return protected

    # ─── 2. Blocks ────────────────────────────────────────────────────
    def _run_lengths(self, classes: np.ndarray, avail: np.ndarray, dy: int, dx: int) -> np.ndarray:
        """Same-class run length starting at each pixel along (dy, dx), capped at max_block."""
        runs = avail.astype(np.int32)
        alive = avail.copy()
        for k in range(1, self.config.max_block):
            alive &= self.raster_service.shifted(classes, k * dy, k * dx, NONE) == classes
            alive &= self.raster_service.shifted(avail, k * dy, k * dx, False)
            runs += alive
        return runs

    def detect_blocks(self, classes: np.ndarray, protected: np.ndarray):
        """
        Grow a block from every block-start pixel and keep it when it is
        uniform and alternates with its cardinal neighbours.
        Returns (grid mask, CellGeometry or None).
        """
        cfg = self.config
        h, w = classes.shape
        avail = (classes != NONE) & ~protected

        run_x = self._run_lengths(classes, avail, 0, 1)
        run_y = self._run_lengths(classes, avail, 1, 0)

        left_differs = self.raster_service.shifted(classes, 0, -1, NONE) != classes
        up_differs = self.raster_service.shifted(classes, -1, 0, NONE) != classes
        starts = avail & (left_differs | up_differs)

        ys, xs = np.nonzero(starts)
        grid = np.zeros((h, w), dtype=bool)
        if ys.size == 0:
            return grid, None

        cls = classes[ys, xs]
        bw = run_x[ys, xs]
        bh = run_y[ys, xs]

        # uniformity of the bw×bh rectangle
        same = np.zeros(ys.size, dtype=np.int64)
        for c in (WHITE, GRAY):
            integral = cv2.integral((classes == c).astype(np.uint8)).astype(np.int64)
            sel = cls == c
            y0, x0 = ys[sel], xs[sel]
            y1, x1 = y0 + bh[sel], x0 + bw[sel]
            same[sel] = integral[y1, x1] - integral[y0, x1] - integral[y1, x0] + integral[y0, x0]
        uniform = same >= cfg.block_uniformity * (bw * bh)

        # alternation: cardinal samples just outside the rectangle
        opposite = (3 - cls).astype(np.uint8)
        mid_y = ys + bh // 2
        mid_x = xs + bw // 2
        samples = (
            (mid_y, xs - 1),
            (mid_y, xs + bw),
            (ys - 1, mid_x),
            (ys + bh, mid_x),
        )
        hits = np.zeros(ys.size, dtype=np.int32)
        for sy, sx in samples:
            inside = (sy >= 0) & (sy < h) & (sx >= 0) & (sx < w)
            value = np.full(ys.size, NONE, dtype=np.uint8)
            value[inside] = classes[sy[inside], sx[inside]]
            hits += inside & (value == opposite)
        confirmed = uniform & (hits >= cfg.min_opposite_neighbors)

        for dy in range(cfg.max_block):
            for dx in range(cfg.max_block):
                sel = confirmed & (dy < bh) & (dx < bw)
                yy, xx = ys[sel] + dy, xs[sel] + dx
                ok = (classes[yy, xx] == cls[sel]) & ~protected[yy, xx]
                grid[yy[ok], xx[ok]] = True

        corner = confirmed & left_differs[ys, xs] & up_differs[ys, xs]
        geometry = self._estimate_geometry(ys[corner], xs[corner], cls[corner], bw[corner], bh[corner])
        return grid, geometry

    @staticmethod
    def _estimate_geometry(ys, xs, cls, bw, bh) -> Optional[CellGeometry]:
        if ys.size == 0:
            return None
        cell = int(np.bincount(np.maximum(bw, bh)).argmax())
        full = (bw == cell) & (bh == cell)
        if cell < 1 or not full.any():
            return None
        origin_x = int(np.bincount(xs[full] % cell).argmax())
        origin_y = int(np.bincount(ys[full] % cell).argmax())
        parity = ((xs[full] - origin_x) // cell + (ys[full] - origin_y) // cell) % 2
        white = parity[cls[full] == WHITE]
        if white.size == 0:
            white = 1 - parity[cls[full] == GRAY]
        white_parity = int(np.round(white.mean()))
        return CellGeometry(cell=cell, origin_x=origin_x, origin_y=origin_y, white_parity=white_parity)

    # ─── 3. Expansion ─────────────────────────────────────────────────
    def expand(self, grid: np.ndarray, ext_classes: np.ndarray, protected: np.ndarray,
               geometry: Optional[CellGeometry]) -> np.ndarray:
        """
        Grow into adjacent extended-tolerance grid colours whose neighbour
        polarity or lattice parity agrees.  Stops after max passes or when
        nothing changes.
        """
        cfg = self.config
        grid = grid.copy()
        expected = geometry.expected_classes(grid.shape) if geometry else None
        colored = ext_classes != NONE

        for pass_no in range(cfg.expansion_passes):
            near = self.raster_service.neighbor_count(grid) > 0
            candidates = ~grid & ~protected & colored & near
            if not candidates.any():
                break

            white_nb = self.raster_service.neighbor_count(grid & (ext_classes == WHITE))
            gray_nb = self.raster_service.neighbor_count(grid & (ext_classes == GRAY))
            own = np.where(ext_classes == WHITE, white_nb, gray_nb)
            consistent = own >= cfg.polarity_min_neighbors
            if expected is not None:
                consistent |= ext_classes == expected

            added = candidates & consistent
            if not added.any():
                break
            grid |= added
            logger.debug(f"Grid expansion pass {pass_no + 1}: +{int(added.sum())} pixels")
        return grid

    # ─── 4. Overlay ───────────────────────────────────────────────────
    def detect_overlay(self, grid: np.ndarray, rgb: np.ndarray, ext_classes: np.ndarray,
                       protected: np.ndarray) -> np.ndarray:
        """
        Flag bright, low-saturation (or grid-coloured) pixels whose sparse
        lattice neighbourhood is mostly grid already.
        """
        cfg = self.config
        channels = rgb.astype(np.int32)
        cmax = channels.max(axis=2)
        cmin = channels.min(axis=2)
        saturation = (cmax - cmin) / np.maximum(cmax, 1)
        pale = (cmax >= cfg.overlay_min_brightness) & (saturation <= cfg.overlay_max_saturation)

        candidates = ~grid & ~protected & (pale | (ext_classes != NONE))
        if not candidates.any():
            return grid

        steps = cfg.overlay_radius // cfg.overlay_step
        hits = np.zeros(grid.shape, dtype=np.int32)
        seen = np.zeros(grid.shape, dtype=np.int32)
        ones = np.ones(grid.shape, dtype=bool)
        for i in range(-steps, steps + 1):
            for j in range(-steps, steps + 1):
                if i == 0 and j == 0:
                    continue
                dy, dx = i * cfg.overlay_step, j * cfg.overlay_step
                hits += self.raster_service.shifted(grid, dy, dx, False)
                seen += self.raster_service.shifted(ones, dy, dx, False)

        fraction = hits / np.maximum(seen, 1)
        overlay = candidates & (seen > 0) & (fraction >= cfg.overlay_fraction)
        logger.debug(f"Grid overlay: +{int(overlay.sum())} pixels")
        return grid | overlay

    # ─── 5. Refinement ────────────────────────────────────────────────
    def refine(self, grid: np.ndarray, ext_classes: np.ndarray) -> np.ndarray:
        cfg = self.config
        non_grid_colored = ext_classes == NONE
        outer = self.raster_service.window_fraction(non_grid_colored, cfg.refine_outer_radius)
        inner = self.raster_service.window_fraction(grid, cfg.refine_inner_radius)

        demoted = grid & (outer > cfg.refine_non_grid_fraction)
        return grid & ~demoted & (inner >= cfg.refine_grid_fraction)

    # ─── 6. Seams ─────────────────────────────────────────────────────
    def release_seams(self, grid: np.ndarray, protected: np.ndarray) -> np.ndarray:
        """
        Near artwork, un-mark grid pixels whose nearest non-grid/protected
        pixel along an axis is at most `seam_distance` away.
        """
        cfg = self.config
        other = ~grid | protected
        total, _ = self.raster_service.window_sum(other, cfg.seam_search_radius)
        near = grid & (total > 0)
        if not near.any():
            return grid

        nearest = np.full(grid.shape, cfg.seam_distance_cap + 1, dtype=np.int32)
        for dy, dx in NEIGHBORS_4:
            for k in range(1, cfg.seam_distance_cap + 1):
                hit = self.raster_service.shifted(other, k * dy, k * dx, False)
                nearest = np.where(hit & (nearest > k), k, nearest)

        released = near & (nearest <= cfg.seam_distance)
        return grid & ~released

    # ─── Public API ───────────────────────────────────────────────────
    def detect(self, composite: Raster) -> GridMask:
        cfg = self.config
        rgb = composite.rgb
        base_classes = classify_colors(rgb, cfg, cfg.base_tolerance)
        ext_classes = classify_colors(rgb, cfg, cfg.extended_tolerance)

        protected = self.detect_protected(base_classes)
        grid, geometry = self.detect_blocks(base_classes, protected)
        logger.debug(f"Grid blocks: {int(grid.sum())} pixels, geometry={geometry}")

        grid = self.expand(grid, ext_classes, protected, geometry)
        grid = self.detect_overlay(grid, rgb, ext_classes, protected)
        grid = self.refine(grid, ext_classes)
        grid = self.release_seams(grid, protected)

        mask = GridMask.empty_like(composite.alpha)
        mask.removal = grid & ~protected
        mask.protected = protected
        logger.info(
            f"Grid detection: {mask.removed_fraction:.1%} background, "
            f"{int(protected.sum())} protected pixels"
        )
        return mask
