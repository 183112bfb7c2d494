from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class MattingConfig:
    """
    Value-object for the diff (base vs. composite) path.
    """
    tolerance: float = 30.0          # RGB distance treated as "unchanged"
    alpha_epsilon: float = 0.01      # below this alpha the colour is not unmixed
    isolated_alpha_limit: int = 128  # faint pixels with <= 1 neighbour are noise


@dataclass(frozen=True)
class GridConfig:
    """
    Every threshold of the checkerboard detector and the mask refiner.
    Passed explicitly through each phase so presets stay testable.
    """
    # ── Colour classes ───────────────────────────────────────────────
    white_level: int = 255
    gray_level: int = 204
    base_tolerance: float = 18.0
    extended_tolerance: float = 35.0

    # ── Protected (real uniform content) runs ────────────────────────
    protected_area: int = 500
    protected_elongated_area: int = 200
    protected_aspect: float = 2.0

    # ── Block + alternation ──────────────────────────────────────────
    max_block: int = 6
    block_uniformity: float = 0.85
    min_opposite_neighbors: int = 2

    # ── Expansion / overlay ──────────────────────────────────────────
    expansion_passes: int = 5
    polarity_min_neighbors: int = 2
    overlay_step: int = 12
    overlay_radius: int = 36
    overlay_fraction: float = 0.30
    overlay_min_brightness: int = 180
    overlay_max_saturation: float = 0.12

    # ── Refinement ───────────────────────────────────────────────────
    refine_outer_radius: int = 4      # ~8 px window (9x9)
    refine_non_grid_fraction: float = 0.30
    refine_inner_radius: int = 1      # 3 px window (3x3)
    refine_grid_fraction: float = 0.35

    # ── Seams near edges ─────────────────────────────────────────────
    seam_search_radius: int = 3
    seam_distance_cap: int = 6
    seam_distance: int = 1

    # ── Mask refiner ─────────────────────────────────────────────────
    edge_min_grid_neighbors: int = 3
    smooth_neighbor_weight: float = 0.7
    smooth_color_weight: float = 0.3
    smooth_low: float = 0.15
    smooth_high: float = 0.85
    feather_weight: float = 0.5
    feather_min_alpha: int = 10


@dataclass(frozen=True)
class FilterPreset:
    """
    Connected-component filter thresholds.
    A component is erased when size < max(min_size, main_size * size_fraction)
    and size / max(bbox_w, bbox_h) < thickness.
    """
    name: str
    size_fraction: float
    thickness: float
    min_size: int = 240
    proximity_radius: Optional[float] = 90.0  # None disables the proximity pass
    restore: bool = True
    restore_alpha_below: int = 230
    dilation_radius: int = 0


PERMISSIVE = FilterPreset(name="permissive", size_fraction=0.015, thickness=4.0)
STRICT = FilterPreset(name="strict", size_fraction=0.40, thickness=6.0)
GRID = FilterPreset(name="grid", size_fraction=0.40, thickness=6.0,
                    proximity_radius=None, restore=False)

PRESETS: Dict[str, FilterPreset] = {p.name: p for p in (PERMISSIVE, STRICT, GRID)}


def get_preset(name: str) -> FilterPreset:
    try:
        return PRESETS[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown filter preset '{name}', expected one of {sorted(PRESETS)}") from None
