from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class ProductMockup:
    """
    Where and how large the extracted artwork lands on one product photo.
    Offsets and scale are fractions of the mockup width/height.
    """
    key: str                               # e.g. "tee-white"; also the route prefix
    mockup_url: str
    scale: float
    offset_x: float
    offset_y: float
    base_mockup_url: str | None = None     # blank mockup for diff extraction
    overlay_url: str | None = None         # drawn over the artwork (folds, shadows)

    @property
    def cache_prefix(self) -> str:
        return self.key.upper().replace("-", "_") + "_"
