from __future__ import annotations
from dataclasses import dataclass
import numpy as np

NO_OVERRIDE = -1


@dataclass
class GridMask:
    """
    Result of checkerboard detection, consumed by the mask refiner.

    removal   : (H, W) bool, True = background to remove
    protected : (H, W) bool, True = uniform content that must never be removed
    overrides : (H, W) int16, partial alpha in [0, 255] or NO_OVERRIDE
    """
    removal: np.ndarray
    protected: np.ndarray
    overrides: np.ndarray

    @classmethod
    def empty_like(cls, alpha: np.ndarray) -> "GridMask":
        return cls(
            removal=np.zeros(alpha.shape, dtype=bool),
            protected=np.zeros(alpha.shape, dtype=bool),
            overrides=np.full(alpha.shape, NO_OVERRIDE, dtype=np.int16),
        )

    @property
    def removed_fraction(self) -> float:
        return float(self.removal.mean())

    def apply(self, alpha: np.ndarray) -> np.ndarray:
        """alpha = override if present else (0 if removal-marked else original alpha)."""
        out = np.where(self.removal, 0, alpha).astype(np.uint8)
        has_override = self.overrides >= 0
        out[has_override] = self.overrides[has_override].astype(np.uint8)
        return out
