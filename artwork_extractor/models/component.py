from dataclasses import dataclass
from typing import Tuple
import numpy as np


@dataclass
class Component:
    indices: np.ndarray                     # flat row-major pixel offsets, int64
    bbox: Tuple[int, int, int, int]         # (x0, y0, x1, y1), inclusive

    @property
    def size(self) -> int:
        return int(self.indices.size)

    @property
    def bbox_width(self) -> int:
        return self.bbox[2] - self.bbox[0] + 1

    @property
    def bbox_height(self) -> int:
        return self.bbox[3] - self.bbox[1] + 1

    @property
    def thickness(self) -> float:
        """Average thickness: pixel count over the longer bbox side."""
        return self.size / max(1, self.bbox_width, self.bbox_height)
