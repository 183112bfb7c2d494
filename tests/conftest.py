import numpy as np
import pytest

from artwork_extractor.models.raster import Raster


def _solid(h, w, color=(0, 0, 0), alpha=255):
    pixels = np.zeros((h, w, 4), dtype=np.uint8)
    pixels[:, :, :3] = color
    pixels[:, :, 3] = alpha
    return pixels


def _checker(h, w, block=4, white=255, gray=204):
    ys, xs = np.mgrid[0:h, 0:w]
    is_white = ((ys // block) + (xs // block)) % 2 == 0
    pixels = np.zeros((h, w, 4), dtype=np.uint8)
    pixels[:, :, :3] = np.where(is_white, white, gray)[:, :, None]
    pixels[:, :, 3] = 255
    return pixels


@pytest.fixture
def solid_pixels():
    """Factory: (H, W, 4) uint8 filled with one colour."""
    return _solid


@pytest.fixture
def checker_pixels():
    """Factory: white/gray checkerboard, white where block parity is even."""
    return _checker


@pytest.fixture
def red_on_black():
    """20×20 black base, composite with a 5×5 red block at (5, 5)."""
    base = _solid(20, 20)
    composite = base.copy()
    composite[5:10, 5:10, :3] = (255, 0, 0)
    return Raster(pixels=base), Raster(pixels=composite)


@pytest.fixture
def red_on_checker():
    """80×80 checkerboard with a 20×20 opaque red square at (30, 30)."""
    pixels = _checker(80, 80)
    pixels[30:50, 30:50, :3] = (255, 0, 0)
    return Raster(pixels=pixels)
