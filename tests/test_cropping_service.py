import numpy as np

from artwork_extractor.models.raster import Raster
from artwork_extractor.services.cropping_service import CroppingService


def test_fully_transparent_raster_is_returned_unchanged():
    raster = Raster(pixels=np.zeros((12, 7, 4), dtype=np.uint8))

    out = CroppingService().auto_crop(raster)

    assert out.size == (7, 12)
    assert out.alpha.max() == 0


def test_single_visible_pixel_crops_to_one_by_one():
    pixels = np.zeros((10, 10, 4), dtype=np.uint8)
    pixels[7, 3] = (1, 2, 3, 40)

    out = CroppingService().auto_crop(Raster(pixels=pixels))

    assert out.size == (1, 1)
    assert out.pixels[0, 0].tolist() == [1, 2, 3, 40]


def test_content_bounds_are_exclusive():
    pixels = np.zeros((20, 30, 4), dtype=np.uint8)
    pixels[5:9, 10:25, 3] = 255

    assert CroppingService.content_bounds(Raster(pixels=pixels)) == (10, 5, 25, 9)
