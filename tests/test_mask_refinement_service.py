import numpy as np
import pytest

from artwork_extractor.models.grid_mask import GridMask, NO_OVERRIDE
from artwork_extractor.models.raster import Raster
from artwork_extractor.services.mask_refinement_service import MaskRefinementService


@pytest.fixture
def service():
    return MaskRefinementService()


@pytest.fixture
def red_island(solid_pixels):
    """11×11 white composite, 3×3 red block kept at the centre, rest removal-marked."""
    pixels = solid_pixels(11, 11, color=(255, 255, 255))
    pixels[4:7, 4:7, :3] = (255, 0, 0)
    mask = GridMask.empty_like(pixels[:, :, 3])
    mask.removal[:] = True
    mask.removal[4:7, 4:7] = False
    return mask, Raster(pixels=pixels)


def test_apply_prefers_override():
    alpha = np.full((1, 3), 200, dtype=np.uint8)
    mask = GridMask.empty_like(alpha)
    mask.removal[0, 1:] = True
    mask.overrides[0, 2] = 77

    assert mask.apply(alpha).tolist() == [[200, 0, 77]]


def test_lone_removed_grid_pixel_is_kept(service):
    removal = np.zeros((5, 5), dtype=bool)
    removal[2, 2] = True
    grid_colored = np.ones((5, 5), dtype=bool)

    assert not service.protect_edges(removal, grid_colored).any()


def test_refine_smooths_and_feathers_the_edge(service, red_island):
    mask, composite = red_island

    refined = service.refine(mask, composite)

    assert refined.removal[5, 3]
    assert refined.overrides[5, 3] == 143   # 0.7·3/8 + 0.3·3/3
    assert refined.overrides[4, 3] == 121   # 0.7·2/8 + 0.3·2/2
    assert refined.overrides[3, 3] == 99    # 0.7·1/8 + 0.3·1/1
    assert refined.overrides[5, 2] == 64    # half of mean(121, 143, 121)
    assert refined.overrides[5, 0] == NO_OVERRIDE
    assert not refined.removal[4:7, 4:7].any()


def test_refine_does_not_touch_input_mask(service, red_island):
    mask, composite = red_island

    service.refine(mask, composite)

    assert (mask.overrides == NO_OVERRIDE).all()


def test_smooth_keeps_pixels_mostly_surrounded_by_artwork(service, solid_pixels):
    pixels = solid_pixels(5, 5, color=(255, 0, 0))
    pixels[2, 2, :3] = (255, 255, 255)
    removal = np.zeros((5, 5), dtype=bool)
    removal[2, 2] = True
    overrides = np.full((5, 5), NO_OVERRIDE, dtype=np.int16)
    grid_colored = np.zeros((5, 5), dtype=bool)
    grid_colored[2, 2] = True

    removal = service.smooth(removal, np.zeros((5, 5), dtype=bool), grid_colored, overrides)

    assert not removal.any()
    assert (overrides == NO_OVERRIDE).all()
