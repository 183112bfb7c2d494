import numpy as np
import pytest

from artwork_extractor.models.extraction_config import GridConfig
from artwork_extractor.models.raster import Raster
from artwork_extractor.services.extraction_service import ExtractionService
from artwork_extractor.services.grid_pattern_service import (
    GRAY, NONE, WHITE, GridPatternService, classify_colors,
)


@pytest.fixture
def service():
    return GridPatternService()


def test_classify_colors():
    rgb = np.array([[[255, 255, 255], [204, 204, 204], [250, 250, 250], [255, 0, 0]]], dtype=np.uint8)

    classes = classify_colors(rgb, GridConfig(), 18)

    assert classes.tolist() == [[WHITE, GRAY, WHITE, NONE]]


def test_plain_checkerboard_is_fully_removed(service, checker_pixels):
    mask = service.detect(Raster(pixels=checker_pixels(40, 40)))

    assert mask.removed_fraction >= 0.95
    assert not mask.protected.any()


def test_block_geometry_matches_lattice(service, checker_pixels):
    classes = classify_colors(checker_pixels(40, 40)[:, :, :3], service.config, service.config.base_tolerance)
    protected = np.zeros(classes.shape, dtype=bool)

    grid, geometry = service.detect_blocks(classes, protected)

    assert grid.all()
    assert geometry.cell == 4
    assert (geometry.origin_x, geometry.origin_y) == (0, 0)
    np.testing.assert_array_equal(geometry.expected_classes(classes.shape), classes)


def test_large_uniform_region_is_protected(service, checker_pixels):
    pixels = checker_pixels(60, 60)
    pixels[16:40, 16:40, :3] = 255

    mask = service.detect(Raster(pixels=pixels))

    assert mask.protected[16:40, 16:40].all()
    assert not mask.removal[16:40, 16:40].any()
    assert mask.removal[:8, :].mean() > 0.9


def test_solid_field_without_alternation_is_not_grid():
    # protection disabled so only the alternation check can reject the field
    config = GridConfig(protected_area=10 ** 6, protected_elongated_area=10 ** 6)
    pixels = np.full((40, 40, 4), 255, dtype=np.uint8)

    mask = GridPatternService(config).detect(Raster(pixels=pixels))

    assert not mask.removal.any()


def test_expansion_absorbs_antialiased_block_border(service, checker_pixels):
    pixels = checker_pixels(40, 40)
    # one column of soft pixels between blocks, outside the base tolerance
    pixels[:, 20, :3] = 240
    classes = classify_colors(pixels[:, :, :3], service.config, service.config.base_tolerance)
    ext_classes = classify_colors(pixels[:, :, :3], service.config, service.config.extended_tolerance)
    protected = np.zeros(classes.shape, dtype=bool)
    grid, geometry = service.detect_blocks(classes, protected)
    assert not grid[:, 20].any()

    expanded = service.expand(grid, ext_classes, protected, geometry)

    assert expanded[:, 20].all()


def test_grid_path_on_plain_checkerboard_is_fully_transparent(checker_pixels):
    out = ExtractionService().extract_with_grid(Raster(pixels=checker_pixels(40, 40)))

    assert out.size == (40, 40)
    assert out.alpha.max() == 0


def test_grid_path_keeps_design_and_crops_close(red_on_checker):
    out = ExtractionService().extract_with_grid(red_on_checker)

    red = np.all(out.pixels == (255, 0, 0, 255), axis=2)
    assert int(red.sum()) == 400
    assert 20 <= out.width <= 32
    assert 20 <= out.height <= 32


def test_overlay_flags_pale_patch_inside_grid(service):
    rgb = np.full((60, 60, 3), 255, dtype=np.uint8)
    rgb[10:20, 10:20] = (230, 230, 235)   # pale, outside both grid levels
    rgb[40:50, 40:50] = (200, 40, 40)     # saturated artwork
    ext_classes = classify_colors(rgb, service.config, service.config.extended_tolerance)
    grid = ext_classes != NONE
    protected = np.zeros(grid.shape, dtype=bool)
    assert ext_classes[15, 15] == NONE

    out = service.detect_overlay(grid, rgb, ext_classes, protected)

    assert out[10:20, 10:20].all()
    assert not out[40:50, 40:50].any()


def test_overlay_needs_grid_in_lattice_neighbourhood(service):
    rgb = np.full((60, 60, 3), (230, 230, 235), dtype=np.uint8)
    ext_classes = classify_colors(rgb, service.config, service.config.extended_tolerance)
    grid = np.zeros((60, 60), dtype=bool)
    grid[0, 0] = True

    out = service.detect_overlay(grid, rgb, ext_classes, np.zeros_like(grid))

    assert out.sum() == 1


def test_refine_demotes_grid_next_to_plain_colour(service):
    ext_classes = np.full((30, 30), WHITE, dtype=np.uint8)
    ext_classes[:, 15:] = NONE
    grid = ext_classes != NONE

    out = service.refine(grid, ext_classes)

    assert not out[15, 13]          # 3/9 of its 9×9 window is plain colour
    assert out[15, 12]              # 2/9
    assert out[15, :12].all()


def test_refine_drops_sparse_grid(service):
    ext_classes = np.full((30, 30), WHITE, dtype=np.uint8)
    grid = np.zeros((30, 30), dtype=bool)
    grid[5, 5] = True               # 1/9 of its 3×3 window
    grid[20:23, 20:23] = True       # corners see 4/9

    out = service.refine(grid, ext_classes)

    assert not out[5, 5]
    assert out[20:23, 20:23].all()


def test_seams_release_grid_one_pixel_from_artwork(service):
    grid = np.ones((20, 20), dtype=bool)
    grid[:, 10] = False
    protected = np.zeros_like(grid)

    out = service.release_seams(grid, protected)

    assert not out[:, 9].any()
    assert not out[:, 11].any()
    assert out[:, 8].all()
    assert out[:, 12].all()
    assert out[:, 0].all()


def test_seams_release_grid_next_to_protected_content(service):
    grid = np.ones((20, 20), dtype=bool)
    protected = np.zeros_like(grid)
    protected[:, 10] = True

    out = service.release_seams(grid, protected)

    assert not out[:, 11].any()
    assert out[:, 13].all()
