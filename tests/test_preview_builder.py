import pytest

from artwork_extractor.errors import ImageFetchError
from artwork_extractor.models.product import ProductMockup
from artwork_extractor.pipeline.preview_builder import PreviewBuilder, load_products
from artwork_extractor.services.raster_service import RasterService

raster_service = RasterService()

PRODUCT_ENV = ("TOTE", "MUG", "TEE_WHITE", "TEE_BLACK")


class InMemoryRemote:
    def __init__(self, images):
        self.images = images

    def fetch(self, url):
        if url not in self.images:
            raise ImageFetchError(url)
        return self.images[url]


@pytest.fixture
def clean_env(monkeypatch):
    for prefix in PRODUCT_ENV:
        for suffix in ("MOCKUP_URL", "BASE_MOCKUP_URL", "OVERLAY_URL", "SCALE", "OFFSET_X", "OFFSET_Y"):
            monkeypatch.delenv(f"{prefix}_{suffix}", raising=False)
    return monkeypatch


def test_products_default_to_diff_path_against_their_mockup(clean_env):
    products = load_products()

    assert sorted(products) == ["mug", "tee-black", "tee-white", "tote"]
    for product in products.values():
        assert product.base_mockup_url == product.mockup_url
    assert products["tee-white"].overlay_url is not None
    assert products["tote"].cache_prefix == "TOTE_"
    assert products["tee-black"].cache_prefix == "TEE_BLACK_"


def test_empty_base_url_selects_checkerboard_path(clean_env):
    clean_env.setenv("MUG_BASE_MOCKUP_URL", "")
    clean_env.setenv("TOTE_MOCKUP_URL", "https://cdn.example/tote.jpg")
    clean_env.setenv("TOTE_SCALE", "0.5")

    products = load_products()

    assert products["mug"].base_mockup_url is None
    assert products["tote"].base_mockup_url == "https://cdn.example/tote.jpg"
    assert products["tote"].scale == 0.5


def test_product_without_base_runs_grid_extraction(red_on_checker):
    remote = InMemoryRemote({"mem://art": raster_service.encode(red_on_checker)})
    product = ProductMockup(key="mug", mockup_url="mem://mockup", scale=0.5, offset_x=0, offset_y=0)

    artwork = PreviewBuilder(remote_repository=remote).extract_artwork(product, "mem://art")

    assert artwork.width < red_on_checker.width


def test_undecodable_base_keeps_composite_opaque(red_on_black):
    _, composite = red_on_black
    remote = InMemoryRemote({"mem://art": raster_service.encode(composite), "mem://base": b"broken"})
    product = ProductMockup(key="tote", mockup_url="mem://mockup", base_mockup_url="mem://base",
                            scale=0.5, offset_x=0, offset_y=0)

    artwork = PreviewBuilder(remote_repository=remote).extract_artwork(product, "mem://art")

    assert artwork.size == (20, 20)
    assert (artwork.alpha == 255).all()
