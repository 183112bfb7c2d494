from io import BytesIO

import pytest

from api_server import create_app
from artwork_extractor.errors import ImageFetchError
from artwork_extractor.models.product import ProductMockup
from artwork_extractor.pipeline.preview_builder import PreviewBuilder
from artwork_extractor.repositories.preview_cache_repository import PreviewCacheRepository
from artwork_extractor.services.raster_service import RasterService

raster_service = RasterService()


class FakeRemoteRepository:
    """In-memory stand-in for RemoteImageRepository."""

    def __init__(self, images):
        self.images = images
        self.fetched = []

    def fetch(self, url):
        self.fetched.append(url)
        if url not in self.images:
            raise ImageFetchError(f"Image could not be loaded: {url}")
        return self.images[url]


@pytest.fixture
def remote(red_on_black, solid_pixels):
    base, composite = red_on_black
    mockup = raster_service.create_raster(solid_pixels(40, 40, color=(0, 0, 255)))
    return FakeRemoteRepository({
        "mem://base": raster_service.encode(base),
        "mem://mockup": raster_service.encode(mockup),
        "https://shop.example/artwork.png": raster_service.encode(composite),
        "https://shop.example/broken.png": b"not an image",
    })


@pytest.fixture
def client(remote):
    product = ProductMockup(key="tote", mockup_url="mem://mockup", base_mockup_url="mem://base",
                            scale=0.5, offset_x=0.25, offset_y=0.25)
    app = create_app(
        preview_builder=PreviewBuilder(remote_repository=remote),
        cache=PreviewCacheRepository(capacity=8, ttl_s=0),
        products={"tote": product},
    )
    app.config["TESTING"] = True
    return app.test_client()


def test_preview_places_extracted_artwork(client):
    response = client.get("/tote-preview?url=https://shop.example/artwork.png")

    assert response.status_code == 200
    assert response.mimetype == "image/png"
    preview = raster_service.decode(response.data)
    assert preview.size == (40, 40)
    assert preview.pixels[15, 15].tolist() == [255, 0, 0, 255]
    assert preview.pixels[5, 5].tolist() == [0, 0, 255, 255]


def test_preview_is_served_from_cache(client, remote):
    first = client.get("/tote-preview?url=https://shop.example/artwork.png")
    fetched = len(remote.fetched)

    second = client.get("/tote-preview?url=https://shop.example/artwork.png")

    assert second.status_code == 200
    assert second.data == first.data
    assert len(remote.fetched) == fetched


def test_preview_without_url(client):
    response = client.get("/tote-preview")

    assert response.status_code == 400
    assert response.get_json()["success"] is False


def test_unknown_product(client):
    assert client.get("/hoodie-preview?url=https://shop.example/artwork.png").status_code == 404


def test_unreachable_artwork(client):
    response = client.get("/tote-preview?url=https://shop.example/missing.png")

    assert response.status_code == 502


def test_undecodable_artwork(client):
    response = client.get("/tote-preview?url=https://shop.example/broken.png")

    assert response.status_code == 400


def test_extract_endpoint_with_base(client, red_on_black):
    base, composite = red_on_black
    response = client.post(
        "/api/extract",
        data={
            "composite": (BytesIO(raster_service.encode(composite)), "composite.png"),
            "base": (BytesIO(raster_service.encode(base)), "base.png"),
            "tolerance": "30",
        },
        content_type="multipart/form-data",
    )

    assert response.status_code == 200
    out = raster_service.decode(response.data)
    assert out.size == (5, 5)
    assert (out.alpha == 255).all()


def test_extract_endpoint_rejects_bad_input(client, red_on_black):
    _, composite = red_on_black
    png = raster_service.encode(composite)

    missing = client.post("/api/extract", data={}, content_type="multipart/form-data")
    bad_tolerance = client.post(
        "/api/extract",
        data={"composite": (BytesIO(png), "c.png"), "tolerance": "abc"},
        content_type="multipart/form-data",
    )
    out_of_range = client.post(
        "/api/extract",
        data={"composite": (BytesIO(png), "c.png"), "base": (BytesIO(png), "b.png"), "tolerance": "300"},
        content_type="multipart/form-data",
    )
    garbage = client.post(
        "/api/extract",
        data={"composite": (BytesIO(b"garbage"), "c.png")},
        content_type="multipart/form-data",
    )

    assert missing.status_code == 400
    assert bad_tolerance.status_code == 400
    assert out_of_range.status_code == 400
    assert garbage.status_code == 400


def test_health(client):
    body = client.get("/api/health").get_json()

    assert body["status"] == "healthy"
    assert body["products"] == ["tote"]
    assert body["cached_previews"] == 0
