# pipeline/preview_builder.py
import logging
import os
from typing import Dict, Optional

from dotenv import load_dotenv

from ..errors import DecodeError
from ..models.product import ProductMockup
from ..models.raster import Raster
from ..repositories.remote_image_repository import RemoteImageRepository
from ..services.compositing_service import CompositingService
from ..services.extraction_service import ExtractionService
from ..services.raster_service import RasterService

# ------------------------------------------------------------------
# env‑vars
load_dotenv()

_CDN = "https://cdn.shopify.com/s/files/1/0958/7346/6743/files"

logger = logging.getLogger(__name__)


def _product(key: str, mockup_url: str, scale: float, offset_x: float, offset_y: float,
             overlay_url: Optional[str] = None) -> ProductMockup:
    env = key.upper().replace("-", "_")
    mockup_url = os.getenv(f"{env}_MOCKUP_URL", mockup_url)
    return ProductMockup(
        key=key,
        mockup_url=mockup_url,
        # base defaults to the mockup itself (diff path); set it empty for the checkerboard path
        base_mockup_url=os.getenv(f"{env}_BASE_MOCKUP_URL", mockup_url) or None,
        scale=float(os.getenv(f"{env}_SCALE", str(scale))),
        offset_x=float(os.getenv(f"{env}_OFFSET_X", str(offset_x))),
        offset_y=float(os.getenv(f"{env}_OFFSET_Y", str(offset_y))),
        overlay_url=os.getenv(f"{env}_OVERLAY_URL", overlay_url or "") or None,
    )


def load_products() -> Dict[str, ProductMockup]:
    """Product catalogue; every URL and placement can be overridden via env."""
    products = [
        _product("tote", f"{_CDN}/IMG_1902.jpg?v=1765218360", 0.42, 0.26, 0.46),
        _product("mug", f"{_CDN}/IMG_1901.jpg?v=1765218358", 0.325, 0.35, 0.39),
        _product("tee-white", f"{_CDN}/IMG_1926.jpg?v=1765367168", 0.36, 0.31, 0.26,
                 overlay_url=f"{_CDN}/ber_wei_e_Shirt.png?v=1765367191"),
        _product("tee-black", f"{_CDN}/IMG_1924.jpg?v=1765367167", 0.36, 0.31, 0.26,
                 overlay_url=f"{_CDN}/ber_schwarze_Shirt.png?v=1765367224"),
    ]
    return {p.key: p for p in products}


class PreviewBuilder:
    """
    Artwork URL → product preview PNG.

        1. fetch the composite (mockup with the customer's artwork)
        2. fetch the blank base when the product has one
        3. extract the artwork (diff or grid path, opaque fallback)
        4. place it on the product mockup, overlay on top
    """

    def __init__(self,
                 remote_repository: Optional[RemoteImageRepository] = None,
                 extraction_service: Optional[ExtractionService] = None,
                 compositing_service: Optional[CompositingService] = None,
                 raster_service: Optional[RasterService] = None):
        self.remote_repository = remote_repository or RemoteImageRepository()
        self.extraction_service = extraction_service or ExtractionService()
        self.compositing_service = compositing_service or CompositingService()
        self.raster_service = raster_service or RasterService()

    def _fetch_raster(self, url: str) -> Raster:
        return self.raster_service.decode(self.remote_repository.fetch(url))

    def extract_artwork(self, product: ProductMockup, artwork_url: str) -> Raster:
        composite = self._fetch_raster(artwork_url)

        if product.base_mockup_url is None:
            return self.extraction_service.extract(composite)

        base_bytes = self.remote_repository.fetch(product.base_mockup_url)
        try:
            base = self.raster_service.decode(base_bytes)
        except DecodeError as err:
            logger.warning(f"Base mockup for {product.key} unusable, using original with alpha: {err}")
            return self.raster_service.with_opaque_alpha(composite)
        return self.extraction_service.extract(composite, base)

    def build(self, product: ProductMockup, artwork_url: str) -> bytes:
        artwork = self.extract_artwork(product, artwork_url)

        mockup = self._fetch_raster(product.mockup_url)
        overlay = self._fetch_raster(product.overlay_url) if product.overlay_url else None

        preview = self.compositing_service.place(
            artwork,
            mockup,
            scale=product.scale,
            offset_x=product.offset_x,
            offset_y=product.offset_y,
            overlay=overlay,
        )
        logger.info(f"Built {product.key} preview {preview.width}x{preview.height} for {artwork_url}")
        return self.raster_service.encode(preview)
