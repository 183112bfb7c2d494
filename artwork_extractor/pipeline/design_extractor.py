# pipeline/design_extractor.py
import logging
from typing import Optional

from ..errors import DecodeError
from ..models.raster import Raster
from ..services.extraction_service import ExtractionService
from ..services.raster_service import RasterService

logger = logging.getLogger(__name__)


def extract_design(
    composite: Raster,
    base: Optional[Raster] = None,
    *,
    tolerance: Optional[float] = None,
    extraction_service: Optional[ExtractionService] = None,
) -> Raster:
    """
    Isolated artwork for one composite.  Diff path with a base, grid path
    without; falls back to the opaque composite when extraction fails.
    """
    extraction_service = extraction_service or ExtractionService()
    return extraction_service.extract(composite, base, tolerance)


def extract_design_bytes(
    composite_bytes: bytes,
    base_bytes: Optional[bytes] = None,
    *,
    tolerance: Optional[float] = None,
    extraction_service: Optional[ExtractionService] = None,
    raster_service: Optional[RasterService] = None,
) -> bytes:
    """
    Bytes in, PNG bytes out.

    • An undecodable composite raises DecodeError (nothing to fall back to).
    • An undecodable base degrades to the opaque composite.
    """
    extraction_service = extraction_service or ExtractionService()
    raster_service = raster_service or RasterService()

    composite = raster_service.decode(composite_bytes)

    base = None
    if base_bytes is not None:
        try:
            base = raster_service.decode(base_bytes)
        except DecodeError as err:
            logger.warning(f"Base image unusable, using original with alpha: {err}")
            return raster_service.encode(raster_service.with_opaque_alpha(composite))

    extracted = extract_design(composite, base, tolerance=tolerance, extraction_service=extraction_service)
    return raster_service.encode(extracted)
