class ArtworkExtractorError(Exception):
    """Base class for every error raised by this package."""


class DecodeError(ArtworkExtractorError):
    """Bytes are not a supported image, or the image has zero width/height."""


class DimensionMismatch(ArtworkExtractorError):
    """
    Composite and base differ in size.
    Recoverable: the composite is resampled to the base size.
    """

    def __init__(self, base_size, composite_size):
        self.base_size = base_size
        self.composite_size = composite_size
        super().__init__(
            f"composite {composite_size[0]}x{composite_size[1]} "
            f"differs from base {base_size[0]}x{base_size[1]}"
        )


class ExtractionFailure(ArtworkExtractorError):
    """Unexpected fault inside matting, grid detection, filtering or refinement."""


class ImageFetchError(ArtworkExtractorError):
    """A remote image could not be retrieved."""
