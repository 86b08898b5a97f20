"""Adaptive image compression to a byte budget.

An oversized image is decoded, downscaled so its longer side is at most
MAX_DIMENSION pixels, then re-encoded as JPEG at decreasing quality until
the result fits the budget:

    0.90 -> 0.75 -> 0.60 -> 0.45 -> 0.30

The first quality that fits wins. If even the last step is too large the
pipeline raises CompressionExhausted. The function has no state and never
modifies its input.
"""
import io
import logging
import re
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from memvault.errors import CompressionExhausted, ImageDecodeError

logger = logging.getLogger(__name__)

MAX_DIMENSION = 2000

# Qualities are kept in percent so the schedule has no float drift.
QUALITY_START = 90
QUALITY_STEP = 15
QUALITY_FLOOR = 25

OUTPUT_MIME_TYPE = "image/jpeg"
OUTPUT_EXTENSION = ".jpg"

_EXTENSION = re.compile(r"\.[^.]+$")


@dataclass(frozen=True)
class CompressedImage:
    payload: bytes
    mime_type: str
    name: str
    quality: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def size(self) -> int:
        return len(self.payload)


def quality_schedule() -> Iterator[int]:
    """Yield the JPEG qualities tried, in percent, highest first."""
    quality = QUALITY_START
    while quality > QUALITY_FLOOR:
        yield quality
        quality -= QUALITY_STEP


def target_dimensions(width: int, height: int, max_dimension: int = MAX_DIMENSION) -> Tuple[int, int]:
    """Scale (width, height) uniformly so the longer side fits *max_dimension*.

    Images already within the limit keep their size. Results are rounded to
    the nearest pixel and never drop below 1.
    """
    longer = max(width, height)
    if longer <= max_dimension:
        return width, height
    scale = max_dimension / longer
    return max(1, round(width * scale)), max(1, round(height * scale))


def derive_name(name: str) -> str:
    """Swap the file extension for the encoded format's (``a.png`` -> ``a.jpg``)."""
    return _EXTENSION.sub(OUTPUT_EXTENSION, name)


def encode_jpeg(image: Image.Image, quality: int) -> bytes:
    """Encode an RGB image as JPEG at *quality* percent."""
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


def _decode(payload: bytes) -> Image.Image:
    try:
        with Image.open(io.BytesIO(payload)) as source:
            source.load()
            # JPEG has no alpha or palette; animated sources keep frame 0
            return source.convert("RGB")
    except Image.DecompressionBombError as exc:
        raise ImageDecodeError(f"Image is too large to decode: {exc}") from exc
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageDecodeError(f"Could not decode image: {exc}") from exc


def compress_image(payload: bytes, mime_type: str, name: str, budget: int) -> CompressedImage:
    """Re-encode *payload* so it fits in *budget* bytes.

    Payloads already within budget are returned untouched.

    Args:
        payload: Encoded source image.
        mime_type: Declared media type of the source.
        name: Source file name.
        budget: Maximum size of the result in bytes.

    Returns:
        CompressedImage holding the JPEG payload, its media type, the derived
        name, the output dimensions and the quality that was used.

    Raises:
        ImageDecodeError: If the payload is not a decodable image.
        CompressionExhausted: If no quality step meets the budget.
    """
    if len(payload) <= budget:
        return CompressedImage(payload=payload, mime_type=mime_type, name=name)

    image = _decode(payload)
    width, height = target_dimensions(*image.size)
    if (width, height) != image.size:
        logger.info("Downscaling %s from %dx%d to %dx%d", name, *image.size, width, height)
        image = image.resize((width, height), Image.Resampling.LANCZOS)

    smallest = len(payload)
    for quality in quality_schedule():
        encoded = encode_jpeg(image, quality)
        logger.debug("Encoded %s at q=%d: %d bytes (budget %d)", name, quality, len(encoded), budget)
        smallest = min(smallest, len(encoded))
        if len(encoded) <= budget:
            logger.info(
                "Compressed %s from %d to %d bytes at quality %.2f",
                name, len(payload), len(encoded), quality / 100,
            )
            return CompressedImage(
                payload=encoded,
                mime_type=OUTPUT_MIME_TYPE,
                name=derive_name(name),
                quality=quality / 100,
                width=width,
                height=height,
            )

    raise CompressionExhausted(budget=budget, smallest=smallest)
