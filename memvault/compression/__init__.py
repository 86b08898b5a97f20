"""Image compression for uploads that exceed the byte budget."""
from .pipeline import MAX_DIMENSION, CompressedImage, compress_image, quality_schedule

__all__ = ["MAX_DIMENSION", "CompressedImage", "compress_image", "quality_schedule"]
