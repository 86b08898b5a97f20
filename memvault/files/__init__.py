"""File upload and storage module for the vault.

Uploads are stored whole, payload included, in the ``files`` collection.

Supported file types:
- Images: jpeg, png, webp, gif
- Video: mp4, webm

Images over the 10MB limit are re-encoded as JPEG until they fit; videos
over the limit are rejected.
"""
