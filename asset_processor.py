"""Image processing utilities for logo detection and palette extraction"""

import logging
from io import BytesIO
from typing import Optional, Tuple

import numpy as np
import requests
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger("AssetProcessor")


def fetch_asset_bytes(asset_url: str, timeout: int = 30) -> bytes:
    """Fetch asset bytes from a remote URL"""
    try:
        response = requests.get(asset_url, timeout=timeout)
        response.raise_for_status()
        return response.content
    except requests.RequestException as e:
        logger.error(f"Failed to fetch asset from {asset_url}: {e}")
        raise


def read_image_dimensions(image_bytes: bytes) -> Optional[Tuple[int, int]]:
    """Read (width, height) from the image header without decoding pixel data.

    Returns None for corrupt or unsupported images (SVG included).
    """
    try:
        # Image.open is lazy: only the header is parsed until pixels are accessed
        with Image.open(BytesIO(image_bytes)) as img:
            width, height = img.size
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        logger.debug(f"Could not read image dimensions: {e}")
        return None
    if width <= 0 or height <= 0:
        return None
    return width, height


def should_downscale(width: int, height: int, max_dim: int) -> bool:
    """Determine if image needs downscaling"""
    return width > max_dim or height > max_dim


def _flatten_to_rgb(img: Image.Image) -> Image.Image:
    """Composite transparent images onto white, convert everything else to RGB"""
    if img.mode == "P":
        img = img.convert("RGBA")
    if img.mode in ("RGBA", "LA"):
        background = Image.new("RGB", img.size, (255, 255, 255))
        background.paste(img, mask=img.split()[-1])
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def load_rgb_pixels(image_bytes: bytes, max_dim: int = 1024) -> np.ndarray:
    """Decode an image, downscale it to fit max_dim x max_dim and return an (N, 3) uint8 array.

    Aspect ratio is preserved and small images are never upscaled.

    Raises:
        ValueError: If the bytes are not a decodable raster image
    """
    try:
        with Image.open(BytesIO(image_bytes)) as loaded:
            loaded.load()
            img = _flatten_to_rgb(loaded)
            if should_downscale(img.width, img.height, max_dim):
                # thumbnail() keeps aspect ratio and only ever shrinks
                img.thumbnail((max_dim, max_dim), Image.Resampling.LANCZOS)
            pixels = np.asarray(img, dtype=np.uint8)
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
        raise ValueError(f"Could not decode image: {e}") from e
    return pixels.reshape(-1, 3)
