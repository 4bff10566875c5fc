"""Raster thumbnail generation with Pillow."""
import io

from PIL import Image as PILImage, ImageOps, UnidentifiedImageError

from files_manager.services.errors import JobFailure

THUMBNAIL_WIDTHS = (500, 250, 100)


def make_thumbnail(data: bytes, width: int) -> bytes:
    """Resize image bytes to ``width`` pixels wide, keeping the aspect ratio.

    The output keeps the source format when Pillow can write it, PNG
    otherwise. Raises JobFailure if ``data`` is not a decodable image.
    """
    try:
        im = PILImage.open(io.BytesIO(data))
        im.load()
    except (UnidentifiedImageError, OSError) as e:
        raise JobFailure(f"Cannot decode image: {e}") from e

    fmt = im.format or "PNG"
    im = ImageOps.exif_transpose(im)
    height = max(1, round(im.height * width / im.width))
    resized = im.resize((width, height))
    if fmt == "JPEG" and resized.mode not in ("RGB", "L"):
        resized = resized.convert("RGB")

    out = io.BytesIO()
    try:
        resized.save(out, format=fmt)
    except (KeyError, OSError):
        out = io.BytesIO()
        resized.save(out, format="PNG")
    return out.getvalue()
