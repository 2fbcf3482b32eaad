"""Image normalisation before an image is sent to a vision model."""
import base64
import io

from PIL import Image, ImageOps, UnidentifiedImageError

from pipeline.errors import InputValidationError

# Longest edge sent to the model; phone photos are downscaled to this.
MAX_EDGE = 2048


def detect_mime(image_bytes: bytes) -> str:
    """Detect MIME type from magic bytes."""
    if image_bytes[:3] == b"\xff\xd8\xff":
        return "image/jpeg"
    if image_bytes[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    if image_bytes[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    return "image/jpeg"  # safe default for camera photos


def normalise_image(image_bytes: bytes) -> bytes:
    """Apply EXIF orientation, downscale to MAX_EDGE and re-encode as JPEG.

    Sideways menu photos OCR badly, so the image is turned right-side-up first.
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            corrected = ImageOps.exif_transpose(img)
            corrected = corrected.convert("RGB")  # detaches from the source buffer too
    except (UnidentifiedImageError, OSError) as exc:
        raise InputValidationError(
            f"could not decode image: {exc}",
            "The selected file is not a readable image.",
        ) from exc
    corrected.thumbnail((MAX_EDGE, MAX_EDGE))
    buf = io.BytesIO()
    corrected.save(buf, format="JPEG", quality=92)
    return buf.getvalue()


def to_data_url(image_bytes: bytes) -> str:
    b64 = base64.standard_b64encode(image_bytes).decode()
    return f"data:{detect_mime(image_bytes)};base64,{b64}"
