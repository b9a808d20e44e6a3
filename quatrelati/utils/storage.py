import io
import logging
import secrets
from typing import Dict, Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from PIL import Image, UnidentifiedImageError

from quatrelati.config import settings

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")
MAX_UPLOAD_BYTES = 1 * 1024 * 1024
MAX_WEBP_BYTES = 100 * 1024
MIN_RESIZE_WIDTH = 200

S3_PREFIX_PRODUTOS = "quatrelati/produtos"
S3_PREFIX_LOGOS = "quatrelati/logos"


class StorageError(Exception):
    """Raised when an upload cannot be converted or stored"""


def _encode_webp(image: Image.Image, quality: int) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="WEBP", quality=quality)
    return buffer.getvalue()


def convert_to_webp(data: bytes, max_bytes: int = MAX_WEBP_BYTES) -> bytes:
    """
    Convert an image to WebP no larger than ``max_bytes``.

    Quality drops from 80 in steps of 10 down to 10; if the result is
    still too large the image is shrunk by 20% per pass (quality 70)
    until it fits or the width reaches 200 px.
    """
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise StorageError(f"Imagem inválida: {str(e)}") from e

    if image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGBA")

    quality = 80
    webp = _encode_webp(image, quality)
    while len(webp) > max_bytes and quality > 10:
        quality -= 10
        webp = _encode_webp(image, quality)

    width = image.width or 800
    while len(webp) > max_bytes and width > MIN_RESIZE_WIDTH:
        width = int(width * 0.8)
        height = max(1, int(image.height * width / image.width))
        resized = image.resize((width, height), Image.Resampling.LANCZOS)
        webp = _encode_webp(resized, 70)

    return webp


def get_s3_client():
    return boto3.client(
        "s3",
        region_name=settings.AWS_REGION,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
    )


def upload_webp(data: bytes, prefix: str) -> Dict[str, Any]:
    """Store a WebP payload publicly in S3 under a random name"""
    key = f"{prefix}/{secrets.token_hex(16)}.webp"
    try:
        get_s3_client().put_object(
            Bucket=settings.S3_BUCKET,
            Key=key,
            Body=data,
            ContentType="image/webp",
            ACL="public-read",
        )
    except (BotoCoreError, ClientError) as e:
        logger.error(f"S3 upload of {key} failed: {str(e)}")
        raise StorageError(str(e)) from e

    logger.info(f"Uploaded {key} ({len(data)} bytes)")
    return {
        "url": f"https://s3.amazonaws.com/{settings.S3_BUCKET}/{key}",
        "key": key,
        "size": len(data),
    }
