"""
Utility functions shared across the wizard: file import, image import, export.
"""

import base64
import io
import mimetypes
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from prompt_builders import ValidationError
from wizard_state import GeneratedArtifact

THUMBNAIL_MAX_BYTES = 2 * 1024 * 1024  # 2 MB, the YouTube thumbnail limit
ALLOWED_IMAGE_TYPES = ("image/png", "image/jpeg", "image/webp", "image/gif")
DEFAULT_EXPORT_NAME = "generated_script.txt"


def read_text_file(path: str | Path) -> str:
    """Read a plain-text reference script in full."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Script file not found: {path}")
    # utf-8-sig drops the BOM editors on Windows like to add
    return path.read_text(encoding="utf-8-sig")


def encode_image_data_uri(path: str | Path, mime_type: str | None = None) -> str:
    """
    Encode an image file as a self-contained data URI.

    The declared media type comes from `mime_type` or the file extension and must be
    one of ALLOWED_IMAGE_TYPES. Pillow then checks the bytes really are an image.

    Raises:
        FileNotFoundError: path does not exist
        ValidationError: unsupported type, too large, or not decodable as an image
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Image file not found: {path}")
    declared = mime_type or mimetypes.guess_type(path.name)[0]
    if declared not in ALLOWED_IMAGE_TYPES:
        raise ValidationError(
            f"Unsupported image type {declared or 'unknown'} for {path.name}. "
            f"Use one of: {', '.join(ALLOWED_IMAGE_TYPES)}"
        )
    data = path.read_bytes()
    if len(data) > THUMBNAIL_MAX_BYTES:
        raise ValidationError(
            f"Image is {len(data) / 1024:.0f} KB; the limit is {THUMBNAIL_MAX_BYTES // 1024} KB"
        )
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ValidationError(f"{path.name} is not a readable image: {e}") from e
    return f"data:{declared};base64,{base64.b64encode(data).decode('ascii')}"


def export_script(artifact: GeneratedArtifact, output_path: str | Path) -> Path:
    """Write the generated script exactly as stored: UTF-8, no BOM, nothing added."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(artifact.script.encode("utf-8"))
    return output_path


def export_thumbnail_prompt(artifact: GeneratedArtifact, output_path: str | Path) -> Path:
    if not artifact.thumbnail_prompt:
        raise ValidationError("This script has no thumbnail prompt")
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(artifact.thumbnail_prompt.encode("utf-8"))
    return output_path
