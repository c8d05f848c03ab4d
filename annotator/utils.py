"""
Shared helpers: logging setup and PNG data URL conversion
"""
import base64
import logging
from datetime import datetime
from io import BytesIO
from pathlib import Path
from typing import Optional

from PIL import Image

DATA_URL_PREFIX = "data:image/png;base64,"


def setup_logging(
    name: str = "annotator",
    level: int = logging.INFO,
    output_dir: Optional[Path] = None,
) -> logging.Logger:
    """
    Set up logging for the annotator.

    Creates a console handler, plus a file handler when an output
    directory is given.

    Args:
        name: Logger name
        level: Logging level
        output_dir: Directory for log files (None for console only)

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Clear existing handlers
    logger.handlers = []

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_format = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    console_handler.setFormatter(console_format)
    logger.addHandler(console_handler)

    if output_dir is not None:
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        log_file = output_dir / f"{name}_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_format = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        file_handler.setFormatter(file_format)
        logger.addHandler(file_handler)

    return logger


def image_to_base64(image: Image.Image) -> str:
    """
    Convert PIL Image to base64 string

    Args:
        image: PIL Image object

    Returns:
        Base64-encoded data URL string
    """
    buffered = BytesIO()
    image.save(buffered, format="PNG")
    img_str = base64.b64encode(buffered.getvalue()).decode()
    return f"{DATA_URL_PREFIX}{img_str}"


def base64_to_image(data_url: str) -> Image.Image:
    """
    Decode a PNG data URL (or bare base64 payload) into a PIL Image

    Args:
        data_url: String produced by image_to_base64

    Returns:
        Loaded PIL Image

    Raises:
        ValueError: If the payload is not valid base64 image data
    """
    payload = data_url.split(",", 1)[1] if data_url.startswith("data:") else data_url
    try:
        raw = base64.b64decode(payload, validate=True)
        image = Image.open(BytesIO(raw))
        image.load()
    except (ValueError, OSError) as e:
        raise ValueError(f"Invalid image data: {e}") from e
    return image


def image_to_png_bytes(image: Image.Image) -> bytes:
    """Encode a PIL Image as PNG bytes"""
    buffered = BytesIO()
    image.save(buffered, format="PNG")
    return buffered.getvalue()
