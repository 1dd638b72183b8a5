import base64
import io

from PIL import Image


def encode_image(width: int, height: int, color=(200, 120, 40), fmt: str = "JPEG", mode: str = "RGB") -> bytes:
    img = Image.new(mode, (width, height), color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def to_data_url(data: bytes, mime: str = "image/jpeg") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def bomb_png(side: int = 14000) -> bytes:
    """A 1-bit PNG that compresses tiny but decodes past Pillow's pixel limit."""
    buf = io.BytesIO()
    Image.new("1", (side, side), 0).save(buf, format="PNG")
    return buf.getvalue()
