"""Screenshot compression before anything is sent to Claude."""
from PIL import Image
import io
import base64


def optimize_screenshot(screenshot_bytes: bytes, max_width: int = 1280,
                        max_height: int = 4000, quality: int = 75) -> bytes:
    """
    Downscale to max_width, crop long full-page captures to max_height,
    and re-encode as JPEG. Brand colors live near the top of the page anyway.
    """
    img = Image.open(io.BytesIO(screenshot_bytes))

    w, h = img.size
    if w > max_width:
        ratio = max_width / w
        img = img.resize((max_width, int(h * ratio)), Image.LANCZOS)

    if img.size[1] > max_height:
        img = img.crop((0, 0, img.size[0], max_height))

    # JPEG has no alpha channel
    if img.mode == 'RGBA':
        bg = Image.new('RGB', img.size, (255, 255, 255))
        bg.paste(img, mask=img.split()[3])
        img = bg
    elif img.mode != 'RGB':
        img = img.convert('RGB')

    buf = io.BytesIO()
    img.save(buf, format='JPEG', quality=quality, optimize=True)
    return buf.getvalue()


def screenshot_to_b64(screenshot_bytes: bytes, compress: bool = True,
                      max_width: int = 1280, quality: int = 75) -> tuple[str, str]:
    """Returns (base64_string, media_type)."""
    if not compress:
        return base64.b64encode(screenshot_bytes).decode(), "image/png"
    optimized = optimize_screenshot(screenshot_bytes, max_width=max_width, quality=quality)
    return base64.b64encode(optimized).decode(), "image/jpeg"
