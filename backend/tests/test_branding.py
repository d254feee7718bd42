import base64
import io

from PIL import Image

from app.branding import (
    color_distance,
    normalize_hex,
    palette_from_vision,
    pick_background_color,
    pick_text_color,
    rank_color_candidates,
)
from app.image_utils import optimize_screenshot, screenshot_to_b64


def test_normalize_hex() -> None:
    assert normalize_hex("#ABC") == "#aabbcc"
    assert normalize_hex("rgb(255, 0, 16)") == "#ff0010"
    assert normalize_hex("rgba(0, 0, 0, 0)") is None
    assert normalize_hex("not a color") is None
    assert normalize_hex(None) is None


def test_color_distance() -> None:
    assert color_distance("#000000", "#000000") == 0
    assert round(color_distance("#000000", "#ffffff")) == 442


def test_brand_color_beats_black_and_white() -> None:
    ranked = rank_color_candidates([
        {"color": "#000000", "weight": 30, "source": "background"},
        {"color": "#ffffff", "weight": 30, "source": "background"},
        {"color": "#d62828", "weight": 10, "source": "background"},
    ])
    assert ranked[0] == "#d62828"


def test_declared_colors_win() -> None:
    ranked = rank_color_candidates([
        {"color": "#d62828", "weight": 300, "source": "background"},
        {"color": "#1d3557", "weight": 1, "source": "css-var"},
    ])
    assert ranked[0] == "#1d3557"


def test_similar_colors_are_merged() -> None:
    ranked = rank_color_candidates([
        {"color": "#d62828", "weight": 30, "source": "background"},
        {"color": "#d82a2a", "weight": 25, "source": "background"},
        {"color": "#2a9d8f", "weight": 20, "source": "background"},
        {"color": "#e9c46a", "weight": 10, "source": "background"},
        {"color": "#f4a261", "weight": 5, "source": "text"},
    ])
    assert ranked[:2] == ["#d62828", "#2a9d8f"]
    assert "#d82a2a" not in ranked
    assert len(ranked) == 3


def test_text_and_background_heuristics() -> None:
    assert pick_text_color([
        {"color": "#ffffff", "count": 50},
        {"color": "#333333", "count": 20},
        {"color": "#555555", "count": 5},
    ]) == "#333333"
    assert pick_background_color(["#101010", "#fafafa"]) == "#fafafa"
    assert pick_background_color(["#101010"]) is None


def test_vision_answer_must_have_primary() -> None:
    assert palette_from_vision(None) is None
    assert palette_from_vision({"primary": None, "secondary": "#fff"}) is None
    palette = palette_from_vision({"primary": "#C00", "secondary": "garbage", "accent": "#00aa00"})
    assert palette.primary == "#cc0000"
    assert palette.secondary is None
    assert palette.accent == "#00aa00"


def _png(width, height, mode="RGBA") -> bytes:
    buf = io.BytesIO()
    Image.new(mode, (width, height), (200, 30, 30, 255) if mode == "RGBA" else (200, 30, 30)).save(buf, format="PNG")
    return buf.getvalue()


def test_screenshot_is_resized_cropped_and_jpeg() -> None:
    img = Image.open(io.BytesIO(optimize_screenshot(_png(1920, 8000))))
    assert img.format == "JPEG"
    assert img.size == (1280, 4000)


def test_screenshot_b64_media_type() -> None:
    data, media_type = screenshot_to_b64(_png(200, 100, mode="RGB"))
    assert media_type == "image/jpeg"
    assert Image.open(io.BytesIO(base64.b64decode(data))).size == (200, 100)
