from typing import NamedTuple

import numpy as np

import config
from lamp_protocol import Color

# Lamps reject (0, 0, 0), so "nothing worth showing" is sent as this instead.
SENTINEL_COLOR = Color(1, 1, 1)


class SampledColor(NamedTuple):
    color: Color
    kept_count: int
    total_count: int


def flatten_pixels(pixels):
    """Reshape an (H, W, C) or (N, C) buffer into (N, 3) RGB rows."""
    pixels = np.asarray(pixels)
    if pixels.size == 0:
        return np.zeros((0, 3), dtype=np.uint8)
    if pixels.ndim < 2 or pixels.shape[-1] < 3:
        raise ValueError(f"expected pixels with at least 3 channels, got shape {pixels.shape}")
    return pixels.reshape(-1, pixels.shape[-1])[:, :3]


def drop_black(flat):
    """Remove pure black pixels: letterboxing and inactive screen area."""
    return flat[np.any(flat != 0, axis=1)]


def below_coverage(kept_count, total_count, coverage_percent):
    """True when too few non-black pixels are left to trust the frame."""
    if kept_count == 0:
        return True
    return kept_count * 100 < total_count * coverage_percent


def _as_color(channels):
    color = Color(int(channels[0]), int(channels[1]), int(channels[2]))
    # Truncation can still land on black, e.g. averaging (1,0,0) and (0,1,0)
    if color == (0, 0, 0):
        return SENTINEL_COLOR
    return color


def process_average_color(
    pixels, coverage_percent=config.DEFAULT_COVERAGE_PERCENT, stride=config.DEFAULT_STRIDE
):
    """Integer-truncated mean of the non-black pixels.

    Frames where fewer than coverage_percent of the pixels are non-black
    give SENTINEL_COLOR. stride sums only every stride-th kept pixel; the
    coverage decision always uses the full count.
    """
    flat = flatten_pixels(pixels)
    total_count = len(flat)
    kept = drop_black(flat)
    kept_count = len(kept)

    if below_coverage(kept_count, total_count, coverage_percent):
        return SampledColor(SENTINEL_COLOR, kept_count, total_count)

    sample = kept[::stride]
    sums = sample.sum(axis=0, dtype=np.uint64)
    return SampledColor(_as_color(sums // len(sample)), kept_count, total_count)


def process_most_common_color(
    pixels, coverage_percent=config.DEFAULT_COVERAGE_PERCENT, stride=config.DEFAULT_STRIDE
):
    """Most frequent non-black color, with the same coverage guard as the mean."""
    flat = flatten_pixels(pixels)
    total_count = len(flat)
    kept = drop_black(flat)
    kept_count = len(kept)

    if below_coverage(kept_count, total_count, coverage_percent):
        return SampledColor(SENTINEL_COLOR, kept_count, total_count)

    colors, counts = np.unique(kept[::stride], axis=0, return_counts=True)
    return SampledColor(_as_color(colors[np.argmax(counts)]), kept_count, total_count)


def color_variation(a, b):
    """Manhattan distance between two colors: |dR| + |dG| + |dB|."""
    return sum(abs(int(x) - int(y)) for x, y in zip(a, b))


# Sampler registry for lookup by settings name
SAMPLERS = {
    "average": process_average_color,
    "most_common": process_most_common_color,
}
