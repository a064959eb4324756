# ============================================================================
# CONFIGURATION
# ============================================================================

import json
from dataclasses import dataclass, fields, replace
from typing import Optional

from errors import ConfigError

# Lamp protocol
LAMP_PORT = 38899
LAMP_TIMEOUT = 0.4  # seconds per request/response exchange
RECV_BUFFER_SIZE = 4096

# Default settings
DEFAULT_COVERAGE_PERCENT = 10
DEFAULT_VARIATION_THRESHOLD = 20
DEFAULT_STRIDE = 1
DEFAULT_MAX_FPS = 30
DEFAULT_DIMMING = 100
DEFAULT_SAMPLER = "average"

# Back-off between capture attempts while no frame exists yet (unthrottled loop)
CAPTURE_RETRY_DELAY = 0.05

# Largest possible |dR| + |dG| + |dB|
MAX_VARIATION = 765

SAMPLERS = ("average", "most_common")

# Default files
LAMPS_FILE = "lamps.txt"
SETTINGS_FILE = "ambilight_settings.json"


def _check_type(name, value, types, kind="a number"):
    # bool is an int subclass but never a valid number here
    if isinstance(value, bool) or not isinstance(value, types):
        raise ConfigError(f"{name} must be {kind}, got {value!r}")


@dataclass(frozen=True)
class Settings:
    """Tunables for the sampler, change gate and lamp exchanges."""

    coverage_percent: float = DEFAULT_COVERAGE_PERCENT
    variation_threshold: int = DEFAULT_VARIATION_THRESHOLD
    stride: int = DEFAULT_STRIDE
    max_fps: float = DEFAULT_MAX_FPS
    sampler: str = DEFAULT_SAMPLER
    timeout: float = LAMP_TIMEOUT
    capture_width: Optional[int] = None

    def validate(self) -> "Settings":
        _check_type("coverage_percent", self.coverage_percent, (int, float))
        _check_type("variation_threshold", self.variation_threshold, int, "an integer")
        _check_type("stride", self.stride, int, "an integer")
        _check_type("max_fps", self.max_fps, (int, float))
        _check_type("timeout", self.timeout, (int, float))
        if self.capture_width is not None:
            _check_type("capture_width", self.capture_width, int, "an integer")
        if not isinstance(self.sampler, str):
            raise ConfigError(f"sampler must be a string, got {self.sampler!r}")

        if not 0 <= self.coverage_percent <= 100:
            raise ConfigError(
                f"coverage_percent must be between 0 and 100, got {self.coverage_percent}"
            )
        if not 0 <= self.variation_threshold <= MAX_VARIATION:
            raise ConfigError(
                f"variation_threshold must be between 0 and {MAX_VARIATION}, "
                f"got {self.variation_threshold}"
            )
        if self.stride < 1:
            raise ConfigError(f"stride must be at least 1, got {self.stride}")
        if self.max_fps < 0:
            raise ConfigError(f"max_fps cannot be negative, got {self.max_fps}")
        if self.sampler not in SAMPLERS:
            raise ConfigError(
                f"sampler must be one of {', '.join(SAMPLERS)}, got {self.sampler!r}"
            )
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if self.capture_width is not None and self.capture_width < 1:
            raise ConfigError(
                f"capture_width must be positive, got {self.capture_width}"
            )
        return self

    def override(self, **changes) -> "Settings":
        """Return a copy with every non-None value in changes applied."""
        changes = {k: v for k, v in changes.items() if v is not None}
        return replace(self, **changes).validate()


def load_settings(path: Optional[str]) -> Settings:
    """Load settings from a JSON file, or return defaults when path is None."""
    if path is None:
        return Settings()

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ConfigError(f"Settings file not found: {path}")
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to read settings from {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Settings file {path} must contain a JSON object")

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown settings in {path}: {', '.join(unknown)}")

    try:
        return Settings(**data).validate()
    except TypeError as e:
        raise ConfigError(f"Invalid settings in {path}: {e}")

