import numpy as np
from PIL import ImageGrab

from errors import CaptureError


class ScreenCapturer:
    """Grabs the screen with Pillow and hands back an (H, W, 3) RGB array."""

    def __init__(self, bbox=None, resize_width=None):
        self.bbox = bbox
        self.resize_width = resize_width
        self.width = 0
        self.height = 0

    def capture_frame(self):
        try:
            screen = ImageGrab.grab(bbox=self.bbox)
        except Exception as e:
            # ImageGrab raises OSError on most platforms but backend errors vary
            raise CaptureError(f"screen grab failed: {e}") from e

        screen = screen.convert("RGB")

        if self.resize_width:
            # Resize keeping aspect ratio to avoid distortion
            sw, sh = screen.size
            target_h = max(1, int(self.resize_width * (sh / sw)))
            screen = screen.resize((self.resize_width, target_h))

        pixels = np.array(screen)
        self.height, self.width = pixels.shape[:2]
        return pixels
