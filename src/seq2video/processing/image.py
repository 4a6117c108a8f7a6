"""
Frame size probing for seq2video.

Used by ``--resolution source`` to encode at the size of the images themselves.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Optional, Tuple, Union

import cv2


def image_dimensions(path: Union[str, Path]) -> Tuple[int, int]:
    """Return (width, height) of an image, or (0, 0) when OpenCV cannot decode it."""
    # grayscale decode is enough for the shape and skips colour conversion
    img = cv2.imread(str(path), cv2.IMREAD_GRAYSCALE)
    if img is None:
        return 0, 0
    return int(img.shape[1]), int(img.shape[0])


def even_dimensions(width: int, height: int) -> Tuple[int, int]:
    """Round dimensions down to even numbers, as yuv420p encoders require."""
    return max(2, width - width % 2), max(2, height - height % 2)


def source_resolution(directory: Path, frames: Iterable[str], attempts: int = 5) -> Optional[Tuple[int, int]]:
    """Even-rounded size of the first decodable frame among the first ``attempts``.

    Returns:
        (width, height), or None if none of the probed frames could be read.
    """
    for i, name in enumerate(frames):
        if i >= attempts:
            break
        width, height = image_dimensions(directory / name)
        if width and height:
            return even_dimensions(width, height)
    return None
