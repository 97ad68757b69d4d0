"""Homography sanity checks."""

import numpy as np
from typing import Optional, Tuple


class HomographyValidator:
    """Reject degenerate homographies before they reach projection."""

    def __init__(self, min_determinant: float = 1e-6):
        self.min_determinant = min_determinant

    def validate_transformation(self, H: Optional[np.ndarray]) -> Tuple[bool, str]:
        """Validate homography matrix properties."""
        if H is None or H.size == 0:
            return False, "Matrix is None"

        if H.shape != (3, 3):
            return False, "Invalid matrix shape"

        if not np.all(np.isfinite(H)):
            return False, "Matrix has non-finite entries"

        if H[2, 2] == 0:
            return False, "Invalid normalization"

        det = np.linalg.det(H / H[2, 2])
        if abs(det) < self.min_determinant:
            return False, "Matrix is singular"

        return True, "Valid"
