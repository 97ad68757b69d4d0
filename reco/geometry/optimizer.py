"""Homography optimization using Levenberg-Marquardt."""

import numpy as np
from scipy.optimize import least_squares


class HomographyOptimizer:
    """Refine a RANSAC homography over its inliers with non-linear least squares."""

    # eight free parameters, two residuals per correspondence
    MIN_POINTS = 4

    def __init__(self, max_iters: int = 100):
        self.max_iters = max_iters

    def optimize(self, H: np.ndarray, src_points: np.ndarray,
                 dst_points: np.ndarray) -> np.ndarray:
        """
        Minimise reprojection error of src_points -> dst_points.

        Returns:
            Refined matrix normalised so H[2, 2] == 1; the input (normalised)
            when there are too few points to refine
        """
        H = np.asarray(H, dtype=np.float64)
        H = H / H[2, 2]
        src_points = np.asarray(src_points, dtype=np.float64).reshape(-1, 2)
        dst_points = np.asarray(dst_points, dtype=np.float64).reshape(-1, 2)

        if len(src_points) < self.MIN_POINTS:
            return H

        def residuals(params):
            H_opt = self._params_to_matrix(params)
            transformed = self._transform_points(src_points, H_opt)
            return (transformed - dst_points).flatten()

        result = least_squares(residuals, H.flatten()[:8], method='lm', max_nfev=self.max_iters)
        return self._params_to_matrix(result.x)

    def _params_to_matrix(self, params: np.ndarray) -> np.ndarray:
        return np.append(params, 1).reshape(3, 3)

    def _transform_points(self, points: np.ndarray, H: np.ndarray) -> np.ndarray:
        points_h = np.hstack([points, np.ones((points.shape[0], 1))])
        transformed = (H @ points_h.T).T
        return transformed[:, :2] / transformed[:, 2:]
