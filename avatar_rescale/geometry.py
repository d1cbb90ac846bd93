from __future__ import annotations
import numpy as np
from scipy.spatial.transform import Rotation as sRot
from typing import Optional, Sequence, Tuple


class Geometry3D:
  """Small vector/matrix helpers shared by the accessor and the measurements."""

  UP = np.array([0.0, 1.0, 0.0])

  # ---- Matrices ---------------------------------------------------------
  @staticmethod
  def trs_matrix(position: np.ndarray, rotation: sRot, scale: np.ndarray) -> np.ndarray:
    M = np.eye(4)
    M[:3, :3] = rotation.as_matrix() * np.asarray(scale, float)[None, :]
    M[:3, 3] = position
    return M

  @staticmethod
  def transform_point(M: np.ndarray, p: np.ndarray) -> np.ndarray:
    return M[:3, :3] @ np.asarray(p, float) + M[:3, 3]

  # ---- Vectors ----------------------------------------------------------
  @staticmethod
  def normalized(v: np.ndarray) -> Optional[np.ndarray]:
    n = float(np.linalg.norm(v))
    if n < 1e-12:
      return None
    return np.asarray(v, float) / n

  @staticmethod
  def distance(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.linalg.norm(np.asarray(b, float) - np.asarray(a, float)))

  @staticmethod
  def horizontal(v: np.ndarray) -> np.ndarray:
    """Project onto the XZ floor plane."""
    return np.array([v[0], 0.0, v[2]], float)

  @classmethod
  def horizontal_distance(cls, a: np.ndarray, b: np.ndarray) -> float:
    return float(np.linalg.norm(cls.horizontal(np.asarray(b, float) - np.asarray(a, float))))

  @staticmethod
  def chain_length(points: Sequence[np.ndarray]) -> float:
    pts = np.asarray(points, float)
    if len(pts) < 2:
      return 0.0
    return float(np.sum(np.linalg.norm(np.diff(pts, axis=0), axis=1)))

  @staticmethod
  def lerp(a: float, b: float, t: float) -> float:
    # a*(1-t) + b*t keeps lerp(a, b, 1) == b exactly
    return a * (1.0 - t) + b * t

  # ---- Rotations --------------------------------------------------------
  @classmethod
  def rotation_between(cls, v1: np.ndarray, v2: np.ndarray) -> Tuple[np.ndarray, float]:
    """Unit axis and angle turning direction v1 onto v2 (zero axis if parallel)."""
    a = cls.normalized(v1)
    b = cls.normalized(v2)
    if a is None or b is None:
      return np.zeros(3), 0.0
    axis = np.cross(a, b)
    s = float(np.linalg.norm(axis))
    c = float(np.clip(a @ b, -1.0, 1.0))
    if s < 1e-12:
      return np.zeros(3), 0.0
    return axis / s, float(np.arctan2(s, c))

  # ---- Perpendicular basis ---------------------------------------------
  @staticmethod
  def perp_basis(u: np.ndarray):
    u = u / (np.linalg.norm(u) + 1e-12)
    tmp = np.array([1.0, 0.0, 0.0]) if abs(u[0]) < 0.9 else np.array([0.0, 1.0, 0.0])
    n1 = np.cross(u, tmp); n1 /= (np.linalg.norm(n1) + 1e-12)
    n2 = np.cross(u, n1); n2 /= (np.linalg.norm(n2) + 1e-12)
    return n1, n2
