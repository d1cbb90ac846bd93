"""
Transform hierarchy and humanoid bone access.

A `Skeleton` borrows a tree of `Transform` nodes and maps canonical humanoid
bone ids ("Hips", "LeftUpperArm", ...) onto them. World-space reads are used
for measuring, local-space writes for scaling. World matrices are composed on
demand (parent @ T @ R @ S), so changing a parent's local scale rescales the
world extents of every descendant while their local values stay untouched.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
from scipy.spatial.transform import Rotation as sRot

from .errors import MissingRequiredBone
from .geometry import Geometry3D as G


def _as_rotation(rotation) -> sRot:
  if rotation is None:
    return sRot.identity()
  if isinstance(rotation, sRot):
    return rotation
  return sRot.from_quat(np.asarray(rotation, float))  # scalar-last (x, y, z, w)


class Transform:
  """One node of the hierarchy: local TRS plus parent link."""

  def __init__(
    self,
    name: str,
    parent: Optional["Transform"] = None,
    position: Optional[Sequence[float]] = None,
    rotation=None,
    scale: Optional[Sequence[float]] = None,
  ):
    self.name = name
    self.parent: Optional[Transform] = None
    self.children: List[Transform] = []
    self.local_position = np.zeros(3) if position is None else np.array(position, float)
    self.local_rotation = _as_rotation(rotation)
    self.local_scale = np.ones(3) if scale is None else np.array(scale, float)
    if parent is not None:
      parent.add_child(self)

  def __repr__(self) -> str:
    return f"Transform({self.name!r})"

  def add_child(self, child: "Transform") -> None:
    child.parent = self
    self.children.append(child)

  def walk(self) -> Iterator["Transform"]:
    """Pre-order traversal: a node is always yielded before its children."""
    yield self
    for c in self.children:
      yield from c.walk()

  def is_descendant_of(self, other: "Transform") -> bool:
    p = self.parent
    while p is not None:
      if p is other:
        return True
      p = p.parent
    return False

  # ---- Matrices ---------------------------------------------------------
  def local_matrix(self) -> np.ndarray:
    return G.trs_matrix(self.local_position, self.local_rotation, self.local_scale)

  def world_matrix(self) -> np.ndarray:
    if self.parent is None:
      return self.local_matrix()
    return self.parent.world_matrix() @ self.local_matrix()

  # ---- World-space reads / writes --------------------------------------
  @property
  def position(self) -> np.ndarray:
    if self.parent is None:
      return self.local_position.copy()
    return G.transform_point(self.parent.world_matrix(), self.local_position)

  def set_position(self, world: Sequence[float]) -> None:
    p = np.asarray(world, float)
    if self.parent is None:
      self.local_position = p.copy()
      return
    inv = np.linalg.inv(self.parent.world_matrix())
    self.local_position = G.transform_point(inv, p)

  def world_rotation(self) -> sRot:
    # Rotation chain only; exact while no ancestor carries a sheared scale.
    if self.parent is None:
      return self.local_rotation
    return self.parent.world_rotation() * self.local_rotation

  def set_rotation(self, world: sRot) -> None:
    if self.parent is None:
      self.local_rotation = world
    else:
      self.local_rotation = self.parent.world_rotation().inv() * world

  def lossy_scale(self) -> np.ndarray:
    s = self.local_scale.copy()
    p = self.parent
    while p is not None:
      s = s * p.local_scale
      p = p.parent
    return s

  def _clone(self, parent: Optional["Transform"], mapping: Dict[int, "Transform"]) -> "Transform":
    t = Transform(self.name, parent, self.local_position, self.local_rotation, self.local_scale)
    mapping[id(self)] = t
    for c in self.children:
      c._clone(t, mapping)
    return t


class SkinnedMesh:
  """Vertex cloud rigidly bound to one owner bone per vertex."""

  def __init__(self, owners: List[Transform], owner_index: np.ndarray, local_points: np.ndarray):
    self.owners = owners
    self.owner_index = np.asarray(owner_index, int)
    self.local_points = np.asarray(local_points, float).reshape(-1, 3)

  @classmethod
  def bind(cls, vertices: np.ndarray, owners: Sequence[Transform]) -> "SkinnedMesh":
    """Bind world-space vertices to their owners in the current pose."""
    vertices = np.asarray(vertices, float).reshape(-1, 3)
    if len(vertices) != len(owners):
      raise ValueError("Need exactly one owner transform per vertex")
    unique: List[Transform] = []
    slot: Dict[int, int] = {}
    idx = np.empty(len(owners), int)
    for i, t in enumerate(owners):
      if id(t) not in slot:
        slot[id(t)] = len(unique)
        unique.append(t)
      idx[i] = slot[id(t)]
    local = np.empty_like(vertices)
    for k, t in enumerate(unique):
      mask = idx == k
      inv = np.linalg.inv(t.world_matrix())
      local[mask] = vertices[mask] @ inv[:3, :3].T + inv[:3, 3]
    return cls(unique, idx, local)

  def __len__(self) -> int:
    return len(self.local_points)

  def world_vertices(self, owners: Optional[Sequence[Transform]] = None) -> np.ndarray:
    """World positions, optionally only of vertices owned by `owners`."""
    keep = None if owners is None else {id(t) for t in owners}
    out = []
    for k, t in enumerate(self.owners):
      if keep is not None and id(t) not in keep:
        continue
      pts = self.local_points[self.owner_index == k]
      if len(pts) == 0:
        continue
      M = t.world_matrix()
      out.append(pts @ M[:3, :3].T + M[:3, 3])
    if not out:
      return np.zeros((0, 3))
    return np.vstack(out)

  def world_vertices_in_order(self) -> np.ndarray:
    """World positions in the original vertex order."""
    out = np.empty_like(self.local_points)
    for k, t in enumerate(self.owners):
      mask = self.owner_index == k
      M = t.world_matrix()
      out[mask] = self.local_points[mask] @ M[:3, :3].T + M[:3, 3]
    return out

  def rebind(self, mapping: Dict[int, Transform]) -> "SkinnedMesh":
    return SkinnedMesh([mapping[id(t)] for t in self.owners], self.owner_index.copy(), self.local_points.copy())


class Skeleton:
  """Canonical-bone view over a transform hierarchy (the skeleton accessor)."""

  def __init__(
    self,
    root: Transform,
    bones: Dict[str, Transform],
    mesh: Optional[SkinnedMesh] = None,
  ):
    self.root = root
    self.bones = dict(bones)
    self.mesh = mesh

  # ---- Lookup -----------------------------------------------------------
  def bone(self, bone_id: str) -> Optional[Transform]:
    return self.bones.get(bone_id)

  def require(self, bone_id: str, context: str = "") -> Transform:
    t = self.bones.get(bone_id)
    if t is None:
      raise MissingRequiredBone(bone_id, context)
    return t

  def has(self, *bone_ids: str) -> bool:
    return all(b in self.bones for b in bone_ids)

  def find(self, name: str) -> Optional[Transform]:
    for t in self.root.walk():
      if t.name == name:
        return t
    return None

  def transforms(self) -> List[Transform]:
    return list(self.root.walk())

  # ---- World reads ------------------------------------------------------
  def world_position(self, bone_id: str) -> Optional[np.ndarray]:
    t = self.bones.get(bone_id)
    return None if t is None else t.position

  # ---- Local writes -----------------------------------------------------
  @staticmethod
  def set_local_scale(handle: Transform, value: Sequence[float]) -> None:
    handle.local_scale = np.array(value, float)

  @staticmethod
  def set_local_position(handle: Transform, value: Sequence[float]) -> None:
    handle.local_position = np.array(value, float)

  @staticmethod
  def set_local_rotation(handle: Transform, value) -> None:
    handle.local_rotation = _as_rotation(value)

  # ---- Copies -----------------------------------------------------------
  def copy(self) -> "Skeleton":
    mapping: Dict[int, Transform] = {}
    root = self.root._clone(None, mapping)
    bones = {k: mapping[id(t)] for k, t in self.bones.items()}
    mesh = self.mesh.rebind(mapping) if self.mesh is not None else None
    return Skeleton(root, bones, mesh)


class SkeletonSnapshot:
  """Immutable capture of every transform's local position/rotation/scale."""

  def __init__(self, states: Tuple[Tuple[Transform, np.ndarray, sRot, np.ndarray], ...]):
    self._states = states

  @classmethod
  def capture(cls, skeleton: Skeleton) -> "SkeletonSnapshot":
    return cls(tuple(
      (t, t.local_position.copy(), t.local_rotation, t.local_scale.copy())
      for t in skeleton.root.walk()
    ))

  def __len__(self) -> int:
    return len(self._states)

  def restore(self) -> None:
    for t, pos, rot, scale in self._states:
      t.local_position = pos.copy()
      t.local_rotation = rot
      t.local_scale = scale.copy()


@contextmanager
def preview(skeleton: Skeleton):
  """Scoped transaction: whatever happens inside is rolled back on exit."""
  snapshot = SkeletonSnapshot.capture(skeleton)
  try:
    yield snapshot
  finally:
    snapshot.restore()
