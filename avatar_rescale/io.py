from __future__ import annotations
import json
from typing import Any, Dict, List, Optional

import numpy as np

from .model import SkeletonModel
from .skeleton import Skeleton, SkinnedMesh, Transform


class SkeletonIO:
  """JSON skeleton files.

  {"bones": [{"name", "parent", "position", "rotation" (x, y, z, w), "scale"}, ...],
   "human": {"Hips": "<bone name>", ...},            # optional, else resolved by name
   "mesh": {"vertices": [[x, y, z], ...], "owners": ["<bone name>", ...]}}  # optional

  Bones are listed parents first; positions/rotations/scales are local.
  Mesh vertices are world-space in the stored pose.
  """

  @staticmethod
  def from_dict(data: Dict[str, Any]) -> Skeleton:
    entries = data.get("bones") or []
    if not entries:
      raise ValueError("Skeleton file has no bones")
    by_name: Dict[str, Transform] = {}
    roots: List[Transform] = []
    for e in entries:
      name = e["name"]
      if name in by_name:
        raise ValueError(f"Duplicate bone name: {name}")
      parent_name = e.get("parent")
      if parent_name is not None and parent_name not in by_name:
        raise ValueError(f"Bone {name!r} listed before its parent {parent_name!r}")
      parent = by_name.get(parent_name) if parent_name is not None else None
      t = Transform(name, parent, e.get("position"), e.get("rotation"), e.get("scale"))
      by_name[name] = t
      if parent is None:
        roots.append(t)
    if len(roots) != 1:
      raise ValueError(f"Expected exactly one root bone, found {[r.name for r in roots]}")
    root = roots[0]

    human = data.get("human")
    if human:
      missing = [v for v in human.values() if v not in by_name]
      if missing:
        raise ValueError(f"Humanoid map points at unknown bones: {missing}")
      bones = {k: by_name[v] for k, v in human.items()}
    else:
      bones = SkeletonModel.resolve_human_bones(root)

    mesh: Optional[SkinnedMesh] = None
    if data.get("mesh"):
      verts = np.asarray(data["mesh"]["vertices"], float)
      names = data["mesh"]["owners"]
      unknown = sorted({n for n in names if n not in by_name})
      if unknown:
        raise ValueError(f"Mesh owners point at unknown bones: {unknown}")
      owners = [by_name[n] for n in names]
      mesh = SkinnedMesh.bind(verts, owners)
    return Skeleton(root, bones, mesh)

  @staticmethod
  def to_dict(skel: Skeleton) -> Dict[str, Any]:
    bones = []
    for t in skel.root.walk():
      bones.append({
        "name": t.name,
        "parent": None if t.parent is None else t.parent.name,
        "position": [float(v) for v in t.local_position],
        "rotation": [float(v) for v in t.local_rotation.as_quat()],
        "scale": [float(v) for v in t.local_scale],
      })
    out: Dict[str, Any] = {
      "bones": bones,
      "human": {k: t.name for k, t in skel.bones.items()},
    }
    if skel.mesh is not None and len(skel.mesh):
      mesh = skel.mesh
      out["mesh"] = {
        "vertices": mesh.world_vertices_in_order().tolist(),
        "owners": [mesh.owners[i].name for i in mesh.owner_index],
      }
    return out

  @staticmethod
  def load_json(path: str) -> Skeleton:
    with open(path, "r", encoding="utf-8") as fh:
      return SkeletonIO.from_dict(json.load(fh))

  @staticmethod
  def save_json(skel: Skeleton, path: str) -> None:
    with open(path, "w", encoding="utf-8") as fh:
      json.dump(SkeletonIO.to_dict(skel), fh, indent=2)
