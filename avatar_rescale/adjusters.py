from __future__ import annotations
from typing import List, Tuple

import numpy as np
from scipy.spatial.transform import Rotation as sRot

from .geometry import Geometry3D as G
from .model import SkeletonModel as M
from .skeleton import Skeleton


HIP_SPINE_FRACTION = 0.9


def spread_fingers(skeleton: Skeleton, spread_factor: float = 1.0, spare_thumb: bool = True) -> List[str]:
  """Turn each finger root toward the hand→finger direction by spread_factor of the angle."""
  moved: List[str] = []
  for side in M.SIDES:
    hand = skeleton.bone(f"{side}Hand")
    if hand is None:
      continue
    for finger in M.fingers_of(side):
      t = skeleton.bone(finger)
      if t is None or t.parent is not hand or not t.children:
        continue
      if spare_thumb and "thumb" in finger.lower():
        continue
      v_finger = t.children[0].position - t.position
      v_palm = t.position - hand.position
      axis, angle = G.rotation_between(v_finger, v_palm)
      if angle == 0.0:
        continue
      delta = sRot.from_rotvec(axis * angle * spread_factor)
      t.set_rotation(delta * t.world_rotation())
      moved.append(finger)
  return moved


def shrink_hips(skeleton: Skeleton, verbose: bool = False) -> bool:
  """Move the hips 90% of the way from the leg tops up to the spine, onto the spine's X/Z.

  Direct children keep their world positions. Returns False when a needed
  bone is missing.
  """
  hips, spine = skeleton.bone(M.HIPS), skeleton.bone(M.SPINE)
  legs = [skeleton.bone(f"{s}UpperLeg") for s in M.SIDES]
  if hips is None or spine is None or any(leg is None for leg in legs):
    if verbose:
      print("[hips] skipped: hips, spine or upper legs missing")
    return False

  spine_p = spine.position
  leg_y = float(np.mean([leg.position[1] for leg in legs]))
  target = np.array([spine_p[0], G.lerp(leg_y, spine_p[1], HIP_SPINE_FRACTION), spine_p[2]])

  keep: List[Tuple[object, np.ndarray]] = [(c, c.position) for c in hips.children]
  hips.set_position(target)
  for child, world in keep:
    child.set_position(world)
  if verbose:
    print(f"[hips] moved to y={target[1]:.4f}")
  return True


class AuxiliaryAdjusters:
  """Optional passes run after the main scale."""
  def __init__(self, skel: Skeleton, verbose: bool = False):
    self.skel = skel
    self.verbose = verbose

  def run(self, *, finger_spreading: bool = False, spread_factor: float = 1.0,
          spare_thumb: bool = True, shrink_hip_bone: bool = False) -> List[str]:
    done: List[str] = []
    if finger_spreading:
      moved = spread_fingers(self.skel, spread_factor, spare_thumb)
      if self.verbose:
        print(f"[fingers] spread {len(moved)} fingers by {spread_factor:.2f}")
      done.append("finger_spreading")
    if shrink_hip_bone and shrink_hips(self.skel, self.verbose):
      done.append("shrink_hip_bone")
    return done
