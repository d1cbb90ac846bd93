from __future__ import annotations

from .measurements import Measurements
from .model import SkeletonModel as M
from .skeleton import Skeleton
from .config import ScaleFactors, ScalingParameters


class HierarchicalScaleApplier:
  """Write solved factors into local transforms, parents before children.

  Only local values are touched. A bone's scale is set before its children's
  offsets are corrected, so each correction divides out exactly what the
  hierarchy already inherited.
  """

  def __init__(self, skeleton: Skeleton, verbose: bool = False):
    self.skel = skeleton
    self.verbose = verbose

  def _log(self, msg: str) -> None:
    if self.verbose:
      print(f"[apply] {msg}")

  # ---- Segments ---------------------------------------------------------
  def apply_torso(self, f: ScaleFactors) -> None:
    """Scale everything above the leg tops by the torso factor."""
    hips = self.skel.require(M.HIPS, "upper body scaling")
    legs = [leg for leg in (self.skel.bone(f"{s}UpperLeg") for s in M.SIDES) if leg is not None]
    for child in hips.children:
      self._scale_torso_branch(child, f.torso_scale, legs)

  def _scale_torso_branch(self, node, s: float, legs) -> None:
    # Leg ancestors keep their scale; only offsets follow the torso.
    Skeleton.set_local_position(node, node.local_position * s)
    if any(node is leg for leg in legs):
      return
    if any(leg.is_descendant_of(node) for leg in legs):
      for child in node.children:
        self._scale_torso_branch(child, s, legs)
      return
    Skeleton.set_local_scale(node, node.local_scale * s)

  def apply_legs(self, f: ScaleFactors) -> None:
    t = f.leg_thickness
    for side in M.SIDES:
      upper, lower, foot = (self.skel.bone(f"{side}{p}") for p in ("UpperLeg", "LowerLeg", "Foot"))
      if upper is None:
        continue
      Skeleton.set_local_scale(upper, upper.local_scale * t)
      if lower is not None:
        Skeleton.set_local_position(lower, lower.local_position * (f.thigh_factor / t))
      if foot is not None:
        Skeleton.set_local_position(foot, foot.local_position * (f.shin_factor / t))
        Skeleton.set_local_scale(foot, foot.local_scale * (f.foot_factor / t))

  def apply_arms(self, f: ScaleFactors, scale_hand: bool = False) -> None:
    k, t = f.arm_length_factor, f.arm_thickness
    for side in M.SIDES:
      upper, lower, hand = (self.skel.bone(f"{side}{p}") for p in ("UpperArm", "LowerArm", "Hand"))
      if upper is None:
        continue
      Skeleton.set_local_scale(upper, upper.local_scale * t)
      for child in (lower, hand):
        if child is not None:
          Skeleton.set_local_position(child, child.local_position * (k / t))
      if hand is not None:
        # Unscaled hands keep their size against torso and arm changes
        keep = k / t if scale_hand else 1.0 / (f.torso_scale * t)
        Skeleton.set_local_scale(hand, hand.local_scale * keep)

  def apply_proportions(self, f: ScaleFactors, params: ScalingParameters) -> None:
    self.apply_torso(f)
    self.apply_legs(f)
    self.apply_arms(f, params.scale_hand)

  # ---- Root -------------------------------------------------------------
  def apply_height(self, f: ScaleFactors) -> None:
    root = self.skel.root
    Skeleton.set_local_scale(root, root.local_scale * f.height_scale)

  def move_to_floor(self, use_bone_based_floor: bool = False) -> float:
    lowest = Measurements(self.skel, use_bone_based_floor=use_bone_based_floor).lowest_point()
    root = self.skel.root
    pos = root.local_position.copy()
    pos[1] -= lowest
    Skeleton.set_local_position(root, pos)
    return lowest

  def center(self) -> None:
    root = self.skel.root
    pos = root.local_position.copy()
    pos[0] = pos[2] = 0.0
    Skeleton.set_local_position(root, pos)

  # ---- Full pass --------------------------------------------------------
  def apply(self, f: ScaleFactors, params: ScalingParameters) -> None:
    f.validate()
    self.skel.require(M.HIPS, "scaling")
    self.apply_proportions(f, params)
    self.apply_height(f)
    self._log(f"torso={f.torso_scale:.4f} legs={f.thigh_factor:.4f}/{f.shin_factor:.4f} "
              f"arm={f.arm_length_factor:.4f} height={f.height_scale:.4f}")
    if not params.skip_floor:
      lowest = self.move_to_floor(params.use_bone_based_floor)
      self._log(f"moved {-lowest:+.4f} m to floor")
    if params.center_model:
      self.center()
