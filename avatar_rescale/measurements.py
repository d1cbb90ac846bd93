"""
Body measurements over a humanoid skeleton.

All queries are read-only and return meters (or unitless ratios) in world
space, Y up, character facing +Z, arms in T-pose. Missing optional bones
degrade a query to a documented fallback; the fallback names are collected in
`Measurements.fallbacks` so callers can report them.
"""
from __future__ import annotations
import numpy as np
from typing import Dict, List, Optional, Sequence, Tuple

from .geometry import Geometry3D as G
from .methods import ArmMethod, HeightMethod, UpperBodyMethod
from .model import SkeletonModel as M
from .skeleton import Skeleton, Transform


DEFAULT_ARM_RATIO = 0.4537
VIEW_OFFSET = 0.005
DEFAULT_EYE_OFFSET = 0.06
DEFAULT_THIGH_PERCENTAGE = 0.5
DEFAULT_UPPER_BODY_RATIO = 0.44
HAND_TO_FOREARM = 0.75  # hand length estimate when no finger bones exist


def _mean(values: Sequence[Optional[float]]) -> Optional[float]:
  vals = [v for v in values if v is not None]
  if not vals:
    return None
  return float(np.mean(vals))


def _safe_ratio(num: float, den: float, default: float) -> float:
  if not np.isfinite(num) or not np.isfinite(den) or den <= 1e-9 or num <= 0.0:
    return default
  return float(num / den)


class Measurements:
  """Measurement engine for one skeleton."""

  def __init__(
    self,
    skeleton: Skeleton,
    *,
    use_bone_based_floor: bool = False,
    eye_offset: float = DEFAULT_EYE_OFFSET,
    verbose: bool = False,
  ):
    self.skel = skeleton
    self.use_bone_based_floor = use_bone_based_floor
    self.eye_offset = float(eye_offset)
    self.verbose = verbose
    self.fallbacks: List[str] = []

  def _note(self, name: str, msg: str) -> None:
    if name not in self.fallbacks:
      self.fallbacks.append(name)
      if self.verbose:
        print(f"[measure] {name}: {msg}")

  def _pos(self, bone_id: str) -> Optional[np.ndarray]:
    return self.skel.world_position(bone_id)

  def _y(self, bone_id: str) -> Optional[float]:
    p = self._pos(bone_id)
    return None if p is None else float(p[1])

  def _use_mesh(self) -> bool:
    mesh = self.skel.mesh
    return (not self.use_bone_based_floor) and mesh is not None and len(mesh) > 0

  def _feet_subtree(self) -> List[Transform]:
    out: List[Transform] = []
    for side in M.SIDES:
      for part in ("Foot", "Toes"):
        t = self.skel.bone(f"{side}{part}")
        if t is not None and t not in out:
          out += [d for d in t.walk() if d not in out]
    return out

  # ---- Vertical extent --------------------------------------------------
  def lowest_point(self) -> float:
    feet = self._feet_subtree()
    if self._use_mesh():
      verts = self.skel.mesh.world_vertices(feet) if feet else np.zeros((0, 3))
      if len(verts) == 0:
        verts = self.skel.mesh.world_vertices()
      return float(verts[:, 1].min())
    pts = [t.position[1] for t in feet]
    if not pts:
      self._note("floor_from_all_bones", "no foot/toe bones, using lowest bone")
      pts = [t.position[1] for t in self.skel.bones.values()]
    if not pts:
      return 0.0
    return float(min(pts))

  def highest_point(self) -> float:
    if self._use_mesh():
      return float(self.skel.mesh.world_vertices()[:, 1].max())
    nodes = [t for t in self.skel.root.walk() if t is not self.skel.root]
    if not nodes:
      return 0.0
    top = max(nodes, key=lambda t: t.position[1])
    top_y = float(top.position[1])
    head = self.skel.bone(M.HEAD)
    eyes = [self.skel.bone(f"{s}Eye") for s in M.SIDES]
    if head is not None and (top is head or any(top is e for e in eyes if e is not None)):
      # No crown leaf above the head joint: estimate one neck length above it
      neck = self.skel.bone(M.NECK)
      rise = G.distance(neck.position, head.position) if neck is not None else 2.0 * self.eye_offset
      self._note("crown_estimated", "no bone above the head, crown estimated")
      return max(top_y, float(head.position[1]) + rise)
    return top_y

  def eye_height(self) -> float:
    y = _mean([self._y(f"{s}Eye") for s in M.SIDES])
    if y is not None:
      return y
    head = self._y(M.HEAD)
    if head is not None:
      self._note("eye_from_head", f"no eye bones, using head + {self.eye_offset:.3f} m")
      return head + self.eye_offset
    self._note("eye_from_top", "no eye or head bones, using top - eye offset")
    return self.highest_point() - self.eye_offset

  def total_height(self) -> float:
    return self.highest_point() - self.lowest_point()

  # ---- Arms -------------------------------------------------------------
  def _center(self) -> Optional[np.ndarray]:
    for bone_id in (M.UPPER_CHEST, M.CHEST, M.SPINE, M.HIPS):
      p = self._pos(bone_id)
      if p is not None:
        return p
    return None

  def _arm_length_side(self, side: str) -> Optional[float]:
    ua, la, hand = (self._pos(f"{side}{p}") for p in ("UpperArm", "LowerArm", "Hand"))
    if ua is None or hand is None:
      return None
    if la is None:
      return G.distance(ua, hand)
    return G.chain_length([ua, la, hand])

  def _hand_length_side(self, side: str) -> Optional[float]:
    hand = self._pos(f"{side}Hand")
    if hand is None:
      return None
    for finger in ("Middle", "Index", "Ring", "Little"):
      chain = [self._pos(f"{side}{finger}{p}") for p in M.PHALANGES]
      chain = [p for p in chain if p is not None]
      if not chain:
        continue
      pts = [hand] + chain
      # Fingertip sits one last-segment length past the distal joint
      tip = G.distance(pts[-2], pts[-1]) if len(pts) > 2 else 0.0
      return G.chain_length(pts) + tip
    la = self._pos(f"{side}LowerArm")
    self._note("hand_length_estimated", "no finger bones, estimating hand length")
    return HAND_TO_FOREARM * G.distance(la, hand) if la is not None else 0.0

  def _outward(self, side: str, ua: np.ndarray) -> np.ndarray:
    center = self._center()
    if center is not None:
      d = G.normalized(G.horizontal(ua - center))
      if d is not None:
        return d
    return np.array([M.side_sign(side), 0.0, 0.0])

  def _sides(self, fn, name: str) -> float:
    v = _mean([fn(s) for s in M.SIDES])
    if v is None:
      self._note(f"{name}_unavailable", "required arm bones missing")
      return 0.0
    return v

  def arm_length(self) -> float:
    """Upper arm + forearm (shoulder joint to wrist)."""
    return self._sides(self._arm_length_side, "arm_length")

  def head_to_wrist(self) -> float:
    head = self._pos(M.HEAD)

    def side(s: str) -> Optional[float]:
      hand = self._pos(f"{s}Hand")
      return None if head is None or hand is None else G.distance(head, hand)
    return self._sides(side, "head_to_wrist")

  def head_to_elbow_vrc(self) -> float:
    """Head joint to a virtual T-pose hand placed arm-length outward from the shoulder."""
    head = self._pos(M.HEAD)

    def side(s: str) -> Optional[float]:
      ua = self._pos(f"{s}UpperArm")
      arm = self._arm_length_side(s)
      if head is None or ua is None or arm is None:
        return None
      return G.distance(head, ua + self._outward(s, ua) * arm)
    return self._sides(side, "head_to_elbow_vrc")

  def shoulder_to_fingertip(self) -> float:
    def side(s: str) -> Optional[float]:
      arm = self._arm_length_side(s)
      return None if arm is None else arm + self._hand_length_side(s)
    return self._sides(side, "shoulder_to_fingertip")

  def _center_offset(self, s: str) -> Optional[float]:
    ua, center = self._pos(f"{s}UpperArm"), self._center()
    if ua is None:
      return None
    return 0.0 if center is None else G.horizontal_distance(center, ua)

  def center_to_hand(self) -> float:
    def side(s: str) -> Optional[float]:
      off, arm = self._center_offset(s), self._arm_length_side(s)
      return None if off is None or arm is None else off + arm
    return self._sides(side, "center_to_hand")

  def center_to_fingertip(self) -> float:
    def side(s: str) -> Optional[float]:
      off, arm = self._center_offset(s), self._arm_length_side(s)
      if off is None or arm is None:
        return None
      return off + arm + self._hand_length_side(s)
    return self._sides(side, "center_to_fingertip")

  def fingertip_to_fingertip(self) -> float:
    return 2.0 * self.center_to_fingertip()

  # ---- Torso ------------------------------------------------------------
  def leg_top_y(self) -> float:
    y = _mean([self._y(f"{s}UpperLeg") for s in M.SIDES])
    if y is not None:
      return y
    hips = self._y(M.HIPS)
    if hips is not None:
      self._note("leg_top_from_hips", "no upper legs, using hips")
      return hips
    return self.lowest_point()

  def neck_y(self) -> float:
    y = self._y(M.NECK)
    if y is None:
      self._note("neck_from_head", "no neck bone, using head")
      y = self._y(M.HEAD)
    return self.eye_height() if y is None else y

  def head_y(self) -> float:
    y = self._y(M.HEAD)
    if y is None:
      self._note("head_from_eyes", "no head bone, using eye height")
      return self.eye_height()
    return y

  def upper_body_length(self) -> float:
    """Upper leg to neck."""
    return self.neck_y() - self.leg_top_y()

  def leg_to_head(self) -> float:
    return self.head_y() - self.leg_top_y()

  def floor_to_head_height(self) -> float:
    return self.head_y() - self.lowest_point()

  def head_height(self) -> float:
    """Floor to neck."""
    return self.neck_y() - self.lowest_point()

  def upper_body_portion(self) -> float:
    """Legacy split: leg top → eyes over floor → eyes."""
    eye = self.eye_height()
    return _safe_ratio(eye - self.leg_top_y(), eye - self.lowest_point(), DEFAULT_UPPER_BODY_RATIO)

  def upper_body_ratio(self, use_neck: bool = True, torso_use_neck: bool = True) -> float:
    method = UpperBodyMethod.from_flags(False, use_neck, torso_use_neck)
    return self.upper_body_by_method(method)

  def alternate_upper_body_ratio(self) -> float:
    """Leg top → neck over floor → eyes."""
    return _safe_ratio(self.upper_body_length(), self.eye_height() - self.lowest_point(),
                       DEFAULT_UPPER_BODY_RATIO)

  def _landmark_y(self, name: str) -> float:
    return {"eye": self.eye_height, "neck": self.neck_y, "head": self.head_y}[name]()

  def upper_body_landmarks(self, method: UpperBodyMethod) -> Tuple[float, float]:
    """World Y of the (numerator top, denominator top) landmarks."""
    num, den = method.landmarks
    return self._landmark_y(num), self._landmark_y(den)

  # ---- Limbs ------------------------------------------------------------
  def _thickness(self, part: str) -> float:
    scales = [self.skel.bone(f"{s}{part}") for s in M.SIDES]
    vals = [float(np.mean(t.local_scale)) for t in scales if t is not None]
    if not vals:
      return 1.0
    return float(np.clip(np.mean(vals), 0.0, 1.0))

  def current_arm_thickness(self) -> float:
    return self._thickness("UpperArm")

  def current_leg_thickness(self) -> float:
    return self._thickness("UpperLeg")

  def _leg_segments(self, side: str) -> Optional[Tuple[np.ndarray, np.ndarray, np.ndarray]]:
    pts = [self._pos(f"{side}{p}") for p in ("UpperLeg", "LowerLeg", "Foot")]
    if any(p is None for p in pts):
      return None
    return pts[0], pts[1], pts[2]

  def thigh_percentage(self) -> float:
    """hip→knee over hip→knee→ankle."""
    def side(s: str) -> Optional[float]:
      seg = self._leg_segments(s)
      if seg is None:
        return None
      hip, knee, ankle = seg
      thigh, shin = G.distance(hip, knee), G.distance(knee, ankle)
      return None if thigh + shin <= 1e-9 else thigh / (thigh + shin)
    v = _mean([side(s) for s in M.SIDES])
    if v is None:
      self._note("thigh_default", "leg bones missing, using 50%")
      return DEFAULT_THIGH_PERCENTAGE
    return v

  def leg_profile(self) -> Optional[Dict[str, float]]:
    """Side-averaged leg extents used to split the leg scale."""
    floor = self.lowest_point()
    rows = []
    for s in M.SIDES:
      seg = self._leg_segments(s)
      if seg is None:
        continue
      hip, knee, ankle = seg
      rows.append((
        hip[1] - knee[1], knee[1] - ankle[1], ankle[1] - floor,
        G.distance(hip, knee), G.distance(knee, ankle),
      ))
    if not rows:
      return None
    a = np.mean(np.asarray(rows), axis=0)
    keys = ("thigh_v", "shin_v", "foot_v", "thigh", "shin")
    return {k: float(v) for k, v in zip(keys, a)}

  # ---- Resolvers --------------------------------------------------------
  def height_by_method(self, method: HeightMethod) -> float:
    if HeightMethod(method) is HeightMethod.EYE_HEIGHT:
      return self.eye_height() - self.lowest_point()
    return self.total_height()

  def arm_by_method(self, method: ArmMethod) -> float:
    fn = {
      ArmMethod.HEAD_TO_ELBOW_VRC: self.head_to_elbow_vrc,
      ArmMethod.HEAD_TO_HAND: self.head_to_wrist,
      ArmMethod.ARM_LENGTH: self.arm_length,
      ArmMethod.SHOULDER_TO_FINGERTIP: self.shoulder_to_fingertip,
      ArmMethod.CENTER_TO_HAND: self.center_to_hand,
      ArmMethod.CENTER_TO_FINGERTIP: self.center_to_fingertip,
    }[ArmMethod(method)]
    return fn()

  def upper_body_by_method(self, method: UpperBodyMethod) -> float:
    method = UpperBodyMethod(method)
    if method is UpperBodyMethod.LEGACY:
      return self.upper_body_portion()
    num_top, den_top = self.upper_body_landmarks(method)
    return _safe_ratio(num_top - self.leg_top_y(), den_top - self.lowest_point(),
                       DEFAULT_UPPER_BODY_RATIO)

  # ---- Diagnostics ------------------------------------------------------
  def scale_ratio(
    self,
    arm_method: ArmMethod = ArmMethod.HEAD_TO_ELBOW_VRC,
    height_method: HeightMethod = HeightMethod.EYE_HEIGHT,
  ) -> float:
    """Arm / (height - view offset); the ratio an IK system reads back."""
    return _safe_ratio(self.arm_by_method(arm_method),
                       self.height_by_method(height_method) - VIEW_OFFSET,
                       DEFAULT_ARM_RATIO)

  def ratios(self, height_method: HeightMethod = HeightMethod.EYE_HEIGHT) -> Dict[str, float]:
    out = {f"arm/{m.value}": self.scale_ratio(m, height_method) for m in ArmMethod}
    for m in UpperBodyMethod:
      out[f"upper_body/{m.value}"] = self.upper_body_by_method(m)
    out["upper_body/alternate"] = self.alternate_upper_body_ratio()
    out["thigh"] = self.thigh_percentage()
    return out

  def summary(self) -> Dict[str, float]:
    return {
      "lowest_point": self.lowest_point(),
      "highest_point": self.highest_point(),
      "total_height": self.total_height(),
      "eye_height": self.eye_height() - self.lowest_point(),
      "head_to_elbow_vrc": self.head_to_elbow_vrc(),
      "head_to_wrist": self.head_to_wrist(),
      "arm_length": self.arm_length(),
      "shoulder_to_fingertip": self.shoulder_to_fingertip(),
      "center_to_hand": self.center_to_hand(),
      "center_to_fingertip": self.center_to_fingertip(),
      "fingertip_to_fingertip": self.fingertip_to_fingertip(),
      "upper_body_length": self.upper_body_length(),
      "leg_to_head": self.leg_to_head(),
      "floor_to_neck": self.head_height(),
      "floor_to_head": self.floor_to_head_height(),
      "arm_thickness": self.current_arm_thickness(),
      "leg_thickness": self.current_leg_thickness(),
      "thigh_percentage": self.thigh_percentage(),
    }
