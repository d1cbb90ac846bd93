from __future__ import annotations
import dataclasses
from dataclasses import dataclass, field
from typing import List, Tuple

import numpy as np

from .errors import DegenerateMeasurement, InvalidTarget
from .measurements import DEFAULT_ARM_RATIO
from .methods import ArmMethod, HeightMethod, UpperBodyMethod


MIN_TARGET_HEIGHT = 0.05


@dataclass(frozen=True)
class ScalingParameters:
  """User settings for one scaling run. Percentages are 0-100."""
  target_height: float = 1.61
  upper_body_percentage: float = 44.0
  custom_scale_ratio: float = DEFAULT_ARM_RATIO
  arm_thickness: float = 0.0
  leg_thickness: float = 0.0
  thigh_percentage: float = 53.0

  scale_hand: bool = False
  scale_foot: bool = False
  scale_eyes: bool = False           # measure height to the eyes
  center_model: bool = False
  use_bone_based_floor: bool = False

  # debug
  skip_adjust: bool = False          # only the uniform height scale
  skip_floor: bool = False
  skip_scale: bool = False           # no uniform height scale

  target_height_method: HeightMethod = HeightMethod.TOTAL_HEIGHT
  arm_method: ArmMethod = ArmMethod.HEAD_TO_ELBOW_VRC
  arm_height_method: HeightMethod = HeightMethod.EYE_HEIGHT
  upper_body_use_legacy: bool = False
  upper_body_use_neck: bool = True
  upper_body_torso_use_neck: bool = True

  # auxiliary tools
  apply_finger_spreading: bool = False
  finger_spread_factor: float = 1.0
  spare_thumb: bool = True
  apply_shrink_hip_bone: bool = False

  # slider ranges
  UPPER_BODY_RANGE = (30.0, 75.0)
  RATIO_RANGE = (0.2, 0.8)
  THIGH_RANGE = (10.0, 90.0)
  SPREAD_RANGE = (0.0, 2.0)

  @property
  def upper_body_method(self) -> UpperBodyMethod:
    return UpperBodyMethod.from_flags(
      self.upper_body_use_legacy, self.upper_body_use_neck, self.upper_body_torso_use_neck)

  @property
  def effective_height_method(self) -> HeightMethod:
    if self.scale_eyes:
      return HeightMethod.EYE_HEIGHT
    return HeightMethod(self.target_height_method)

  def validate(self) -> Tuple["ScalingParameters", List[str]]:
    """Reject unusable targets, clip the rest into range. Returns (params, notes)."""
    h = self.target_height
    if h is None or not np.isfinite(h) or h <= 0.0:
      raise InvalidTarget(f"Target height must be a positive finite number, got {h!r}")
    notes: List[str] = []
    if h < MIN_TARGET_HEIGHT:
      notes.append("target_height_clamped")
      h = MIN_TARGET_HEIGHT

    ratio = self.custom_scale_ratio
    if ratio is None or not np.isfinite(ratio) or ratio <= 0.0:
      notes.append("default_arm_ratio")
      ratio = DEFAULT_ARM_RATIO
    ratio = float(np.clip(ratio, *self.RATIO_RANGE))

    def pct(v: float, lo: float = 0.0, hi: float = 100.0) -> float:
      return float(np.clip(v if np.isfinite(v) else lo, lo, hi))

    return dataclasses.replace(
      self,
      target_height=float(h),
      custom_scale_ratio=ratio,
      upper_body_percentage=pct(self.upper_body_percentage, *self.UPPER_BODY_RANGE),
      arm_thickness=pct(self.arm_thickness),
      leg_thickness=pct(self.leg_thickness),
      thigh_percentage=pct(self.thigh_percentage, *self.THIGH_RANGE),
      finger_spread_factor=pct(self.finger_spread_factor, *self.SPREAD_RANGE),
    ), notes


@dataclass(frozen=True)
class ScaleFactors:
  """Solved factors. World factors are final length / current length."""
  overall_scale: float = 1.0
  upper_body_scale: float = 1.0
  lower_body_scale: float = 1.0
  arm_scale: float = 1.0
  leg_scale: float = 1.0
  thigh_scale: float = 1.0
  shin_scale: float = 1.0
  # consumed by the applier
  torso_scale: float = 1.0           # upper body, before the uniform height scale
  thigh_factor: float = 1.0          # thigh vector, before the uniform height scale
  shin_factor: float = 1.0
  foot_factor: float = 1.0
  height_scale: float = 1.0
  arm_length_factor: float = 1.0     # arm chain relative to the torso
  arm_thickness: float = 1.0
  leg_thickness: float = 1.0
  fallbacks: Tuple[str, ...] = field(default_factory=tuple)

  def validate(self) -> None:
    for f in dataclasses.fields(self):
      if f.name == "fallbacks":
        continue
      v = getattr(self, f.name)
      if not np.isfinite(v) or v <= 0.0:
        raise DegenerateMeasurement(f"Scale factor {f.name}={v!r} is not finite and positive")

