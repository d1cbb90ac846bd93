from __future__ import annotations
from enum import Enum
from typing import Tuple


class HeightMethod(str, Enum):
  """What "height" means: floor to crown, or floor to eyes."""
  TOTAL_HEIGHT = "total_height"
  EYE_HEIGHT = "eye_height"


class ArmMethod(str, Enum):
  """Which two landmarks define "arm length" for the arm/height ratio."""
  HEAD_TO_ELBOW_VRC = "head_to_elbow_vrc"
  HEAD_TO_HAND = "head_to_hand"
  ARM_LENGTH = "arm_length"
  SHOULDER_TO_FINGERTIP = "shoulder_to_fingertip"
  CENTER_TO_HAND = "center_to_hand"
  CENTER_TO_FINGERTIP = "center_to_fingertip"


class UpperBodyMethod(str, Enum):
  """Upper-body ratio convention.

  LEGACY compares leg top → eyes against floor → eyes. The others are
  "leg top → {neck|head}" over "floor → {neck|head}".
  """
  LEGACY = "legacy"
  LEG_TO_NECK_OVER_FLOOR_TO_NECK = "leg_to_neck_over_floor_to_neck"
  LEG_TO_NECK_OVER_FLOOR_TO_HEAD = "leg_to_neck_over_floor_to_head"
  LEG_TO_HEAD_OVER_FLOOR_TO_NECK = "leg_to_head_over_floor_to_neck"
  LEG_TO_HEAD_OVER_FLOOR_TO_HEAD = "leg_to_head_over_floor_to_head"

  @classmethod
  def from_flags(cls, use_legacy: bool, use_neck: bool, torso_use_neck: bool) -> "UpperBodyMethod":
    # use_neck picks the denominator top, torso_use_neck the numerator top
    if use_legacy:
      return cls.LEGACY
    table = {
      (True, True): cls.LEG_TO_NECK_OVER_FLOOR_TO_NECK,
      (True, False): cls.LEG_TO_NECK_OVER_FLOOR_TO_HEAD,
      (False, True): cls.LEG_TO_HEAD_OVER_FLOOR_TO_NECK,
      (False, False): cls.LEG_TO_HEAD_OVER_FLOOR_TO_HEAD,
    }
    return table[(bool(torso_use_neck), bool(use_neck))]

  @property
  def landmarks(self) -> Tuple[str, str]:
    """(numerator top, denominator top) as 'eye' | 'neck' | 'head'."""
    if self is UpperBodyMethod.LEGACY:
      return ("eye", "eye")
    parts = self.value.split("_")  # leg_to_<num>_over_floor_to_<den>
    return (parts[2], parts[6])
