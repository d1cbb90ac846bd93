from __future__ import annotations
import dataclasses
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Optional, Protocol, Sequence

import numpy as np

from .adjusters import AuxiliaryAdjusters
from .applier import HierarchicalScaleApplier
from .measurements import Measurements
from .methods import HeightMethod
from .skeleton import Skeleton, preview as preview_transaction
from .config import ScaleFactors, ScalingParameters
from .solver import ProportionSolver


class ViewPositionStore(Protocol):
  """Host object holding the avatar's view (and voice) position."""
  def get_view_position(self) -> Sequence[float]: ...
  def set_view_position(self, value: Sequence[float]) -> None: ...


def rescale_view_position(store: ViewPositionStore, ratio: float) -> np.ndarray:
  pos = np.asarray(store.get_view_position(), float) * float(ratio)
  store.set_view_position(pos)
  return pos


@dataclass(frozen=True)
class ScaleResult:
  factors: ScaleFactors
  final_height: float
  height_ratio: float           # realized root scale change, for the view position
  adjustments: tuple = ()


class AvatarScaler:
  """measure → solve → apply → (optional) adjust, for one skeleton."""

  def __init__(self, skeleton: Skeleton, verbose: bool = False):
    self.skel = skeleton
    self.verbose = verbose

  def measure(self, params: Optional[ScalingParameters] = None) -> Measurements:
    params = params or ScalingParameters()
    return Measurements(self.skel, use_bone_based_floor=params.use_bone_based_floor, verbose=self.verbose)

  def suggest_parameters(self, base: Optional[ScalingParameters] = None) -> ScalingParameters:
    """Parameters that reproduce the avatar's current proportions."""
    base = base or ScalingParameters()
    m = self.measure(base)
    return dataclasses.replace(
      base,
      target_height=round(m.height_by_method(base.effective_height_method), 4),
      upper_body_percentage=round(100.0 * m.upper_body_by_method(base.upper_body_method), 2),
      custom_scale_ratio=round(m.scale_ratio(base.arm_method, base.arm_height_method), 4),
      arm_thickness=round(100.0 * m.current_arm_thickness(), 2),
      leg_thickness=round(100.0 * m.current_leg_thickness(), 2),
      thigh_percentage=round(100.0 * m.thigh_percentage(), 2),
    )

  def solve(self, params: ScalingParameters) -> ScaleFactors:
    return ProportionSolver(self.skel, self.verbose).solve(params)

  def scale_avatar(self, params: ScalingParameters) -> ScaleResult:
    factors = self.solve(params)
    params, _ = params.validate()
    root_before = float(np.mean(self.skel.root.local_scale))
    HierarchicalScaleApplier(self.skel, self.verbose).apply(factors, params)
    done = AuxiliaryAdjusters(self.skel, self.verbose).run(
      finger_spreading=params.apply_finger_spreading,
      spread_factor=params.finger_spread_factor,
      spare_thumb=params.spare_thumb,
      shrink_hip_bone=params.apply_shrink_hip_bone,
    )
    final = self.measure(params).height_by_method(HeightMethod.TOTAL_HEIGHT)
    ratio = float(np.mean(self.skel.root.local_scale)) / root_before
    if self.verbose:
      print(f"[scale] final height {final:.4f} m, root ratio {ratio:.4f}")
    return ScaleResult(factors, final, ratio, tuple(done))

  @contextmanager
  def preview(self, params: ScalingParameters, view_store: Optional[ViewPositionStore] = None):
    """Scale inside a transaction; skeleton and view position are restored on exit."""
    original_view = None if view_store is None else np.asarray(view_store.get_view_position(), float).copy()
    with preview_transaction(self.skel):
      try:
        result = self.scale_avatar(params)
        if view_store is not None:
          rescale_view_position(view_store, result.height_ratio)
        yield result
      finally:
        if view_store is not None:
          view_store.set_view_position(original_view)

  def report(self, params: Optional[ScalingParameters] = None) -> Dict[str, float]:
    m = self.measure(params)
    out = m.summary()
    out.update(m.ratios())
    return out
