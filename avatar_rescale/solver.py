from __future__ import annotations
import dataclasses
from typing import List, Optional, Tuple

import numpy as np
from scipy.optimize import brentq

from .applier import HierarchicalScaleApplier
from .config import ScaleFactors, ScalingParameters
from .errors import DegenerateMeasurement
from .geometry import Geometry3D as G
from .measurements import VIEW_OFFSET, Measurements
from .skeleton import Skeleton


class ProportionSolver:
  """Turn ScalingParameters into ScaleFactors without touching the skeleton.

  Every candidate is tried on a copy of the skeleton, so the realized height
  and arm ratio are measured, not extrapolated.
  """

  K_BRACKET = (0.05, 20.0)

  def __init__(self, skeleton: Skeleton, verbose: bool = False):
    self.skel = skeleton
    self.verbose = verbose
    self._trial_notes: List[str] = []

  def _measure(self, skel: Skeleton, params: ScalingParameters) -> Measurements:
    return Measurements(skel, use_bone_based_floor=params.use_bone_based_floor)

  @staticmethod
  def _merge(into: List[str], *sources) -> List[str]:
    """Append unseen fallback names from each source, keeping first-seen order."""
    for src in sources:
      for n in src:
        if n not in into:
          into.append(n)
    return into

  def _log(self, msg: str) -> None:
    if self.verbose:
      print(f"[solve] {msg}")

  # ---- Torso / legs -----------------------------------------------------
  def split_upper_lower(self, m: Measurements, params: ScalingParameters) -> Tuple[float, float, Optional[str]]:
    """Upper/lower factors that put the upper-body landmark at the target share of D.

    U = leg top → numerator top, L = floor → leg top, D = floor → denominator
    top, E = numerator top → denominator top. Keeps D fixed:
    s_u·(U + E) + s_l·L = D and s_u·U = p·D.
    """
    num_top, den_top = m.upper_body_landmarks(params.upper_body_method)
    leg_top, floor = m.leg_top_y(), m.lowest_point()
    U, L = num_top - leg_top, leg_top - floor
    D, E = den_top - floor, den_top - num_top
    p = params.upper_body_percentage / 100.0
    if min(U, L, D) <= 1e-6:
      return 1.0, 1.0, "degenerate_upper_body"
    s_u = p * D / U
    s_l = (D - s_u * (U + E)) / L
    if not np.isfinite(s_l) or s_l <= 1e-3:
      return 1.0, 1.0, "degenerate_lower_body"
    return float(s_u), float(s_l), None

  def split_leg(
    self, m: Measurements, params: ScalingParameters, s_l: float
  ) -> Tuple[float, float, float, Optional[str]]:
    """Thigh, shin and foot factors for a leg whose floor → leg-top extent scales by s_l."""
    prof = m.leg_profile()
    foot_factor = s_l if params.scale_foot else 1.0
    if prof is None or min(prof["thigh"], prof["shin"]) <= 1e-6:
      return s_l, s_l, foot_factor, "leg_split_unavailable"
    L = prof["thigh_v"] + prof["shin_v"] + prof["foot_v"]
    rem = s_l * L - prof["foot_v"] * foot_factor
    tp = params.thigh_percentage / 100.0
    cos_t = prof["thigh_v"] / prof["thigh"]
    cos_s = prof["shin_v"] / prof["shin"]
    den = cos_t + (1.0 - tp) / tp * cos_s
    if rem <= 1e-6 or den <= 1e-6:
      return s_l, s_l, foot_factor, "leg_split_unavailable"
    thigh_new = rem / den
    shin_new = thigh_new * (1.0 - tp) / tp
    return thigh_new / prof["thigh"], shin_new / prof["shin"], foot_factor, None

  # ---- Trials -----------------------------------------------------------
  def trial(self, factors: ScaleFactors, params: ScalingParameters) -> Tuple[Skeleton, float]:
    """Apply proportions to a copy; return it with the uniform factor reaching the target."""
    clone = self.skel.copy()
    HierarchicalScaleApplier(clone).apply_proportions(factors, params)
    if params.skip_scale:
      return clone, 1.0
    m = self._measure(clone, params)
    h = m.height_by_method(params.effective_height_method)
    self._merge(self._trial_notes, m.fallbacks)
    if not np.isfinite(h) or h <= 1e-9:
      raise DegenerateMeasurement(f"Height collapsed to {h!r} while solving")
    return clone, params.target_height / h

  def _arm_state(self, base: ScaleFactors, params: ScalingParameters, k: float) -> Tuple[float, float, float]:
    clone, hs = self.trial(dataclasses.replace(base, arm_length_factor=k, arm_thickness=G.lerp(k, 1.0, params.arm_thickness / 100.0)), params)
    m = self._measure(clone, params)
    arm, ah = m.arm_by_method(params.arm_method), m.height_by_method(params.arm_height_method)
    self._merge(self._trial_notes, m.fallbacks)
    return hs, arm * hs, ah * hs

  def solve_arm(self, base: ScaleFactors, params: ScalingParameters) -> Tuple[float, Optional[str]]:
    r = params.custom_scale_ratio

    def residual(k: float) -> float:
      _, arm, ah = self._arm_state(base, params, k)
      return arm - r * (ah - VIEW_OFFSET)

    _, arm1, ah1 = self._arm_state(base, params, 1.0)
    if arm1 <= 1e-9:
      return 1.0, "arm_unmeasurable"
    lo, hi = self.K_BRACKET
    f_lo, f_hi = residual(lo), residual(hi)
    if np.sign(f_lo) == np.sign(f_hi):
      k = float(np.clip(r * (ah1 - VIEW_OFFSET) / arm1, lo, hi))
      return k, "arm_linear_estimate"
    return float(brentq(residual, lo, hi, xtol=1e-12, rtol=1e-12)), None

  # ---- Solve ------------------------------------------------------------
  def solve(self, params: ScalingParameters) -> ScaleFactors:
    params, notes = params.validate()
    self._trial_notes = []
    m = self._measure(self.skel, params)
    current = m.height_by_method(params.effective_height_method)
    if not np.isfinite(current) or current <= 1e-9:
      raise DegenerateMeasurement(f"Current height is {current!r}; skeleton cannot be scaled")
    self._log(f"current={current:.4f} target={params.target_height:.4f} method={params.effective_height_method.value}")

    if params.skip_adjust:
      s_u = s_l = thigh_f = shin_f = foot_f = 1.0
      notes.append("proportions_skipped")
    else:
      s_u, s_l, note = self.split_upper_lower(m, params)
      if note:
        notes.append(note)
      thigh_f, shin_f, foot_f, note = self.split_leg(m, params, s_l)
      if note:
        notes.append(note)

    leg_t = G.lerp(s_l, 1.0, params.leg_thickness / 100.0)
    base = ScaleFactors(
      torso_scale=s_u, thigh_factor=thigh_f, shin_factor=shin_f,
      foot_factor=foot_f, leg_thickness=leg_t,
    )
    if params.skip_adjust:
      k = 1.0
    else:
      k, note = self.solve_arm(base, params)
      if note:
        notes.append(note)
    arm_t = G.lerp(k, 1.0, params.arm_thickness / 100.0)
    base = dataclasses.replace(base, arm_length_factor=k, arm_thickness=arm_t)

    _, hs = self.trial(base, params)
    arm_cur = m.arm_by_method(params.arm_method)
    _, arm_new, _ = self._arm_state(base, params, k)
    arm_scale = arm_new / arm_cur if arm_cur > 1e-9 else hs

    factors = dataclasses.replace(
      base,
      overall_scale=params.target_height / current,
      upper_body_scale=s_u * hs,
      lower_body_scale=s_l * hs,
      leg_scale=s_l * hs,
      thigh_scale=thigh_f * hs,
      shin_scale=shin_f * hs,
      arm_scale=arm_scale,
      height_scale=hs,
      fallbacks=tuple(self._merge(notes, m.fallbacks, self._trial_notes)),
    )
    factors.validate()
    self._log(
      f"overall={factors.overall_scale:.4f} upper={factors.upper_body_scale:.4f} "
      f"lower={factors.lower_body_scale:.4f} arm={factors.arm_scale:.4f} "
      f"k={k:.4f} hs={hs:.4f}")
    for n in factors.fallbacks:
      self._log(f"fallback: {n}")
    return factors
