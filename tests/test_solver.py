import unittest
from pathlib import Path
import sys

import numpy as np


# Allow `import avatar_rescale` from the repo root.
_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
  sys.path.insert(0, str(_ROOT))

from avatar_rescale.config import MIN_TARGET_HEIGHT, ScaleFactors, ScalingParameters
from avatar_rescale.errors import DegenerateMeasurement, InvalidTarget, MissingRequiredBone
from avatar_rescale.measurements import Measurements
from avatar_rescale.methods import HeightMethod, UpperBodyMethod
from avatar_rescale.model import SkeletonModel
from avatar_rescale.solver import ProportionSolver


class TestScalingParameters(unittest.TestCase):
  def test_defaults(self) -> None:
    p = ScalingParameters()
    self.assertEqual(p.target_height, 1.61)
    self.assertEqual(p.upper_body_percentage, 44.0)
    self.assertEqual(p.custom_scale_ratio, 0.4537)
    self.assertIs(p.upper_body_method, UpperBodyMethod.LEG_TO_NECK_OVER_FLOOR_TO_NECK)

  def test_invalid_targets_rejected(self) -> None:
    for h in (0.0, -1.0, float("nan"), float("inf")):
      with self.assertRaises(InvalidTarget):
        ScalingParameters(target_height=h).validate()

  def test_small_target_clamped(self) -> None:
    p, notes = ScalingParameters(target_height=0.01).validate()
    self.assertEqual(p.target_height, MIN_TARGET_HEIGHT)
    self.assertIn("target_height_clamped", notes)

  def test_sliders_clipped(self) -> None:
    p, notes = ScalingParameters(
      upper_body_percentage=95.0, thigh_percentage=2.0, arm_thickness=150.0,
      custom_scale_ratio=-1.0,
    ).validate()
    self.assertEqual(p.upper_body_percentage, 75.0)
    self.assertEqual(p.thigh_percentage, 10.0)
    self.assertEqual(p.arm_thickness, 100.0)
    self.assertEqual(p.custom_scale_ratio, 0.4537)
    self.assertIn("default_arm_ratio", notes)

  def test_scale_eyes_forces_eye_height(self) -> None:
    self.assertIs(ScalingParameters(scale_eyes=True).effective_height_method, HeightMethod.EYE_HEIGHT)
    self.assertIs(ScalingParameters().effective_height_method, HeightMethod.TOTAL_HEIGHT)

  def test_upper_body_flags(self) -> None:
    self.assertIs(ScalingParameters(upper_body_use_legacy=True).upper_body_method, UpperBodyMethod.LEGACY)
    p = ScalingParameters(upper_body_use_neck=False, upper_body_torso_use_neck=False)
    self.assertIs(p.upper_body_method, UpperBodyMethod.LEG_TO_HEAD_OVER_FLOOR_TO_HEAD)
    self.assertEqual(p.upper_body_method.landmarks, ("head", "head"))


class TestScaleFactors(unittest.TestCase):
  def test_non_finite_factor_rejected(self) -> None:
    with self.assertRaises(DegenerateMeasurement):
      ScaleFactors(height_scale=float("nan")).validate()
    with self.assertRaises(DegenerateMeasurement):
      ScaleFactors(arm_length_factor=0.0).validate()
    ScaleFactors().validate()


class TestProportionSolver(unittest.TestCase):
  def setUp(self) -> None:
    self.skel = SkeletonModel.build_t_pose()
    self.solver = ProportionSolver(self.skel)

  def test_upper_lower_split(self) -> None:
    m = Measurements(self.skel)
    s_u, s_l, note = self.solver.split_upper_lower(m, ScalingParameters())
    self.assertIsNone(note)
    self.assertAlmostEqual(s_u, 0.44 * 1.47 / 0.55)
    self.assertAlmostEqual(s_l, (1.47 - s_u * 0.55) / 0.92)

  def test_legacy_split_targets_eye_share(self) -> None:
    m = Measurements(self.skel)
    params = ScalingParameters(upper_body_use_legacy=True)
    s_u, s_l, _ = self.solver.split_upper_lower(m, params)
    self.assertAlmostEqual(s_u * 0.69 / (s_u * 0.69 + s_l * 0.92), 0.44)

  def test_leg_split_keeps_foot(self) -> None:
    m = Measurements(self.skel)
    thigh, shin, foot, note = self.solver.split_leg(m, ScalingParameters(thigh_percentage=60.0), 0.9)
    self.assertIsNone(note)
    self.assertEqual(foot, 1.0)
    self.assertAlmostEqual(0.42 * thigh + 0.42 * shin + 0.08, 0.9 * 0.92)
    self.assertAlmostEqual(0.42 * thigh / (0.42 * thigh + 0.42 * shin), 0.6)

  def test_reference_factors(self) -> None:
    f = self.solver.solve(ScalingParameters())
    self.assertAlmostEqual(f.overall_scale, 1.61 / 1.70)
    self.assertGreater(abs(f.upper_body_scale - f.overall_scale), 0.05)
    self.assertGreater(abs(f.lower_body_scale - f.overall_scale), 0.05)
    self.assertEqual(f.leg_scale, f.lower_body_scale)
    for name in ("overall_scale", "upper_body_scale", "lower_body_scale", "arm_scale",
                 "leg_scale", "thigh_scale", "shin_scale", "height_scale", "arm_length_factor"):
      v = getattr(f, name)
      self.assertTrue(np.isfinite(v) and v > 0.0, name)

  def test_solve_does_not_mutate(self) -> None:
    before = {t.name: t.position for t in self.skel.transforms()}
    self.solver.solve(ScalingParameters(target_height=2.2, arm_thickness=40.0))
    for t in self.skel.transforms():
      np.testing.assert_array_equal(t.position, before[t.name])

  def test_skip_adjust_is_uniform(self) -> None:
    f = self.solver.solve(ScalingParameters(skip_adjust=True))
    self.assertEqual(f.torso_scale, 1.0)
    self.assertEqual(f.arm_length_factor, 1.0)
    self.assertAlmostEqual(f.height_scale, 1.61 / 1.70)
    self.assertIn("proportions_skipped", f.fallbacks)

  def test_skip_scale_keeps_root(self) -> None:
    f = self.solver.solve(ScalingParameters(skip_scale=True))
    self.assertEqual(f.height_scale, 1.0)

  def test_armless_skeleton_keeps_arm_factor(self) -> None:
    skel = SkeletonModel.build_t_pose(omit=["LeftUpperArm", "RightUpperArm"])
    f = ProportionSolver(skel).solve(ScalingParameters())
    self.assertEqual(f.arm_length_factor, 1.0)
    self.assertIn("arm_unmeasurable", f.fallbacks)

  def test_trial_fallbacks_reported(self) -> None:
    f = ProportionSolver(SkeletonModel.build_t_pose(with_eyes=False)).solve(ScalingParameters())
    self.assertIn("eye_from_head", f.fallbacks)
    self.assertEqual(len(f.fallbacks), len(set(f.fallbacks)))

  def test_fallbacks_reset_between_solves(self) -> None:
    solver = ProportionSolver(SkeletonModel.build_t_pose(with_eyes=False))
    solver.solve(ScalingParameters())
    solver.skel = self.skel
    self.assertNotIn("eye_from_head", solver.solve(ScalingParameters()).fallbacks)

  def test_missing_hips_raises_before_mutation(self) -> None:
    del self.skel.bones["Hips"]
    with self.assertRaises(MissingRequiredBone):
      self.solver.solve(ScalingParameters())

  def test_invalid_target_raises(self) -> None:
    with self.assertRaises(InvalidTarget):
      self.solver.solve(ScalingParameters(target_height=-1.0))


class TestModuleLayout(unittest.TestCase):
  def test_applier_shares_config_types(self) -> None:
    from avatar_rescale import applier, config, solver
    self.assertIs(applier.ScaleFactors, config.ScaleFactors)
    self.assertIs(solver.ScalingParameters, config.ScalingParameters)
    self.assertIs(solver.HierarchicalScaleApplier, applier.HierarchicalScaleApplier)


if __name__ == "__main__":
  unittest.main()
