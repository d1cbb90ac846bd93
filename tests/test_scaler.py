import unittest
from pathlib import Path
import sys

import numpy as np


# Allow `import avatar_rescale` from the repo root.
_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
  sys.path.insert(0, str(_ROOT))

from avatar_rescale.errors import InvalidTarget
from avatar_rescale.measurements import Measurements
from avatar_rescale.model import SkeletonModel
from avatar_rescale.scaler import AvatarScaler, rescale_view_position
from avatar_rescale.config import ScalingParameters


class FakeAvatar:
  def __init__(self, view):
    self.view = np.asarray(view, float)

  def get_view_position(self):
    return self.view.copy()

  def set_view_position(self, value):
    self.view = np.asarray(value, float)


class TestEndToEnd(unittest.TestCase):
  def test_reference_scenario(self) -> None:
    skel = SkeletonModel.build_t_pose()
    self.assertAlmostEqual(Measurements(skel).total_height(), 1.70)
    result = AvatarScaler(skel).scale_avatar(ScalingParameters(
      target_height=1.61, upper_body_percentage=44.0, custom_scale_ratio=0.4537,
    ))
    f = result.factors
    self.assertAlmostEqual(f.overall_scale, 0.947, delta=0.001)
    self.assertNotAlmostEqual(f.upper_body_scale, f.overall_scale, places=2)
    self.assertNotAlmostEqual(f.lower_body_scale, f.overall_scale, places=2)
    m = Measurements(skel)
    self.assertAlmostEqual(m.highest_point() - m.lowest_point(), 1.61, delta=0.001)
    self.assertAlmostEqual(result.height_ratio, f.height_scale)

  def test_invalid_target_leaves_skeleton_alone(self) -> None:
    skel = SkeletonModel.build_t_pose()
    before = {t.name: t.position for t in skel.transforms()}
    with self.assertRaises(InvalidTarget):
      AvatarScaler(skel).scale_avatar(ScalingParameters(target_height=float("nan")))
    for t in skel.transforms():
      np.testing.assert_array_equal(t.position, before[t.name])

  def test_auxiliary_passes_run_after_scaling(self) -> None:
    skel = SkeletonModel.build_t_pose()
    result = AvatarScaler(skel).scale_avatar(ScalingParameters(
      apply_finger_spreading=True, apply_shrink_hip_bone=True))
    self.assertEqual(result.adjustments, ("finger_spreading", "shrink_hip_bone"))


class TestPreview(unittest.TestCase):
  def test_preview_rolls_back(self) -> None:
    skel = SkeletonModel.build_t_pose()
    avatar = FakeAvatar([0.0, 1.6, 0.08])
    before = {t.name: t.position for t in skel.transforms()}
    scaler = AvatarScaler(skel)
    with scaler.preview(ScalingParameters(target_height=1.2), avatar) as result:
      self.assertAlmostEqual(Measurements(skel).total_height(), 1.2, places=6)
      np.testing.assert_allclose(avatar.view, np.array([0.0, 1.6, 0.08]) * result.height_ratio)
    for t in skel.transforms():
      np.testing.assert_allclose(t.position, before[t.name], atol=1e-12)
    np.testing.assert_allclose(avatar.view, [0.0, 1.6, 0.08])

  def test_rescale_view_position(self) -> None:
    avatar = FakeAvatar([0.0, 1.5, 0.1])
    rescale_view_position(avatar, 0.5)
    np.testing.assert_allclose(avatar.view, [0.0, 0.75, 0.05])


class TestSuggestParameters(unittest.TestCase):
  def test_suggestion_describes_current_avatar(self) -> None:
    scaler = AvatarScaler(SkeletonModel.build_t_pose())
    p = scaler.suggest_parameters()
    self.assertAlmostEqual(p.target_height, 1.70)
    self.assertAlmostEqual(p.upper_body_percentage, round(100 * 0.55 / 1.47, 2))
    self.assertAlmostEqual(p.thigh_percentage, 50.0)
    self.assertAlmostEqual(p.arm_thickness, 100.0)

  def test_suggested_parameters_nearly_preserve_avatar(self) -> None:
    skel = SkeletonModel.build_t_pose()
    scaler = AvatarScaler(skel)
    p = scaler.suggest_parameters()
    result = scaler.scale_avatar(p)
    self.assertAlmostEqual(result.final_height, 1.70, places=6)
    self.assertAlmostEqual(result.factors.torso_scale, 1.0, places=3)
    self.assertAlmostEqual(result.factors.arm_length_factor, 1.0, places=3)

  def test_report_contains_measurements_and_ratios(self) -> None:
    report = AvatarScaler(SkeletonModel.build_t_pose()).report()
    self.assertAlmostEqual(report["total_height"], 1.70)
    self.assertIn("upper_body/legacy", report)


if __name__ == "__main__":
  unittest.main()
