import unittest
from pathlib import Path
import sys

import numpy as np


# Allow `import avatar_rescale` from the repo root.
_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
  sys.path.insert(0, str(_ROOT))

from avatar_rescale.model import SkeletonModel
from avatar_rescale.skeleton import Transform


class TestTPose(unittest.TestCase):
  def setUp(self) -> None:
    self.skel = SkeletonModel.build_t_pose()

  def test_landmarks(self) -> None:
    y = lambda b: self.skel.world_position(b)[1]
    self.assertAlmostEqual(self.skel.find(SkeletonModel.HEAD_TOP).position[1], 1.70)
    self.assertAlmostEqual(y("LeftEye"), 1.61)
    self.assertAlmostEqual(y("RightToes"), 0.0)
    self.assertAlmostEqual(y("Neck"), 1.47)
    self.assertAlmostEqual(y("LeftUpperLeg"), 0.92)

  def test_right_side_is_positive_x(self) -> None:
    self.assertAlmostEqual(self.skel.world_position("RightHand")[0], 0.68)
    self.assertAlmostEqual(self.skel.world_position("LeftHand")[0], -0.68)

  def test_every_human_bone_present(self) -> None:
    for bone_id in SkeletonModel.HUMAN_BONES:
      self.assertIsNotNone(self.skel.bone(bone_id), bone_id)

  def test_omit_drops_subtree(self) -> None:
    skel = SkeletonModel.build_t_pose(omit=["LeftLowerArm"])
    self.assertIsNone(skel.bone("LeftLowerArm"))
    self.assertIsNone(skel.bone("LeftHand"))
    self.assertIsNotNone(skel.bone("LeftUpperArm"))

  def test_mesh_spans_the_body(self) -> None:
    skel = SkeletonModel.build_t_pose(with_mesh=True)
    verts = skel.mesh.world_vertices()
    self.assertGreater(len(verts), 0)
    self.assertAlmostEqual(verts[:, 1].max(), 1.70, places=6)
    self.assertLess(verts[:, 1].min(), 0.0)


class TestNameResolution(unittest.TestCase):
  def _rig(self, names):
    root = Transform("Armature")
    parent = root
    for n in names:
      parent = Transform(n, parent)
    return root

  def test_mixamo_names(self) -> None:
    root = self._rig([
      "mixamorig:Hips", "mixamorig:Spine", "mixamorig:Spine1", "mixamorig:Spine2",
      "mixamorig:LeftUpLeg", "mixamorig:LeftLeg", "mixamorig:LeftFoot",
      "mixamorig:LeftArm", "mixamorig:LeftForeArm", "mixamorig:LeftHand",
      "mixamorig:LeftHandIndex1",
    ])
    bones = SkeletonModel.resolve_human_bones(root)
    expect = {
      "Hips": "mixamorig:Hips", "Spine": "mixamorig:Spine",
      "Chest": "mixamorig:Spine1", "UpperChest": "mixamorig:Spine2",
      "LeftUpperLeg": "mixamorig:LeftUpLeg", "LeftLowerLeg": "mixamorig:LeftLeg",
      "LeftFoot": "mixamorig:LeftFoot", "LeftUpperArm": "mixamorig:LeftArm",
      "LeftLowerArm": "mixamorig:LeftForeArm", "LeftHand": "mixamorig:LeftHand",
      "LeftIndexProximal": "mixamorig:LeftHandIndex1",
    }
    self.assertEqual({k: bones[k].name for k in expect}, expect)

  def test_blender_suffix_names(self) -> None:
    root = self._rig(["pelvis", "thigh.R", "shin.R", "foot.R", "upper_arm.L", "forearm.L"])
    bones = SkeletonModel.resolve_human_bones(root)
    self.assertEqual(bones["Hips"].name, "pelvis")
    self.assertEqual(bones["RightUpperLeg"].name, "thigh.R")
    self.assertEqual(bones["RightLowerLeg"].name, "shin.R")
    self.assertEqual(bones["LeftUpperArm"].name, "upper_arm.L")
    self.assertEqual(bones["LeftLowerArm"].name, "forearm.L")
    self.assertNotIn("LeftUpperLeg", bones)

  def test_canonical_names_resolve_to_themselves(self) -> None:
    skel = SkeletonModel.build_t_pose()
    bones = SkeletonModel.resolve_human_bones(skel.root)
    for bone_id, t in skel.bones.items():
      self.assertIs(bones[bone_id], t, bone_id)


if __name__ == "__main__":
  unittest.main()
