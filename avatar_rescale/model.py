from __future__ import annotations
import re
import numpy as np
from typing import Dict, Iterable, List, Optional, Tuple

from .geometry import Geometry3D as G
from .skeleton import Skeleton, SkinnedMesh, Transform


_SIDES = ("Left", "Right")
_FINGERS = ("Thumb", "Index", "Middle", "Ring", "Little")
_PHALANGES = ("Proximal", "Intermediate", "Distal")
_SIDE_PARTS = (
  "Eye", "Shoulder", "UpperArm", "LowerArm", "Hand",
  "UpperLeg", "LowerLeg", "Foot", "Toes",
)


class SkeletonModel:
  """Humanoid topology, defaults, bone-name resolution and a reference T-pose."""

  # ---- Topology ---------------------------------------------------------
  SIDES: Tuple[str, ...] = _SIDES
  FINGERS: Tuple[str, ...] = _FINGERS
  PHALANGES: Tuple[str, ...] = _PHALANGES

  HIPS, SPINE, CHEST, UPPER_CHEST = "Hips", "Spine", "Chest", "UpperChest"
  NECK, HEAD = "Neck", "Head"
  HEAD_TOP = "HeadTop_End"  # non-humanoid crown leaf some rigs carry

  TORSO: List[str] = [HIPS, SPINE, CHEST, UPPER_CHEST, NECK, HEAD]
  SIDE_PARTS: List[str] = list(_SIDE_PARTS)
  FINGER_BONES: List[str] = [
    f"{s}{f}{p}" for s in _SIDES for f in _FINGERS for p in _PHALANGES
  ]
  HUMAN_BONES: List[str] = (
    TORSO + [f"{s}{part}" for s in _SIDES for part in _SIDE_PARTS] + FINGER_BONES
  )

  # ---- Defaults ---------------------------------------------------------
  # Meters. The default build stands 1.70 m tall with its eyes at 1.61 m.
  BONE_LENGTHS: Dict[str, float] = {
    'foot_height': 0.08, 'toe_length': 0.12,
    'lower_leg': 0.42, 'upper_leg': 0.42,
    'hip_drop': 0.05, 'hip_width': 0.09,
    'spine': 0.10, 'chest': 0.15, 'upper_chest': 0.13,
    'neck': 0.12, 'head': 0.09, 'head_top': 0.14,
    'eye_rise': 0.05, 'eye_forward': 0.08, 'eye_spacing': 0.032,
    'shoulder_rise': 0.08, 'shoulder_offset': 0.03, 'clavicle': 0.12,
    'upper_arm': 0.28, 'lower_arm': 0.25,
    'palm': 0.09, 'finger_proximal': 0.04, 'finger_intermediate': 0.03,
  }

  BONE_THICKNESS: Dict[str, float] = {
    'hips': 0.12, 'spine': 0.11, 'neck': 0.05, 'head': 0.09,
    'upper_arm': 0.045, 'lower_arm': 0.040, 'hand': 0.035,
    'upper_leg': 0.070, 'lower_leg': 0.055, 'foot': 0.040,
  }

  # finger: (fraction of the palm length, forward (Z) offset of its root)
  FINGER_SPREAD: Dict[str, Tuple[float, float]] = {
    'Thumb': (0.35, 0.035), 'Index': (1.0, 0.02), 'Middle': (1.0, 0.0),
    'Ring': (1.0, -0.02), 'Little': (0.95, -0.04),
  }

  # (owner bone, end bone, thickness key) for the sampled skin
  SKIN_SEGMENTS: List[Tuple[str, str, str]] = (
    [(HIPS, SPINE, 'hips'), (SPINE, CHEST, 'spine'), (CHEST, UPPER_CHEST, 'spine'),
     (UPPER_CHEST, NECK, 'spine'), (NECK, HEAD, 'neck'), (HEAD, HEAD_TOP, 'head')]
    + [seg for s in SIDES for seg in (
      (f"{s}UpperArm", f"{s}LowerArm", 'upper_arm'),
      (f"{s}LowerArm", f"{s}Hand", 'lower_arm'),
      (f"{s}Hand", f"{s}MiddleProximal", 'hand'),
      (f"{s}UpperLeg", f"{s}LowerLeg", 'upper_leg'),
      (f"{s}LowerLeg", f"{s}Foot", 'lower_leg'),
      (f"{s}Foot", f"{s}Toes", 'foot'),
    )]
  )

  # ---- Small helpers ----------------------------------------------------
  @staticmethod
  def side_sign(side: str) -> float:
    # Character faces +Z, so its right hand points along +X
    return 1.0 if side == "Right" else -1.0

  @classmethod
  def fingers_of(cls, side: str) -> List[str]:
    return [f"{side}{f}Proximal" for f in cls.FINGERS]

  # ---- Reference skeleton ----------------------------------------------
  @classmethod
  def build_t_pose(
    cls,
    bone_lengths: Optional[Dict[str, float]] = None,
    *,
    with_eyes: bool = True,
    with_fingers: bool = True,
    with_toes: bool = True,
    with_head_top: bool = True,
    with_mesh: bool = False,
    omit: Iterable[str] = (),
  ) -> Skeleton:
    """Build a T-posed humanoid (Y up, facing +Z) under an 'Armature' root."""
    L = dict(cls.BONE_LENGTHS)
    if bone_lengths:
      L.update(bone_lengths)
    omit = set(omit)
    bones: Dict[str, Transform] = {}

    def add(bone_id: str, parent: Optional[Transform], offset) -> Optional[Transform]:
      if parent is None or bone_id in omit:
        return None
      t = Transform(bone_id, parent, offset)
      bones[bone_id] = t
      return t

    root = Transform("Armature")
    hips_y = L['foot_height'] + L['lower_leg'] + L['upper_leg'] + L['hip_drop']
    hips = add(cls.HIPS, root, (0.0, hips_y, 0.0))
    spine = add(cls.SPINE, hips, (0.0, L['spine'], 0.0))
    chest = add(cls.CHEST, spine, (0.0, L['chest'], 0.0))
    upper_chest = add(cls.UPPER_CHEST, chest, (0.0, L['upper_chest'], 0.0))
    neck = add(cls.NECK, upper_chest if upper_chest is not None else chest, (0.0, L['neck'], 0.0))
    head = add(cls.HEAD, neck, (0.0, L['head'], 0.0))
    if with_head_top and head is not None:
      Transform(cls.HEAD_TOP, head, (0.0, L['head_top'], 0.0))

    for side in cls.SIDES:
      sx = cls.side_sign(side)
      if with_eyes:
        add(f"{side}Eye", head, (sx * L['eye_spacing'], L['eye_rise'], L['eye_forward']))

      shoulder = add(f"{side}Shoulder", upper_chest if upper_chest is not None else chest,
                     (sx * L['shoulder_offset'], L['shoulder_rise'], 0.0))
      upper_arm = add(f"{side}UpperArm", shoulder, (sx * L['clavicle'], 0.0, 0.0))
      lower_arm = add(f"{side}LowerArm", upper_arm, (sx * L['upper_arm'], 0.0, 0.0))
      hand = add(f"{side}Hand", lower_arm, (sx * L['lower_arm'], 0.0, 0.0))
      if with_fingers:
        for finger in cls.FINGERS:
          along, fwd = cls.FINGER_SPREAD[finger]
          parent = hand
          offsets = [
            (sx * L['palm'] * along, 0.0, fwd),
            (sx * L['finger_proximal'], 0.0, 0.0),
            (sx * L['finger_intermediate'], 0.0, 0.0),
          ]
          for phalanx, off in zip(cls.PHALANGES, offsets):
            parent = add(f"{side}{finger}{phalanx}", parent, off)

      upper_leg = add(f"{side}UpperLeg", hips, (sx * L['hip_width'], -L['hip_drop'], 0.0))
      lower_leg = add(f"{side}LowerLeg", upper_leg, (0.0, -L['upper_leg'], 0.0))
      foot = add(f"{side}Foot", lower_leg, (0.0, -L['lower_leg'], 0.0))
      if with_toes:
        add(f"{side}Toes", foot, (0.0, -L['foot_height'], L['toe_length']))

    skel = Skeleton(root, bones)
    if with_mesh:
      skel.mesh = cls.make_mesh(skel)
    return skel

  @classmethod
  def make_mesh(
    cls,
    skeleton: Skeleton,
    *,
    rings_per_bone: int = 6,
    points_per_ring: int = 8,
    thickness: Optional[Dict[str, float]] = None,
  ) -> SkinnedMesh:
    """Sample cylinders around the skin segments and bind them rigidly."""
    radii = dict(cls.BONE_THICKNESS)
    if thickness:
      radii.update(thickness)
    ts = np.linspace(0.0, 1.0, rings_per_bone)
    phis = 2.0 * np.pi * np.arange(points_per_ring) / points_per_ring
    verts: List[np.ndarray] = []
    owners: List[Transform] = []
    for owner_id, end_id, key in cls.SKIN_SEGMENTS:
      owner = skeleton.bone(owner_id)
      end = skeleton.bone(end_id) or skeleton.find(end_id)
      if owner is None or end is None:
        continue
      a, b = owner.position, end.position
      v = b - a
      if np.linalg.norm(v) < 1e-9:
        continue
      n1, n2 = G.perp_basis(v)
      R = float(radii.get(key, 0.05))
      for t in ts:
        c = a + t * v
        for phi in phis:
          verts.append(c + R * (np.cos(phi) * n1 + np.sin(phi) * n2))
          owners.append(owner)
    return SkinnedMesh.bind(np.asarray(verts), owners)

  # ---- Bone-name resolution --------------------------------------------
  # Part aliases after normalization (lowercase, no separators or rig prefix)
  PART_ALIASES: Dict[str, List[str]] = {
    "Eye": ["eye"],
    "Shoulder": ["shoulder", "collar", "clavicle"],
    "UpperArm": ["upperarm", "arm", "uparm"],
    "LowerArm": ["lowerarm", "forearm", "elbow"],
    "Hand": ["hand", "wrist"],
    "UpperLeg": ["upperleg", "upleg", "thigh"],
    "LowerLeg": ["lowerleg", "leg", "calf", "shin", "knee"],
    "Foot": ["foot", "ankle"],
    "Toes": ["toes", "toe", "toebase", "ball"],
  }
  TORSO_ALIASES: Dict[str, List[str]] = {
    HIPS: ["hips", "pelvis", "hip"],
    SPINE: ["spine", "spine0", "spine00"],
    CHEST: ["chest", "spine1", "spine01"],
    UPPER_CHEST: ["upperchest", "spine2", "spine02"],
    NECK: ["neck"],
    HEAD: ["head"],
  }
  FINGER_ALIASES: Dict[str, List[str]] = {
    "Thumb": ["thumb"], "Index": ["index"], "Middle": ["middle"],
    "Ring": ["ring"], "Little": ["little", "pinky"],
  }
  SIDE_TOKENS: Dict[str, List[str]] = {"Left": ["left", "l"], "Right": ["right", "r"]}

  @staticmethod
  def normalize_name(name: str) -> str:
    name = name.split(":")[-1]
    return re.sub(r"[\s_.\-]", "", name).lower()

  @classmethod
  def _candidates(cls, bone_id: str) -> List[str]:
    if bone_id in cls.TORSO_ALIASES:
      return cls.TORSO_ALIASES[bone_id]
    side = "Left" if bone_id.startswith("Left") else "Right"
    rest = bone_id[len(side):]
    if rest in cls.PART_ALIASES:
      parts = cls.PART_ALIASES[rest]
    else:
      finger = next(f for f in cls.FINGERS if rest.startswith(f))
      idx = cls.PHALANGES.index(rest[len(finger):]) + 1
      parts = [f"{a}{idx}" for a in cls.FINGER_ALIASES[finger]]
      parts += [f"{a}{rest[len(finger):].lower()}" for a in cls.FINGER_ALIASES[finger]]
      parts += [f"hand{p}" for p in list(parts)]
    out: List[str] = []
    for part in parts:
      for tok in cls.SIDE_TOKENS[side]:
        out += [f"{tok}{part}", f"{part}{tok}"]
    return out

  @classmethod
  def resolve_human_bones(cls, root: Transform) -> Dict[str, Transform]:
    """Map canonical bone ids to transforms by (aliased) name."""
    lookup: Dict[str, Transform] = {}
    for t in root.walk():
      lookup.setdefault(cls.normalize_name(t.name), t)
    bones: Dict[str, Transform] = {}
    taken = set()
    for bone_id in cls.HUMAN_BONES:
      for cand in [bone_id.lower()] + cls._candidates(bone_id):
        t = lookup.get(cand)
        if t is not None and id(t) not in taken:
          bones[bone_id] = t
          taken.add(id(t))
          break
    return bones
