from __future__ import annotations
from typing import Optional

import typer

from .io import SkeletonIO
from .methods import ArmMethod, HeightMethod
from .model import SkeletonModel
from .scaler import AvatarScaler
from .config import ScalingParameters


app = typer.Typer(add_completion=False, help="Rescale humanoid skeleton proportions.")


def _load(path: Optional[str]):
  # No file: the built-in 1.70 m reference skeleton
  if path is None:
    return SkeletonModel.build_t_pose()
  return SkeletonIO.load_json(path)


@app.command()
def measure(
  skeleton: Optional[str] = typer.Argument(None, help="Skeleton JSON file"),
  bone_floor: bool = typer.Option(False, help="Floor from foot/toe bones instead of the mesh"),
):
  """Print the current measurements and ratios."""
  scaler = AvatarScaler(_load(skeleton))
  for k, v in scaler.report(ScalingParameters(use_bone_based_floor=bone_floor)).items():
    print(f"{k:45s} {v:9.4f}")


@app.command()
def scale(
  skeleton: Optional[str] = typer.Argument(None, help="Skeleton JSON file"),
  output: Optional[str] = typer.Option(None, "--output", "-o", help="Where to write the scaled skeleton"),
  target_height: float = 1.61,
  upper_body_percentage: float = 44.0,
  arm_ratio: float = 0.4537,
  arm_thickness: float = 0.0,
  leg_thickness: float = 0.0,
  thigh_percentage: float = 53.0,
  height_method: HeightMethod = HeightMethod.TOTAL_HEIGHT,
  arm_method: ArmMethod = ArmMethod.HEAD_TO_ELBOW_VRC,
  arm_height_method: HeightMethod = HeightMethod.EYE_HEIGHT,
  scale_hand: bool = False,
  scale_foot: bool = False,
  scale_eyes: bool = False,
  center: bool = False,
  bone_floor: bool = False,
  legacy_upper_body: bool = False,
  upper_body_use_neck: bool = True,
  torso_use_neck: bool = True,
  spread_fingers: bool = False,
  spread_factor: float = 1.0,
  spare_thumb: bool = True,
  shrink_hips: bool = False,
  verbose: bool = False,
):
  """Scale a skeleton to a target height and proportions."""
  skel = _load(skeleton)
  params = ScalingParameters(
    target_height=target_height,
    upper_body_percentage=upper_body_percentage,
    custom_scale_ratio=arm_ratio,
    arm_thickness=arm_thickness,
    leg_thickness=leg_thickness,
    thigh_percentage=thigh_percentage,
    scale_hand=scale_hand,
    scale_foot=scale_foot,
    scale_eyes=scale_eyes,
    center_model=center,
    use_bone_based_floor=bone_floor,
    target_height_method=height_method,
    arm_method=arm_method,
    arm_height_method=arm_height_method,
    upper_body_use_legacy=legacy_upper_body,
    upper_body_use_neck=upper_body_use_neck,
    upper_body_torso_use_neck=torso_use_neck,
    apply_finger_spreading=spread_fingers,
    finger_spread_factor=spread_factor,
    spare_thumb=spare_thumb,
    apply_shrink_hip_bone=shrink_hips,
  )
  result = AvatarScaler(skel, verbose=verbose).scale_avatar(params)
  f = result.factors
  print(f"overall={f.overall_scale:.4f} upper={f.upper_body_scale:.4f} lower={f.lower_body_scale:.4f} "
        f"arm={f.arm_scale:.4f} thigh={f.thigh_scale:.4f} shin={f.shin_scale:.4f}")
  print(f"final height {result.final_height:.4f} m (root x{result.height_ratio:.4f})")
  if f.fallbacks:
    print("fallbacks: " + ", ".join(f.fallbacks))
  if output:
    SkeletonIO.save_json(skel, output)
    print(f"saved {output}")


if __name__ == "__main__":
  app()
