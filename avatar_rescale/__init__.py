"""Public API for avatar_rescale."""
from .errors import ScalingError, MissingRequiredBone, DegenerateMeasurement, InvalidTarget
from .geometry import Geometry3D
from .skeleton import Transform, SkinnedMesh, Skeleton, SkeletonSnapshot, preview
from .model import SkeletonModel
from .methods import HeightMethod, ArmMethod, UpperBodyMethod
from .measurements import Measurements
from .config import ScalingParameters, ScaleFactors
from .solver import ProportionSolver
from .applier import HierarchicalScaleApplier
from .adjusters import spread_fingers, shrink_hips, AuxiliaryAdjusters
from .scaler import AvatarScaler, ScaleResult, ViewPositionStore, rescale_view_position
from .io import SkeletonIO


__all__ = [
  "ScalingError", "MissingRequiredBone", "DegenerateMeasurement", "InvalidTarget",
  "Geometry3D", "Transform", "SkinnedMesh", "Skeleton", "SkeletonSnapshot", "preview",
  "SkeletonModel", "HeightMethod", "ArmMethod", "UpperBodyMethod", "Measurements",
  "ScalingParameters", "ScaleFactors", "ProportionSolver", "HierarchicalScaleApplier",
  "spread_fingers", "shrink_hips", "AuxiliaryAdjusters",
  "AvatarScaler", "ScaleResult", "ViewPositionStore", "rescale_view_position",
  "SkeletonIO",
]
