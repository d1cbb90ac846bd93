"""Error kinds raised by the scaling pipeline."""
from __future__ import annotations


class ScalingError(RuntimeError):
  """Base class for failures that stop an invocation before any mutation."""


class MissingRequiredBone(ScalingError):
  """A step needs a bone that has no fallback (e.g. Hips)."""

  def __init__(self, bone: str, context: str = ""):
    self.bone = bone
    msg = f"Required bone '{bone}' is missing"
    if context:
      msg += f" ({context})"
    super().__init__(msg)


class DegenerateMeasurement(ScalingError):
  """A distance resolved to <= 0 where no fallback ratio exists."""


class InvalidTarget(ScalingError, ValueError):
  """Top-level configuration is unusable (target height <= 0, NaN, ...)."""
