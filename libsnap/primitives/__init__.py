from libsnap.primitives.common import (
    FrozenModel,
    LibsnapBaseModel,
    local_now,
    new_id,
)

__all__ = [
    "FrozenModel",
    "LibsnapBaseModel",
    "local_now",
    "new_id",
]
