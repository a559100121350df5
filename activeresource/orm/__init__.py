"""
Client-side ORM: model classes, instances, associations and persistence.
"""

from .api import ApiEndpoints
from .associations import Association, BelongsTo, HasMany, HasManyCollection
from .errors import ErrorSet
from .identity_map import IdentityMap
from .instance import DESTROYED, SAVED, UNSAVED, Instance, TemporaryKey
from .model import ModelClass, define_model, verify_associations

__all__ = [
    "DESTROYED",
    "SAVED",
    "UNSAVED",
    "ApiEndpoints",
    "Association",
    "BelongsTo",
    "ErrorSet",
    "HasMany",
    "HasManyCollection",
    "IdentityMap",
    "Instance",
    "ModelClass",
    "TemporaryKey",
    "define_model",
    "verify_associations",
]
