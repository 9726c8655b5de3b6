from .key_value import KeyValueRepository
from . import models

__all__ = ["KeyValueRepository", "models"]
