"""Database utilities and models."""

from cropcare.db.base import Base
from cropcare.db import models  # noqa: F401  (imported for side effects)

__all__ = ["Base"]
