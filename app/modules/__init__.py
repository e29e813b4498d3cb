"""Domain modules package."""

from app.modules.availability import models as availability_models  # noqa: F401
from app.modules.classes import models as classes_models  # noqa: F401
from app.modules.identity import models as identity_models  # noqa: F401
from app.modules.materials import models as materials_models  # noqa: F401
