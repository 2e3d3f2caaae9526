# Authentication module

from fra_patta.modules.auth.dependencies import (
    get_current_user,
    require_ministry,
    require_ngo,
    require_any_role,
)

__all__ = [
    "get_current_user",
    "require_ministry",
    "require_ngo",
    "require_any_role",
]
