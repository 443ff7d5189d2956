from __future__ import annotations

import enum
from typing import Optional

from storefront.core.session import SessionStore


class Decision(enum.Enum):
    RENDER = "render"
    REDIRECT_TO_LOGIN = "login"
    REDIRECT_TO_HOME = "home"


class AccessGuard:
    """Render-or-redirect decision for a protected view.

    Evaluated on every navigation; nothing is cached because the session can
    change between two commands.
    """

    def __init__(self, store: SessionStore):
        self.store = store

    def decide(self, required_role: Optional[str] = None) -> Decision:
        if not self.store.is_authenticated():
            return Decision.REDIRECT_TO_LOGIN
        if required_role and not self.store.has_role(required_role):
            return Decision.REDIRECT_TO_HOME
        return Decision.RENDER
