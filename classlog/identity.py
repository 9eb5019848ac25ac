# classlog/identity.py
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)

IdentityListener = Callable[[Optional[str]], None]


class IdentityProvider:
    """
    Who is signed in. Credential checks happen elsewhere (the login page);
    this only reports the current uid and announces changes.
    """

    def __init__(self, uid: Optional[str] = None):
        self._uid = uid
        self._listeners: list[IdentityListener] = []

    @property
    def current(self) -> Optional[str]:
        return self._uid

    def on_change(self, listener: IdentityListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _set(self, uid: Optional[str]) -> None:
        if uid == self._uid:
            return
        self._uid = uid
        logger.info("identity changed signed_in=%s", uid is not None)
        for listener in list(self._listeners):
            listener(uid)

    def sign_in(self, uid: str) -> None:
        if not uid or not str(uid).strip():
            raise ValueError("uid is required")
        try:
            self._set(str(uid).strip())
        except Exception:
            # a listener could not follow (e.g. the store failed to load);
            # don't leave a half-signed-in identity behind
            logger.warning("sign-in rolled back")
            self._set(None)
            raise

    def sign_out(self) -> None:
        self._set(None)
