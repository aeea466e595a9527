from __future__ import annotations

import os
from typing import Mapping


class EnvironmentCredentials:
    """Reads provider credentials from the process environment on every call.

    Nothing is cached: deployments that inject keys after startup are picked
    up on the next request.
    """

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ

    def get(self, name: str | None) -> str | None:
        if not name:
            return None
        environ = self._environ if self._environ is not None else os.environ
        value = (environ.get(name) or "").strip()
        return value or None

    def has(self, name: str | None) -> bool:
        return self.get(name) is not None


def get_credentials() -> EnvironmentCredentials:
    return EnvironmentCredentials()
