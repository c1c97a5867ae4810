"""
Optional bearer-token authentication for event-stream endpoints.
The token can be passed explicitly or read from the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

ENV_TOKEN = "RESUMABLE_SSE_TOKEN"


@dataclass(frozen=True, slots=True)
class AuthConfig:
    """
    Credentials attached to every connection attempt.
    A missing token means the stream is requested anonymously.
    """

    token: str | None = None

    @staticmethod
    def from_env_or_value(token: str | None) -> AuthConfig:
        """
        Create an AuthConfig from a provided value or the environment.

        Args:
            token: Optional token provided by the user; takes precedence.

        Returns:
            An AuthConfig, with `token` set to None when neither source has one.
        """
        return AuthConfig(token=token or os.getenv(ENV_TOKEN) or None)

    def headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}
