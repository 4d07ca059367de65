"""User-Agent pool shared by fetcher worker threads."""

from __future__ import annotations

import random
from pathlib import Path
from threading import Lock
from typing import Iterable

from ..config import FetchConfig


class UserAgentPool:
    """Hand out a random User-Agent per request, falling back to a fixed one."""

    def __init__(
        self,
        user_agents: Iterable[str] | None = None,
        file_path: Path | None = None,
        default: str | None = None,
    ) -> None:
        self._lock = Lock()
        self._uas: list[str] = []
        self.default = default
        if user_agents:
            self._uas.extend(ua.strip() for ua in user_agents if ua.strip())
        if file_path and file_path.exists():
            lines = file_path.read_text(encoding="utf-8").splitlines()
            self._uas.extend(line.strip() for line in lines if line.strip())

    @classmethod
    def from_config(cls, config: FetchConfig) -> "UserAgentPool | None":
        agents = config.user_agent_list
        if not agents:
            return None
        return cls(agents, default=config.user_agent)

    def __len__(self) -> int:
        with self._lock:
            return len(self._uas)

    def get(self) -> str | None:
        with self._lock:
            if not self._uas:
                return self.default
            return random.choice(self._uas)


__all__ = ["UserAgentPool"]
