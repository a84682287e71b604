"""yarn runtime (yarn.lock).

Installs and runs tests through yarn. Audits and outdated checks go through
npm, which reads the same manifest and emits the npm audit v2 format; yarn's
own NDJSON audit stream differs between yarn 1 and berry.
"""

from __future__ import annotations

from typing import Any

from dialectic.models import Vulnerability

from .base import BasePackageManager
from .npm import parse_npm_audit


class YarnPackageManager(BasePackageManager):
    @property
    def manager_name(self) -> str:
        return "yarn"

    @property
    def lock_file(self) -> str:
        return "yarn.lock"

    def audit_command(self) -> list[str]:
        return ["npm", "audit", "--json"]

    def outdated_command(self) -> list[str]:
        return ["npm", "outdated", "--json"]

    def parse_audit_report(self, data: dict[str, Any]) -> tuple[list[Vulnerability], int]:
        return parse_npm_audit(data)
