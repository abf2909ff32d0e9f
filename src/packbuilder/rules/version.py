from functools import total_ordering
from typing import Optional, Tuple
import re

from ..exceptions import InvalidVersionError


@total_ordering
class Version:
    """
        Semantic version of a lifecycle (or any other component).

        Accepts `1.2.3`, `v1.2.3`, `1.2` (read as `1.2.0`), pre-release tags
        (`1.2.3-rc.1`, `1.2.3rc1`) and build metadata (`1.2.3+abc`, ignored when comparing).
    """
    # 1:Major, 2:Minor, 3:Patch, 4:Prerelease, 5:Build
    SEMVER_REGEX = re.compile(
        r"^v?(?P<major>0|[1-9]\d*)"
        r"\.(?P<minor>0|[1-9]\d*)"
        r"(?:\.(?P<patch>0|[1-9]\d*))?"
        r"(?:-?(?P<prerelease>[0-9A-Za-z][0-9A-Za-z.-]*))?"
        r"(?:\+(?P<build>[0-9A-Za-z.-]+))?$"
    )

    def __init__(self, version_str: str):
        if not isinstance(version_str, str):
            raise InvalidVersionError(f"Version must be a string, got {type(version_str).__name__}")
        self.version_str = version_str.strip()

        match = self.SEMVER_REGEX.match(self.version_str)
        if not match:
            raise InvalidVersionError(f"Unrecognized Version '{version_str}'")

        parts = match.groupdict()
        self.core: Tuple[int, int, int] = (
            int(parts['major']),
            int(parts['minor']),
            int(parts['patch'] or 0),
        )
        self.prerelease = self._parse_prerelease(parts.get('prerelease'))
        self.build: Optional[str] = parts.get('build')

    @staticmethod
    def _parse_prerelease(prerelease_str: Optional[str]):
        if prerelease_str is None:
            return None
        parts = []
        for part in re.split(r'(\d+)', prerelease_str):
            if not part:
                continue
            if part.isdigit():
                parts.append(int(part))
                continue
            # 'rc.1' or 'alpha' or '.'
            parts.extend(sub for sub in part.split('.') if sub)
        return tuple(parts)

    @staticmethod
    def _key(part):
        # numeric identifiers sort before alphanumeric ones
        return (0, part, "") if isinstance(part, int) else (1, 0, part)

    def __str__(self):
        return self.version_str

    def __repr__(self):
        return f"Version('{self.version_str}')"

    def __hash__(self):
        return hash((self.core, self.prerelease))

    def __eq__(self, other):
        if not isinstance(other, Version):
            return NotImplemented
        return self.core == other.core and self.prerelease == other.prerelease

    def __lt__(self, other):
        if not isinstance(other, Version):
            return NotImplemented

        if self.core != other.core:
            return self.core < other.core

        if self.prerelease is None or other.prerelease is None:
            # a release is greater than any of its pre-releases
            return self.prerelease is not None and other.prerelease is None

        return [self._key(p) for p in self.prerelease] < [self._key(p) for p in other.prerelease]
