"""
Container launch configuration of a lifecycle phase.

ContainerConfig and HostConfig mirror the two halves of a container create
request: what runs inside the container, and how the host wires it up.
"""

from typing import Dict, List, NamedTuple, Optional, Tuple

from pydantic import BaseModel, Field

from ..exceptions import BindFormatError


class ContainerConfig(BaseModel):
    """
        Class describes the process side of a phase container.
    """
    cmd: List[str] = Field(default_factory=list)
    labels: Dict[str, str] = Field(default_factory=dict)
    image: Optional[str] = None
    # empty means the default user of the image
    user: str = ""
    # KEY=VALUE entries, in order, duplicates kept
    env: List[str] = Field(default_factory=list)

    def env_mapping(self) -> Dict[str, str]:
        """Fold env entries into a mapping, later entries win."""
        mapping = {}
        for entry in self.env:
            key, _, value = entry.partition("=")
            mapping[key] = value
        return mapping


class HostConfig(BaseModel):
    """
        Class describes the host side of a phase container.
    """
    # source:target[:mode] entries, in order
    binds: List[str] = Field(default_factory=list)
    network_mode: str = ""


class Bind(NamedTuple):
    src: str
    dst: str
    mode: Optional[str] = None

    @classmethod
    def parse(cls, bind: str) -> "Bind":
        """
        Parse a bind like `src:dst` or `src:dst:mode`

        With two or more colons the last field is the mode, whatever docker
        options it lists (`ro`, `z`, `ro,z`, `nocopy`, ...).
        """
        parts = bind.split(':')
        if len(parts) == 2:
            src, dst = parts
            mode = None
        elif len(parts) > 2:
            src, dst, mode = ':'.join(parts[:-2]), parts[-2], parts[-1]
        else:
            src = dst = mode = ''
        if not src or not dst or mode == '':
            raise BindFormatError(f"Invalid bind format: {bind}, we expect src:dst[:mode]")
        return cls(src, dst, mode)

    def as_tuple(self) -> Tuple[str, ...]:
        return tuple(part for part in self if part is not None)

    def __str__(self):
        return ":".join(self.as_tuple())
