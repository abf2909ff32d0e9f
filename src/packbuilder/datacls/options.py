from typing import List, Optional

from pydantic import BaseModel, Field


class LifecycleOptions(BaseModel):
    """
        Class describes one run of the whole lifecycle pipeline.

        The cache volume names are derived from `image` when not given.
    """
    image: str
    run_image: str
    publish: bool = False
    clear_cache: bool = False
    network: str = ""
    volumes: List[str] = Field(default_factory=list)
    cache_volume: Optional[str] = None
    launch_cache_volume: Optional[str] = None
