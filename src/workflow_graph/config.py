"""
Layout settings for structural edits.

Operations that place new nodes on the canvas accept an optional
``layout`` argument; ``DEFAULT_LAYOUT`` is used when it is omitted.
"""

from pydantic import BaseModel, ConfigDict, Field

from .models import Position


class LayoutConfig(BaseModel):
    """Visual constants used when pasting and duplicating nodes."""

    paste_jitter: float = Field(
        default=50.0,
        description="Extra offset added to pasted nodes so copies never overlap originals",
    )
    paste_between_spacing: float = Field(
        default=200.0,
        description="Horizontal spacing between nodes spliced into an edge",
        gt=0,
    )
    duplicate_offset: Position = Field(
        default_factory=lambda: Position(x=200.0, y=100.0),
        description="Offset applied to a duplicated node group",
    )

    model_config = ConfigDict(frozen=True)


DEFAULT_LAYOUT = LayoutConfig()
