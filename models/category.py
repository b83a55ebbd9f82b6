"""Category entity shown by the client; never stored on the server."""
from pydantic import BaseModel

PALETTE = (
    "hsl(173, 80%, 45%)",
    "hsl(280, 65%, 60%)",
    "hsl(38, 92%, 50%)",
    "hsl(340, 75%, 55%)",
    "hsl(200, 75%, 50%)",
    "hsl(160, 84%, 39%)",
    "hsl(25, 95%, 53%)",
    "hsl(262, 83%, 58%)",
)
DEFAULT_ICON = "tag"
FALLBACK_CHART_COLOR = "hsl(var(--chart-1))"


class Category(BaseModel):
    """
    Derived categories use their name as id and the default icon.
    Anything else was authored by the user and is persisted locally.
    """
    id: str
    name: str
    color: str
    icon: str = DEFAULT_ICON
