"""Analysis request/response schemas."""

from pydantic import BaseModel, Field


class InteractionCount(BaseModel):
    """Interaction tally for one ordered character pair."""

    interactions: int = Field(ge=1)


class AnalyzeTextRequest(BaseModel):
    """Structured analysis request; identifier is preferred for caching."""

    text: str
    identifier: str | None = None


class AnalysisRead(BaseModel):
    """Serialized interaction graph."""

    interactions: dict[str, dict[str, InteractionCount]] = Field(default_factory=dict)


class BookTitleRead(BaseModel):
    """Display title for a book id."""

    book_id: str
    title: str


class GraphNode(BaseModel):
    id: str
    name: str
    value: int


class GraphLink(BaseModel):
    source: str
    target: str
    value: int


class GraphData(BaseModel):
    """Nodes and links ready for a force-directed layout."""

    nodes: list[GraphNode] = Field(default_factory=list)
    links: list[GraphLink] = Field(default_factory=list)


class CharacterConnection(BaseModel):
    character: str
    interactions: int


class CharacterConnectionsRead(BaseModel):
    """Connections of one character within a book's interaction graph."""

    character: str
    connections: list[CharacterConnection] = Field(default_factory=list)
