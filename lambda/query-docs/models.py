"""
Pydantic models for the query-docs Lambda.

Defines the inbound request schema, the Bedrock RetrieveAndGenerate payload
(answer, session, citations) and the result returned by the orchestrator.
"""

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# Inbound Request
# ============================================================================


class QueryRequest(BaseModel):
    """
    Request body posted by the chat UI.

    Attributes:
        question: Natural-language question
        requestSessionId: Session id returned by a previous answer
        modelId: Optional generation model hint
    """

    question: Optional[str] = Field(default=None, description="Question to answer")
    requestSessionId: Optional[str] = Field(
        default=None, description="Session id from a previous response"
    )
    modelId: Optional[str] = Field(default=None, description="Generation model hint")

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={
            "example": {
                "question": "Quais são os prazos para recurso?",
                "requestSessionId": "abc123",
            }
        },
    )


# ============================================================================
# Citation Location (tagged union)
# ============================================================================


class S3Location(BaseModel):
    """Source document stored in S3."""

    type: Literal["S3"] = "S3"
    uri: str


class WebLocation(BaseModel):
    """Source page crawled from the web."""

    type: Literal["WEB"] = "WEB"
    url: str


class OtherLocation(BaseModel):
    """Any data source we do not surface as a citation (Confluence, SQL, ...)."""

    type: str


Location = Union[S3Location, WebLocation, OtherLocation]


def parse_location(raw: Dict[str, Any]) -> Location:
    """
    Parse a Bedrock ``RetrievalResultLocation`` into a Location.

    Args:
        raw: Location dict, e.g. ``{"type": "S3", "s3Location": {"uri": "..."}}``

    Returns:
        Location: S3Location, WebLocation or OtherLocation

    Raises:
        ValueError: If the location is not a dict or its tagged payload is missing
    """
    if not isinstance(raw, dict):
        raise ValueError(f"location must be an object, got {type(raw).__name__}")

    source_type = raw.get("type")

    if source_type == "S3":
        uri = (raw.get("s3Location") or {}).get("uri")
        if not isinstance(uri, str):
            raise ValueError("S3 location is missing s3Location.uri")
        return S3Location(uri=uri)

    if source_type == "WEB":
        url = (raw.get("webLocation") or {}).get("url")
        if not isinstance(url, str):
            raise ValueError("WEB location is missing webLocation.url")
        return WebLocation(url=url)

    return OtherLocation(type=str(source_type))


# ============================================================================
# RetrieveAndGenerate Payload
# ============================================================================


def _as_object(value) -> Dict[str, Any]:
    """Null or non-object list entries are treated as empty entries."""
    return value if isinstance(value, dict) else {}


class RetrievedReference(BaseModel):
    """
    A source passage that backs part of the answer.

    ``location`` is kept as returned by Bedrock and only parsed on demand,
    so malformed references that are never consulted do not fail the payload.
    """

    content: Optional[Any] = None
    location: Optional[Any] = None
    metadata: Optional[Any] = None

    def parsed_location(self) -> Optional[Location]:
        """
        Parse ``location`` into the Location union; None when absent or not an object.

        Raises:
            ValueError: If an S3/WEB location is missing its nested payload
        """
        if not isinstance(self.location, dict):
            return None
        return parse_location(self.location)


class Citation(BaseModel):
    """Link between a span of the answer and the references that justify it."""

    generated_response_part: Optional[Any] = Field(
        default=None, alias="generatedResponsePart"
    )
    retrieved_references: List[RetrievedReference] = Field(
        default_factory=list, alias="retrievedReferences"
    )

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("retrieved_references", mode="before")
    @classmethod
    def _default_references(cls, value):
        if not isinstance(value, list):
            return []
        return [item if isinstance(item, RetrievedReference) else _as_object(item) for item in value]


class GenerationResult(BaseModel):
    """
    Parsed ``retrieve_and_generate`` response.

    Attributes:
        output_text: Generated answer, verbatim
        session_id: Backend-issued session id for follow-up questions
        citations: Citations in the order Bedrock returned them
    """

    output_text: str
    session_id: str
    citations: List[Citation] = Field(default_factory=list)

    @field_validator("citations", mode="before")
    @classmethod
    def _default_citations(cls, value):
        if not isinstance(value, list):
            return []
        return [item if isinstance(item, Citation) else _as_object(item) for item in value]

    @classmethod
    def from_bedrock(cls, response: Dict[str, Any]) -> "GenerationResult":
        """
        Build a GenerationResult from a raw boto3 response.

        Raises:
            pydantic.ValidationError: If answer text or session id is missing
        """
        output = response.get("output") or {}
        return cls(
            output_text=output.get("text"),
            session_id=response.get("sessionId"),
            citations=response.get("citations") or [],
        )


# ============================================================================
# Backend Call Result
# ============================================================================


class BackendSuccess(BaseModel):
    """Backend call completed and returned a well-formed payload."""

    result: GenerationResult


class BackendFailure(BaseModel):
    """Backend call failed; ``reason`` is for logs only, never for the caller."""

    reason: str
    error_code: Optional[str] = None


BackendResult = Union[BackendSuccess, BackendFailure]


# ============================================================================
# Orchestrator Result
# ============================================================================


class QueryResult(BaseModel):
    """
    Uniform result of one query, success or failure.

    Attributes:
        status_code: HTTP status code
        answer_text: Answer or fixed error message
        citation: S3 URI or web URL of the first reference, if any
        session_id: Backend-issued session id, None on errors
    """

    status_code: int
    answer_text: str
    citation: Optional[str] = None
    session_id: Optional[str] = None

    def to_body(self) -> Dict[str, Any]:
        """Serialize to the public response body."""
        return {
            "response": self.answer_text,
            "citation": self.citation,
            "sessionId": self.session_id,
        }
