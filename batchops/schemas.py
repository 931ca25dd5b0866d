"""Request models for the admin batch endpoints (pydantic v2)."""
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from batchops.errors import BatchValidationError
from batchops.filters import validate_filters

Collection = Literal["ingredients", "cocktails"]


class _WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# OPERATIONS
# =============================================================================

class DescriptionSetPayload(_WireModel):
    new_text: str = Field(alias="newText")


class FindReplacePayload(_WireModel):
    find: str
    replace: Optional[str] = None
    regex: bool = False
    case_insensitive: bool = Field(False, alias="caseInsensitive")


class TagsAddPayload(_WireModel):
    add: List[str]


class TagsRemovePayload(_WireModel):
    remove: List[str]


class TagsReplacePayload(_WireModel):
    new_tags: List[str] = Field(alias="newTags")


class DescriptionSetOp(_WireModel):
    type: Literal["description_set"]
    payload: DescriptionSetPayload


class FindReplaceOp(_WireModel):
    type: Literal["description_find_replace"]
    payload: FindReplacePayload


class TagsAddOp(_WireModel):
    type: Literal["tags_add"]
    payload: TagsAddPayload


class TagsRemoveOp(_WireModel):
    type: Literal["tags_remove"]
    payload: TagsRemovePayload


class TagsReplaceOp(_WireModel):
    type: Literal["tags_replace"]
    payload: TagsReplacePayload


Operation = Annotated[
    Union[DescriptionSetOp, FindReplaceOp, TagsAddOp, TagsRemoveOp, TagsReplaceOp],
    Field(discriminator="type"),
]


# =============================================================================
# FILTERS, OPTIONS, ROWS
# =============================================================================

class FilterSpec(_WireModel):
    field: Literal["description", "tags"]
    mode: str
    value: Any = None
    limit: Optional[int] = None

    @model_validator(mode="after")
    def _check_mode(self):
        try:
            validate_filters(self.model_dump())
        except BatchValidationError as e:
            raise ValueError(str(e)) from e
        return self


class BatchOptions(_WireModel):
    only_imported_placeholders: bool = Field(False, alias="onlyImportedPlaceholders")
    skip_if_same: bool = Field(True, alias="skipIfSame")


class PasteProposed(_WireModel):
    description: Optional[str] = None
    # A list, or a delimited/JSON tag cell straight from a spreadsheet
    tags: Optional[Union[List[str], str]] = None


class PasteRow(_WireModel):
    id: str = Field(min_length=1)
    name: Optional[str] = None
    proposed: PasteProposed = Field(default_factory=PasteProposed)


# =============================================================================
# REQUEST BODIES
# =============================================================================

class QueryRequest(_WireModel):
    mode: Literal["query"]
    collection: Collection
    filters: FilterSpec
    operation: Operation
    options: BatchOptions = Field(default_factory=BatchOptions)

    def operation_dict(self) -> dict:
        return self.operation.model_dump(by_alias=True)


class PasteRequest(_WireModel):
    mode: Literal["paste"]
    collection: Collection
    rows: List[PasteRow]
    options: BatchOptions = Field(default_factory=BatchOptions)

    @field_validator("rows")
    @classmethod
    def _check_row_limit(cls, rows):
        from config import get_batch_config
        limit = get_batch_config()["paste_row_limit"]
        if len(rows) > limit:
            raise ValueError(f"At most {limit} rows may be pasted (got {len(rows)})")
        return rows


class _CommitFields(_WireModel):
    select_ids: Optional[List[str]] = Field(None, alias="selectIds")
    note: Optional[str] = None


class QueryCommitRequest(QueryRequest, _CommitFields):
    pass


class PasteCommitRequest(PasteRequest, _CommitFields):
    pass


PreviewRequest = Annotated[Union[QueryRequest, PasteRequest], Field(discriminator="mode")]
CommitRequest = Annotated[Union[QueryCommitRequest, PasteCommitRequest], Field(discriminator="mode")]

_preview_adapter = TypeAdapter(PreviewRequest)
_commit_adapter = TypeAdapter(CommitRequest)


def parse_preview_request(data: Any):
    """Validate a preview body. Raises pydantic.ValidationError."""
    return _preview_adapter.validate_python(data if data is not None else {})


def parse_commit_request(data: Any):
    """Validate a commit body (preview body plus selectIds/note). Raises pydantic.ValidationError."""
    return _commit_adapter.validate_python(data if data is not None else {})
