"""
Pydantic schemas for the Sui JSON-RPC payloads the pipeline consumes.

Field names follow Python conventions and map to the camelCase wire names
through aliases. Unknown fields are kept, so a change record or an object
snapshot dumps back (``by_alias=True``) to what the node sent.
"""

import enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator
from pydantic.alias_generators import to_camel


class ChangeType(str, enum.Enum):
    """Object change variants reported by a transaction block"""
    PUBLISHED = "published"
    CREATED = "created"
    MUTATED = "mutated"
    TRANSFERRED = "transferred"
    DELETED = "deleted"
    WRAPPED = "wrapped"


# Changes whose historical object state is worth fetching
FETCHABLE_CHANGES = frozenset({ChangeType.PUBLISHED, ChangeType.CREATED, ChangeType.MUTATED})


class PastObjectStatus(str, enum.Enum):
    """Outcomes of a past-object lookup"""
    VERSION_FOUND = "VersionFound"
    OBJECT_NOT_EXISTS = "ObjectNotExists"
    OBJECT_DELETED = "ObjectDeleted"
    VERSION_NOT_FOUND = "VersionNotFound"
    VERSION_TOO_HIGH = "VersionTooHigh"


class SuiModel(BaseModel):
    """Base for wire models: alias aware, keeps unknown fields"""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ObjectChange(SuiModel):
    """
    One entry of a transaction block's ``objectChanges``.

    ``published`` changes carry a ``packageId`` instead of an ``objectId``.
    """

    type: ChangeType
    object_id: Optional[str] = Field(None, alias="objectId")
    package_id: Optional[str] = Field(None, alias="packageId")
    version: int

    @model_validator(mode="after")
    def require_identifier(self):
        if self.object_id is None and self.package_id is None:
            raise ValueError(f"{self.type.value} change has neither objectId nor packageId")
        return self

    @field_serializer("version")
    def serialize_version(self, version: int) -> str:
        return str(version)

    def to_wire(self) -> Dict[str, Any]:
        """The change as the node reported it"""
        return self.model_dump(by_alias=True, mode="json", exclude_unset=True)

    @property
    def target_id(self) -> str:
        """Id of the object (or package) this change applies to"""
        return self.object_id if self.object_id is not None else self.package_id

    @property
    def fetches_object(self) -> bool:
        return self.type in FETCHABLE_CHANGES


class TransactionBlock(SuiModel):
    digest: str
    object_changes: Optional[List[ObjectChange]] = Field(None, alias="objectChanges")


class TransactionBlockPage(SuiModel):
    data: List[TransactionBlock] = Field(default_factory=list)
    next_cursor: Optional[str] = Field(None, alias="nextCursor")
    has_next_page: bool = Field(False, alias="hasNextPage")


class ObjectDataOptions(BaseModel):
    """Which fields of an object the node should include"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    show_type: bool = False
    show_owner: bool = False
    show_previous_transaction: bool = False
    show_display: bool = False
    show_content: bool = False
    show_bcs: bool = False
    show_storage_rebate: bool = False

    def to_params(self) -> Dict[str, bool]:
        return self.model_dump(by_alias=True)


class ObjectData(SuiModel):
    """Historical object snapshot; everything beyond the key fields is opaque"""

    object_id: str = Field(..., alias="objectId")
    version: int
    digest: str

    @field_serializer("version")
    def serialize_version(self, version: int) -> str:
        return str(version)

    def to_document(self) -> Dict[str, Any]:
        """JSON-safe dict with wire field names, as stored in the document store"""
        return self.model_dump(by_alias=True, mode="json", exclude_unset=True)


class PastObjectRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    object_id: str = Field(..., alias="objectId")
    version: int

    def to_params(self) -> Dict[str, str]:
        return {"objectId": self.object_id, "version": str(self.version)}


class PastObjectResponse(BaseModel):
    """
    Result of ``sui_tryGetPastObject``.

    ``details`` depends on ``status``:
        VersionFound     -> object data
        ObjectNotExists  -> object id
        ObjectDeleted    -> object ref {objectId, version, digest}
        VersionNotFound  -> [object id, version]
        VersionTooHigh   -> {object_id, asked_version, latest_version}
    """

    status: PastObjectStatus
    details: Any = None

    @model_validator(mode="after")
    def parse_found_object(self):
        if self.status == PastObjectStatus.VERSION_FOUND and not isinstance(self.details, ObjectData):
            self.details = ObjectData.model_validate(self.details)
        return self

    def object_data(self) -> Optional[ObjectData]:
        """Snapshot when the version was found, else None"""
        if self.status != PastObjectStatus.VERSION_FOUND:
            return None
        return self.details
