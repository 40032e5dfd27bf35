from typing import Dict, Optional

from pydantic import BaseModel

from schemas.sui import ObjectChange, ObjectData, PastObjectRequest


class ChangeEvent(BaseModel):
    """
    One object change of one transaction, flowing through the pipeline.

    Lifecycle:
    - Created by the extractor with ``object`` unset
    - The transformer attaches the historical snapshot for
      published/created/mutated changes
    - The loader applies it to the document store and drops it

    Invariant: ``object`` is set only for fetchable changes whose
    lookup found the requested version.
    """

    digest: str
    change: ObjectChange
    object: Optional[ObjectData] = None

    @classmethod
    def from_change(cls, digest: str, change: ObjectChange) -> "ChangeEvent":
        return cls(digest=digest, change=change)

    @property
    def object_id(self) -> str:
        return self.change.target_id

    @property
    def version(self) -> int:
        return self.change.version

    def skips_object_fetch(self) -> bool:
        """Transferred, deleted and wrapped changes carry nothing to look up"""
        return not self.change.fetches_object

    def past_object_request(self) -> PastObjectRequest:
        return PastObjectRequest(object_id=self.object_id, version=self.version)

    def store_key(self) -> Dict[str, str]:
        """Document store key: string forms of object id and version"""
        return {"_id": str(self.object_id), "version": str(self.version)}
