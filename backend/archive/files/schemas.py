"""Schemas for the file archive views.

The human-facing pages and the JSON API treat an empty archive
differently: pages render an empty state (``files`` is ``False``), while
the API answers 404. FileListing is the page-side view model.
"""
from typing import List, Literal, Union

from pydantic import BaseModel, Field

from archive.blobstore import StoredFile

# Multipart field carrying the uploaded file.
UPLOAD_FIELD = "file"


class FileListing(BaseModel):
    """Template context for the search / save pages.

    ``files`` is ``False`` for an empty archive so templates can branch on
    it directly; otherwise it is the list of records, each exposing
    ``is_image``.
    """
    files: Union[List[StoredFile], Literal[False]] = Field(..., description="Records or False")

    @classmethod
    def from_records(cls, records: List[StoredFile]) -> "FileListing":
        return cls(files=records if records else False)

    @property
    def is_empty(self) -> bool:
        return self.files is False

    def template_context(self) -> dict:
        return {"files": self.files}
