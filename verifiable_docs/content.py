"""
Document content and its decomposition into statements.

Granularity is pinned to top-level attributes: each attribute of
``contents`` becomes one statement, ``{"<vocabulary><name>": value}``,
where the vocabulary is ``<schemaId>#`` when the content names a schema.
Nested objects are committed as a whole inside their top-level statement.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from .canonical import encode_object_as_str
from .exceptions import InvalidContentError, MalformedDocumentError, UnknownAttributeError


@dataclass(frozen=True)
class DocumentContent:
    """Attributes asserted by an issuer about a holder"""
    holder: str  # Holder's DID
    issuer: str  # Issuer's DID
    contents: Dict[str, Any] = field(default_factory=dict)
    schema_id: Optional[str] = None

    @property
    def vocabulary(self) -> str:
        return f"{self.schema_id}#" if self.schema_id else ""

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "holder": self.holder,
            "issuer": self.issuer,
            "contents": copy.deepcopy(self.contents)
        }
        if self.schema_id:
            result["schemaId"] = self.schema_id
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentContent":
        try:
            contents = data["contents"]
            if not isinstance(contents, dict):
                raise MalformedDocumentError("content.contents must be an object")
            holder, issuer, schema_id = data["holder"], data["issuer"], data.get("schemaId")
            if not isinstance(holder, str) or not isinstance(issuer, str):
                raise MalformedDocumentError("content.holder and content.issuer must be strings")
            if schema_id is not None and not isinstance(schema_id, str):
                raise MalformedDocumentError("content.schemaId must be a string")
            return cls(
                holder=holder,
                issuer=issuer,
                contents=copy.deepcopy(contents),
                schema_id=schema_id
            )
        except (AttributeError, KeyError, TypeError) as e:
            raise MalformedDocumentError(f"Invalid document content: {e}") from e

    def restrict(self, attribute_names: Iterable[str]) -> "DocumentContent":
        """Copy keeping only the named attributes"""
        names = set(attribute_names)
        for name in names:
            if name not in self.contents:
                raise UnknownAttributeError(name)
        return DocumentContent(
            holder=self.holder,
            issuer=self.issuer,
            contents={
                name: copy.deepcopy(value)
                for name, value in self.contents.items()
                if name in names
            },
            schema_id=self.schema_id
        )


def make_statement(content: DocumentContent, attribute: str) -> str:
    """Canonical statement for one top-level attribute"""
    if attribute not in content.contents:
        raise UnknownAttributeError(attribute)
    return encode_object_as_str({
        f"{content.vocabulary}{attribute}": content.contents[attribute]
    })


def make_statements(content: DocumentContent) -> Dict[str, str]:
    """
    Decompose content into statements

    Args:
        content: Document content

    Returns:
        Ordered mapping attribute name -> canonical statement (sorted by name)

    Raises:
        InvalidContentError: if the content has no attributes
        EncodingError: if an attribute value cannot be canonicalized
    """
    if not content.contents:
        raise InvalidContentError("Content yields no statements")

    return {
        attribute: make_statement(content, attribute)
        for attribute in sorted(content.contents)
    }
