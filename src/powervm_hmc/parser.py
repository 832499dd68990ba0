"""Decoder for HMC K2 XML responses.

A response body holds either a single entry or a feed of entries::

    <feed>
      <entry>
        <!-- entry #1 -->
      </entry>
      <entry>
        <!-- entry #2 -->
      </entry>
      ...
    </feed>
"""

import xml.etree.ElementTree as ET
from collections.abc import Iterator

from .errors import ProtocolError
from .schema import EmbeddedEntity, FreestandingEntity, parse_many, parse_one
from .schema.base import local_name


class Document:
    """A decoded response body.

    An empty body is valid and decodes to a document without entries.

    Args:
        body: Raw response body.

    Raises:
        ProtocolError: If a non-empty body is not well-formed XML.
    """

    def __init__(self, body: bytes | str | None):
        self.root: ET.Element | None = None
        if body is None or not body.strip():
            return
        try:
            self.root = ET.fromstring(body)
        except ET.ParseError as exc:
            msg = f"Response is not well-formed XML: {exc}"
            raise ProtocolError(msg) from exc

    @property
    def entry(self) -> ET.Element | None:
        """The first entry of the response, or ``None``."""
        return next(self.entries(), None)

    def entries(self) -> Iterator[ET.Element]:
        """Iterate over the entries of the response in document order."""
        if self.root is None:
            return
        if local_name(self.root.tag) == "entry":
            yield self.root
            return
        yield from self.root.iterfind("{*}entry")

    def object(
        self,
        expected_type: str | type[EmbeddedEntity] | None = None,
    ) -> FreestandingEntity | None:
        """Parse the first entry into an entity.

        Args:
            expected_type: Entry type must match this type (class or name).
        """
        return parse_one(self.entry, expected_type)

    def objects(
        self,
        expected_type: str | type[EmbeddedEntity] | None = None,
    ) -> list[FreestandingEntity]:
        """Parse all entries into entities, keeping only those of expected_type."""
        return parse_many(self.entries(), expected_type)
