"""Generic mapping of K2 payloads to typed entities.

Each concrete entity type declares its fields as class-level
:class:`Attribute` descriptors, each locating a value by a path relative to
the payload element. The effective attribute table of a type (``ATTRS``) is
the union of its own fields and those of all its ancestors, with the subtype
winning on a name collision.

Reads and writes go straight to the underlying ``ElementTree`` element, so
the tree is always the source of truth and :meth:`EmbeddedEntity.to_xml`
reflects every write.

An entry looks like this::

    <entry>
      <id>uuid</id>
      <published>timestamp</published>
      <link rel="SELF" href="https://..."/>
      <etag:etag>ETag</etag:etag>
      <content type="application/vnd.ibm.powervm.uom+xml; type=TypeName">
        <TypeName>...</TypeName>
      </content>
    </entry>
"""

import re
import xml.etree.ElementTree as ET
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Any, ClassVar
from urllib.parse import urlparse

import structlog

from ..errors import ProtocolError

logger = structlog.get_logger(__name__)

UOM_XMLNS = "http://www.ibm.com/xmlns/systems/power/firmware/uom/mc/2012_10/"
WEB_XMLNS = "http://www.ibm.com/xmlns/systems/power/firmware/web/mc/2012_10/"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_PLAIN_SEGMENT = re.compile(r"^[A-Za-z_][\w.-]*")

# Concrete entity types keyed by class name, filled in as classes are defined.
_ENTITY_TYPES: dict[str, type["EmbeddedEntity"]] = {}


def qualify(path: str) -> str:
    """Rewrite an element path so that each step matches any namespace.

    ``"Config/Name[@x='1']/*[1]"`` becomes ``"{*}Config/{*}Name[@x='1']/*[1]"``.
    Wildcard and relative steps are left untouched.
    """
    return "/".join(
        f"{{*}}{step}" if _PLAIN_SEGMENT.match(step) else step
        for step in path.split("/")
    )


def local_name(tag: str) -> str:
    """Return the tag name without its ``{namespace}`` prefix."""
    return tag.rsplit("}", 1)[-1]


def namespace_of(tag: str) -> str | None:
    if tag.startswith("{"):
        return tag[1:].split("}", 1)[0]
    return None


def _text(elem: ET.Element | None) -> str | None:
    if elem is None or elem.text is None:
        return None
    return elem.text.strip()


def _to_bool(text: str) -> bool:
    return text.lower() == "true"


_CONVERTERS: dict[type, Callable[[str], Any]] = {
    str: str,
    int: int,
    float: float,
    bool: _to_bool,
}


def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class Attribute:
    """A field bound to a path inside the entity payload.

    Args:
        path: Element path relative to the payload element.
        kind: Python type the text is converted to on read (str, int, float
            or bool). Unparsable numbers read as ``None``.
    """

    def __init__(self, path: str, kind: type = str):
        if kind not in _CONVERTERS:
            msg = f"Unsupported attribute kind: {kind!r}"
            raise TypeError(msg)
        self.path = path
        self.kind = kind
        self.name: str | None = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance: "EmbeddedEntity | None", owner: type | None = None):
        if instance is None:
            return self
        text = instance.singleton(self.path)
        if text is None:
            return None
        try:
            return _CONVERTERS[self.kind](text)
        except ValueError:
            return None

    def __set__(self, instance: "EmbeddedEntity", value: Any) -> None:
        instance.write(self.path, value)

    def __repr__(self) -> str:
        return f"Attribute({self.path!r}, {self.kind.__name__})"


def lookup_entity_type(name: str) -> type["EmbeddedEntity"] | None:
    """Return the registered entity type with the given name, if any."""
    return _ENTITY_TYPES.get(name)


def _entity_from_element(elem: ET.Element) -> "EmbeddedEntity | None":
    """Build an entity from a nested element, dispatching on its tag name."""
    kind = local_name(elem.tag)
    cls = _ENTITY_TYPES.get(kind)
    if cls is None:
        logger.debug("Skipping element of unknown kind", kind=kind)
        return None
    return cls(elem)


class EmbeddedEntity:
    """Typed view over a payload element without identity of its own.

    Subclasses declare :class:`Attribute` fields and are registered under
    their class name unless defined with ``abstract=True``.

    Attributes:
        xml: The payload element backing this entity.
    """

    ATTRS: ClassVar[Mapping[str, str]] = MappingProxyType({})
    FIELDS: ClassVar[Mapping[str, Attribute]] = MappingProxyType({})

    def __init_subclass__(cls, abstract: bool = False, **kwargs: Any):
        super().__init_subclass__(**kwargs)
        fields: dict[str, Attribute] = {}
        for klass in reversed(cls.__mro__):
            for name, value in vars(klass).items():
                if isinstance(value, Attribute):
                    fields[name] = value
                elif name in fields:
                    # Redefined as something other than a field.
                    del fields[name]
        cls.FIELDS = MappingProxyType(fields)
        cls.ATTRS = MappingProxyType({name: f.path for name, f in fields.items()})
        if not abstract:
            _ENTITY_TYPES[cls.__name__] = cls

    def __init__(self, xml: ET.Element):
        self.xml = xml

    @classmethod
    def marshal(
        cls,
        attrs: Mapping[str, Any] | None = None,
        namespace: str = UOM_XMLNS,
        version: str = "V1_1_0",
    ):
        """Build a new entity with an empty payload named after the class.

        Args:
            attrs: Field values (or settable properties) to apply.
            namespace: XML namespace of the payload element.
            version: Value of the ``schemaVersion`` attribute.
        """
        xml = ET.Element(f"{{{namespace}}}{cls.__name__}", {"schemaVersion": version})
        obj = cls(xml)
        for name, value in (attrs or {}).items():
            if not hasattr(cls, name):
                msg = f"{cls.__name__} has no attribute {name!r}"
                raise AttributeError(msg)
            setattr(obj, name, value)
        return obj

    def get(self, name: str) -> Any:
        """Read a declared field by name."""
        if name not in self.FIELDS:
            msg = f"{type(self).__name__} has no field {name!r}"
            raise AttributeError(msg)
        return getattr(self, name)

    def set(self, name: str, value: Any) -> None:
        """Write a declared field by name. ``None`` clears the field."""
        if name not in self.FIELDS:
            msg = f"{type(self).__name__} has no field {name!r}"
            raise AttributeError(msg)
        setattr(self, name, value)

    def singleton(self, path: str, attr: str | None = None) -> str | None:
        """Return the stripped text (or an attribute value) of the element at path.

        Example:
            ``lpar.singleton("AssociatedManagedSystem", "href")``
        """
        elem = self.xml.find(qualify(path))
        if elem is None:
            return None
        if attr is not None:
            return elem.get(attr)
        return _text(elem)

    def write(self, path: str, value: Any) -> None:
        """Set the text at path, creating missing elements; ``None`` removes it."""
        if value is None:
            self._remove(path)
            return
        elem = self.xml.find(qualify(path))
        if elem is None:
            elem = self._create_element(path)
        elem.text = _to_text(value)

    def _create_element(self, path: str) -> ET.Element:
        cur = self.xml
        for step in path.split("/"):
            if _PLAIN_SEGMENT.fullmatch(step) is None:
                msg = f"Cannot create element for path step {step!r} in {path!r}"
                raise ValueError(msg)
            child = cur.find(qualify(step))
            if child is None:
                ns = namespace_of(cur.tag)
                child = ET.SubElement(cur, f"{{{ns}}}{step}" if ns else step)
            cur = child
        return cur

    def _remove(self, path: str) -> None:
        parent_path, _, leaf = path.rpartition("/")
        parent = self.xml.find(qualify(parent_path)) if parent_path else self.xml
        if parent is None:
            return
        child = parent.find(qualify(leaf))
        if child is not None:
            parent.remove(child)

    def timestamp(self, path: str) -> datetime | None:
        """Read an element holding milliseconds since the epoch as a UTC datetime."""
        text = self.singleton(path)
        if text is None:
            return None
        try:
            return _EPOCH + timedelta(milliseconds=int(text))
        except ValueError as exc:
            msg = f"Malformed timestamp at {path}: {text!r}"
            raise ProtocolError(msg) from exc

    def texts(self, path: str) -> list[str]:
        """Return the stripped text of every element matching path."""
        return [
            text
            for elem in self.xml.findall(qualify(path))
            if (text := _text(elem)) is not None
        ]

    def flags(self, path: str) -> list[str]:
        """Return the names of the elements matching path whose text is ``true``."""
        return [
            local_name(elem.tag)
            for elem in self.xml.findall(qualify(path))
            if _text(elem) == "true"
        ]

    @staticmethod
    def uuid_from_href(href: str, index: int = -1) -> str:
        """Extract the path segment at index from a link target."""
        return urlparse(href).path.split("/")[index]

    def href_uuid(self, path: str, index: int = -1) -> str | None:
        """Extract the identifier from the ``href`` attribute of the element at path."""
        href = self.singleton(path, "href")
        return self.uuid_from_href(href, index) if href is not None else None

    def uuids_from_links(self, container: str, index: int = -1) -> list[str]:
        """Extract identifiers from every ``link`` element under container."""
        return [
            self.uuid_from_href(link.get("href"), index)
            for link in self.xml.findall(qualify(f"{container}/link[@href]"))
        ]

    def collection_of(self, container: str | None, kind: str | None) -> list["EmbeddedEntity"]:
        """Decode the child elements at ``container/kind`` into entities.

        ``kind`` may be ``*`` to accept any child. Elements whose kind is not
        a registered entity type are skipped.
        """
        path = "/".join(step for step in (container, kind) if step)
        return [
            obj
            for elem in self.xml.findall(qualify(path))
            if (obj := _entity_from_element(elem)) is not None
        ]

    def element_as(self, path: str) -> "EmbeddedEntity | None":
        """Decode the first element at path, dispatching on its tag name."""
        elem = self.xml.find(qualify(path))
        if elem is None:
            return None
        return _entity_from_element(elem)

    def to_xml(self) -> str:
        """Serialize the payload element."""
        return ET.tostring(self.xml, encoding="unicode")

    def __repr__(self) -> str:
        fields = ", ".join(f"{name}={getattr(self, name)!r}" for name in self.FIELDS)
        return f"{type(self).__name__}({fields})"


def _parse_published(text: str | None) -> datetime:
    if text is None:
        msg = "Entry has no published timestamp"
        raise ProtocolError(msg)
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError as exc:
        msg = f"Malformed published timestamp: {text!r}"
        raise ProtocolError(msg) from exc


class FreestandingEntity(EmbeddedEntity, abstract=True):
    """Typed view over an entry with its own identity and ETag.

    The identity fields are captured when the entry is parsed and are not
    affected by later writes to the payload. When constructed from an element
    that is not an ``entry`` (an inlined object), they are all ``None``.
    """

    def __init__(self, entry: ET.Element):
        self._uuid: str | None = None
        self._published: datetime | None = None
        self._href: str | None = None
        self._etag: str | None = None
        self._content_type: str | None = None

        if local_name(entry.tag) != "entry":
            super().__init__(entry)
            return

        self._uuid = _text(entry.find("{*}id"))
        self._published = _parse_published(_text(entry.find("{*}published")))
        link = entry.find("{*}link[@rel='SELF']")
        if link is not None:
            self._href = link.get("href")
        self._etag = _text(entry.find("{*}etag"))

        content = entry.find("{*}content")
        if content is None:
            msg = f"Entry {self._uuid} has no content"
            raise ProtocolError(msg)
        self._content_type = content.get("type")
        payload = next(iter(content), None)
        if payload is None:
            msg = f"Entry {self._uuid} has an empty content element"
            raise ProtocolError(msg)
        super().__init__(payload)

    @property
    def uuid(self) -> str | None:
        """The UUID of the object contained in the entry."""
        return self._uuid

    @property
    def published(self) -> datetime | None:
        """The time at which the entry was published."""
        return self._published

    @property
    def href(self) -> str | None:
        """The URL of the object itself."""
        return self._href

    @property
    def etag(self) -> str | None:
        """The entity tag of the entry, used for conditional updates."""
        return self._etag

    @property
    def content_type(self) -> str | None:
        """The content type of the object contained in the entry."""
        return self._content_type

    def __repr__(self) -> str:
        fields = [f"uuid={self.uuid!r}"]
        fields.extend(f"{name}={getattr(self, name)!r}" for name in self.FIELDS)
        return f"{type(self).__name__}({', '.join(fields)})"


def _type_name(expected_type: "str | type[EmbeddedEntity] | None") -> str | None:
    if expected_type is None or isinstance(expected_type, str):
        return expected_type
    return expected_type.__name__


def parse_one(
    entry: ET.Element | None,
    expected_type: "str | type[EmbeddedEntity] | None" = None,
) -> FreestandingEntity | None:
    """Build the typed entity for an entry.

    The concrete type is taken from the ``type=`` suffix of the content
    type. Returns ``None`` if there is no entry, no typed content, or the type
    differs from ``expected_type``.

    Raises:
        ProtocolError: If the type is not a known freestanding entity type.
    """
    if entry is None:
        return None
    content = entry.find("{*}content[@type]")
    if content is None:
        return None
    _, sep, type_name = content.get("type", "").rpartition("=")
    if not sep:
        return None
    type_name = type_name.strip()

    expected = _type_name(expected_type)
    if expected is not None and expected != type_name:
        return None

    cls = _ENTITY_TYPES.get(type_name)
    if cls is None or not issubclass(cls, FreestandingEntity):
        msg = f"Unknown entity type: {type_name}"
        raise ProtocolError(msg)
    return cls(entry)


def parse_many(
    entries: Iterable[ET.Element],
    expected_type: "str | type[EmbeddedEntity] | None" = None,
) -> list[FreestandingEntity]:
    """Build entities for every entry, dropping those :func:`parse_one` rejects."""
    return [
        obj
        for entry in entries
        if (obj := parse_one(entry, expected_type)) is not None
    ]
