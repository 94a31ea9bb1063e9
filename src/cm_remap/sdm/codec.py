"""Decode, edit, and re-encode application installer content documents.

An application's installer content document (``SDMPackageXML``) holds one
``DeploymentType`` element per installation technology. Each deployment type
carries an ``Installer/Contents`` list of ``Content`` importers, and the first
importer is the deployment type's primary content location::

    <AppMgmtDigest xmlns="http://schemas.microsoft.com/...">
      <DeploymentType LogicalName="DeploymentType_...">
        <Title>Install</Title>
        <Technology>Script</Technology>
        <Installer Technology="Script">
          <Contents>
            <Content ContentId="Content_..." Version="1">
              <File Name="setup.exe" Size="1024"/>
              <Location>\\\\server\\share\\app\\</Location>
              <PeerCache>true</PeerCache>
              <OnFastNetwork>Download</OnFastNetwork>
              <OnSlowNetwork>DoNothing</OnSlowNetwork>
            </Content>
          </Contents>
          ...

Decoding never raises on malformed input; callers inspect ``DecodeResult``.
An untouched document encodes back to its original bytes.
"""

from __future__ import annotations

import io
import re
import uuid
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Literal

ContentHandlingMode = Literal["Download", "DoNothing"]

DEFAULT_FALLBACK_TO_UNPROTECTED_DP = True
DEFAULT_ON_FAST_NETWORK: ContentHandlingMode = "Download"
DEFAULT_ON_SLOW_NETWORK: ContentHandlingMode = "DoNothing"
DEFAULT_PEER_CACHE = False
DEFAULT_PIN_ON_CLIENT = False

_XML_DECLARATION_RE = re.compile(r"^\s*(<\?xml[^>]*\?>)")
_DECLARED_ENCODING_RE = re.compile(r"encoding=[\"']([A-Za-z0-9._-]+)[\"']")
_RESERVED_PREFIX_RE = re.compile(r"ns\d+$")

SDM_NAMESPACE = "http://schemas.microsoft.com/SystemCenterConfigurationManager/2009/AppMgmtDigest"

# Namespace URIs already mapped in ElementTree's serializer registry.
_registered_namespaces: set[str] = set()


def _register_namespace_once(prefix: str, uri: str) -> None:
    """Map ``uri`` to ``prefix`` for serialization the first time the URI is seen."""

    if uri in _registered_namespaces or _RESERVED_PREFIX_RE.match(prefix):
        return
    ET.register_namespace(prefix, uri)
    _registered_namespaces.add(uri)


_register_namespace_once("", SDM_NAMESPACE)
_register_namespace_once("xsi", "http://www.w3.org/2001/XMLSchema-instance")


@dataclass(frozen=True, slots=True)
class ContentFile:
    """One file entry in a content importer's manifest."""

    name: str
    size: str


@dataclass(frozen=True, slots=True)
class ContentDescriptor:
    """Installable content for one deployment type plus distribution policy."""

    content_id: str
    version: str
    location: str
    files: tuple[ContentFile, ...] = ()
    fallback_to_unprotected_dp: bool | None = None
    on_fast_network: str | None = None
    on_slow_network: str | None = None
    peer_cache: bool | None = None
    pin_on_client: bool | None = None


@dataclass(slots=True)
class DeploymentTypeRecord:
    """One deployment type with its ordered content descriptors."""

    logical_name: str
    title: str
    technology: str
    descriptors: list[ContentDescriptor]
    element: ET.Element = field(repr=False, compare=False)

    @property
    def primary(self) -> ContentDescriptor | None:
        return self.descriptors[0] if self.descriptors else None


@dataclass(slots=True)
class InstallerDocument:
    """Parsed installer content document."""

    deployment_types: list[DeploymentTypeRecord]
    root: ET.Element = field(repr=False)
    raw: str | bytes = field(repr=False)
    namespace: str = ""
    prefixes: dict[str, str] = field(default_factory=dict, repr=False)
    modified: bool = False

    def primary_locations(self) -> list[tuple[int, str]]:
        """Return ``(deployment type index, location)`` for each primary descriptor."""

        return [
            (index, record.descriptors[0].location)
            for index, record in enumerate(self.deployment_types)
            if record.descriptors
        ]

    def replace_primary_descriptor(self, index: int, descriptor: ContentDescriptor) -> None:
        """Swap descriptor[0] of one deployment type for ``descriptor`` in place.

        References to the old content id elsewhere in the same deployment type
        (install/uninstall actions) are repointed to the new id.
        """

        record = self.deployment_types[index]
        if not record.descriptors:
            raise ValueError(f"deployment type {record.logical_name!r} has no content descriptors")

        contents = _find_contents(record.element, self.namespace)
        if contents is None:
            raise ValueError(f"deployment type {record.logical_name!r} has no Contents element")
        old_element = contents.findall(_qname(self.namespace, "Content"))[0]
        old_id = record.descriptors[0].content_id

        new_element = _descriptor_element(descriptor, self.namespace)
        new_element.text = old_element.text
        new_element.tail = old_element.tail
        position = list(contents).index(old_element)
        contents.remove(old_element)
        contents.insert(position, new_element)

        if old_id:
            for node in record.element.iter():
                if node is new_element:
                    continue
                if node.get("ContentId") == old_id:
                    node.set("ContentId", descriptor.content_id)

        record.descriptors[0] = descriptor
        self.modified = True


@dataclass(frozen=True, slots=True)
class DecodeResult:
    """Explicit success/failure result of ``decode_document``."""

    document: InstallerDocument | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.document is not None


def _qname(namespace: str, tag: str) -> str:
    """Return ``tag`` in Clark notation when the document is namespaced."""

    return f"{{{namespace}}}{tag}" if namespace else tag


def _namespace_of(tag: str) -> str:
    if tag.startswith("{"):
        return tag[1:].split("}", 1)[0]
    return ""


def _child_text(element: ET.Element, namespace: str, tag: str) -> str | None:
    """Return the stripped text of a direct child, or None when absent or empty."""

    child = element.find(_qname(namespace, tag))
    if child is None or child.text is None:
        return None
    return child.text.strip()


def _parse_bool(value: str | None) -> bool | None:
    """Parse an xsd:boolean; anything but ``true`` is false."""

    if value is None:
        return None
    return value.strip().lower() == "true"


def _format_bool(value: bool) -> str:
    return "true" if value else "false"


def _find_contents(deployment_type: ET.Element, namespace: str) -> ET.Element | None:
    """Locate ``Installer/Contents`` under a deployment type."""

    installer = deployment_type.find(_qname(namespace, "Installer"))
    if installer is None:
        return None
    return installer.find(_qname(namespace, "Contents"))


def _read_descriptor(element: ET.Element, namespace: str) -> ContentDescriptor:
    """Build a typed descriptor from one ``Content`` importer element."""

    files = tuple(
        ContentFile(name=node.get("Name", ""), size=node.get("Size", "0"))
        for node in element.findall(_qname(namespace, "File"))
    )
    return ContentDescriptor(
        content_id=element.get("ContentId", ""),
        version=element.get("Version", "1"),
        location=_child_text(element, namespace, "Location") or "",
        files=files,
        fallback_to_unprotected_dp=_parse_bool(_child_text(element, namespace, "FallbackToUnprotectedDP")),
        on_fast_network=_child_text(element, namespace, "OnFastNetwork"),
        on_slow_network=_child_text(element, namespace, "OnSlowNetwork"),
        peer_cache=_parse_bool(_child_text(element, namespace, "PeerCache")),
        pin_on_client=_parse_bool(_child_text(element, namespace, "PinOnClient")),
    )


def _descriptor_element(descriptor: ContentDescriptor, namespace: str) -> ET.Element:
    """Render a descriptor as a ``Content`` element; unset policy flags are omitted."""

    element = ET.Element(
        _qname(namespace, "Content"),
        {"ContentId": descriptor.content_id, "Version": descriptor.version},
    )
    for content_file in descriptor.files:
        ET.SubElement(element, _qname(namespace, "File"), {"Name": content_file.name, "Size": content_file.size})

    optional_values: list[tuple[str, str | None]] = [
        ("Location", descriptor.location),
        ("PeerCache", None if descriptor.peer_cache is None else _format_bool(descriptor.peer_cache)),
        ("OnFastNetwork", descriptor.on_fast_network),
        ("OnSlowNetwork", descriptor.on_slow_network),
        (
            "FallbackToUnprotectedDP",
            None if descriptor.fallback_to_unprotected_dp is None else _format_bool(descriptor.fallback_to_unprotected_dp),
        ),
        ("PinOnClient", None if descriptor.pin_on_client is None else _format_bool(descriptor.pin_on_client)),
    ]
    for tag, value in optional_values:
        if value is None:
            continue
        ET.SubElement(element, _qname(namespace, tag)).text = value
    return element


def _leading_text(raw: str | bytes) -> str:
    """Decode enough of the raw document to read its XML declaration."""

    if isinstance(raw, str):
        return raw[:200]
    head = raw[:400]
    if head.startswith((b"\xff\xfe", b"\xfe\xff")):
        return head.decode("utf-16", errors="ignore")
    return head.decode("utf-8", errors="ignore").lstrip("\ufeff")


def _collect_prefixes(raw: str | bytes) -> dict[str, str]:
    """Return the first URI declared for each namespace prefix, in document order."""

    source: io.IOBase = io.BytesIO(raw) if isinstance(raw, bytes) else io.StringIO(raw)
    prefixes: dict[str, str] = {}
    for _, (prefix, uri) in ET.iterparse(source, events=("start-ns",)):
        prefixes.setdefault(prefix, uri)
    return prefixes


def decode_document(raw: str | bytes | None) -> DecodeResult:
    """Parse an installer content document into typed deployment-type records."""

    if raw is None or not raw.strip():
        return DecodeResult(error="document is empty")

    try:
        root = ET.fromstring(raw)
        prefixes = _collect_prefixes(raw)
    except ET.ParseError as exc:
        return DecodeResult(error=f"malformed XML: {exc}")
    except (LookupError, ValueError) as exc:
        return DecodeResult(error=f"unreadable document: {exc}")

    namespace = _namespace_of(root.tag)
    deployment_types: list[DeploymentTypeRecord] = []
    for element in root.findall(_qname(namespace, "DeploymentType")):
        contents = _find_contents(element, namespace)
        descriptors = (
            [_read_descriptor(node, namespace) for node in contents.findall(_qname(namespace, "Content"))]
            if contents is not None
            else []
        )
        deployment_types.append(
            DeploymentTypeRecord(
                logical_name=element.get("LogicalName", ""),
                title=_child_text(element, namespace, "Title") or "",
                technology=_child_text(element, namespace, "Technology") or "",
                descriptors=descriptors,
                element=element,
            )
        )

    return DecodeResult(
        document=InstallerDocument(
            deployment_types=deployment_types,
            root=root,
            raw=raw,
            namespace=namespace,
            prefixes=prefixes,
        )
    )


def encode_document(document: InstallerDocument) -> str | bytes:
    """Serialize a document back to the type it was decoded from.

    Unmodified documents return their original input unchanged. Modified ones
    are re-serialized with the original XML declaration and namespace prefixes.
    """

    if not document.modified:
        return document.raw

    if document.namespace:
        _register_namespace_once("", document.namespace)
    for prefix, uri in document.prefixes.items():
        if prefix:
            _register_namespace_once(prefix, uri)

    body = ET.tostring(document.root, encoding="unicode")

    declaration_match = _XML_DECLARATION_RE.match(_leading_text(document.raw))
    declaration = declaration_match.group(1) if declaration_match else ""
    text = declaration + body

    if isinstance(document.raw, str):
        return text
    encoding = "utf-8"
    if declaration:
        encoding_match = _DECLARED_ENCODING_RE.search(declaration)
        if encoding_match:
            encoding = encoding_match.group(1)
    return text.encode(encoding, errors="xmlcharrefreplace")


def build_replacement_descriptor(previous: ContentDescriptor, location: str) -> ContentDescriptor:
    """Build a fresh primary descriptor pointing at a validated ``location``.

    Distribution policy flags are reset to fixed defaults; any customization
    on ``previous`` is dropped. The file manifest is carried over.
    """

    return ContentDescriptor(
        content_id=f"Content_{uuid.uuid4()}",
        version="1",
        location=location,
        files=previous.files,
        fallback_to_unprotected_dp=DEFAULT_FALLBACK_TO_UNPROTECTED_DP,
        on_fast_network=DEFAULT_ON_FAST_NETWORK,
        on_slow_network=DEFAULT_ON_SLOW_NETWORK,
        peer_cache=DEFAULT_PEER_CACHE,
        pin_on_client=DEFAULT_PIN_ON_CLIENT,
    )
