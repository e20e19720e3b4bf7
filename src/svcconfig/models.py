"""Pydantic models of the service configuration.

This is the single source of truth for the shape of configuration documents.
Every message is a frozen :class:`ConfigMessage`, so a configuration tree is an
immutable value that is only ever changed through a
:class:`~svcconfig.config_source.ConfigSourceBuilder`.

Each message instance receives an opaque, monotonically increasing
``node_id`` when it is created. The merge engine keys its location side-table
on that token rather than on structural equality: two equal sub-trees built
from different documents keep separate provenance.

Presence follows proto3 rules. A field is *set* when its value differs from
the field default -- ``None`` for sub-messages and wrapper values, empty for
lists and maps, the zero value otherwise. See :func:`has_field`.

The models fall into three groups:

**Service** -- the root :class:`Service` and its sections
    (:class:`Documentation`, :class:`Http`, :class:`Quota`, ...).

**Type system** -- :class:`Api`, :class:`ApiMethod`, :class:`Type`,
    :class:`TypeField`, :class:`Enum`, :class:`EnumValue`, :class:`Option`.

**Enumerations** -- :class:`FieldKind`, :class:`Cardinality`, :class:`Syntax`.
"""

from __future__ import annotations

import enum
import itertools
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

TYPE_URL_PREFIX = "type.googleapis.com/"
"""Prefix of every type URL in a service configuration."""

SERVICE_TYPE_NAME = "google.api.Service"
"""Value of the ``type`` header a configuration document must carry."""

_node_ids = itertools.count(1)


class ConfigMessage(BaseModel):
    """Base class of all configuration messages.

    Instances are frozen and carry a private identity token assigned at
    construction time. Use :meth:`node_id` to key side-tables.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    _node_id: int = PrivateAttr(default_factory=lambda: next(_node_ids))

    @property
    def node_id(self) -> int:
        """Creation-time identity of this message instance."""
        return self._node_id


def has_field(message: ConfigMessage, name: str) -> bool:
    """Return ``True`` if *name* holds a non-default value in *message*."""
    info = type(message).model_fields[name]
    return getattr(message, name) != info.get_default(call_default_factory=True)


# --- Enumerations ---


class FieldKind(str, enum.Enum):
    """Basic field types."""

    TYPE_UNKNOWN = "TYPE_UNKNOWN"
    TYPE_DOUBLE = "TYPE_DOUBLE"
    TYPE_FLOAT = "TYPE_FLOAT"
    TYPE_INT64 = "TYPE_INT64"
    TYPE_UINT64 = "TYPE_UINT64"
    TYPE_INT32 = "TYPE_INT32"
    TYPE_FIXED64 = "TYPE_FIXED64"
    TYPE_FIXED32 = "TYPE_FIXED32"
    TYPE_BOOL = "TYPE_BOOL"
    TYPE_STRING = "TYPE_STRING"
    TYPE_GROUP = "TYPE_GROUP"
    TYPE_MESSAGE = "TYPE_MESSAGE"
    TYPE_BYTES = "TYPE_BYTES"
    TYPE_UINT32 = "TYPE_UINT32"
    TYPE_ENUM = "TYPE_ENUM"
    TYPE_SFIXED32 = "TYPE_SFIXED32"
    TYPE_SFIXED64 = "TYPE_SFIXED64"
    TYPE_SINT32 = "TYPE_SINT32"
    TYPE_SINT64 = "TYPE_SINT64"


class Cardinality(str, enum.Enum):
    """Whether a field is optional, required, or repeated."""

    CARDINALITY_UNKNOWN = "CARDINALITY_UNKNOWN"
    CARDINALITY_OPTIONAL = "CARDINALITY_OPTIONAL"
    CARDINALITY_REQUIRED = "CARDINALITY_REQUIRED"
    CARDINALITY_REPEATED = "CARDINALITY_REPEATED"


class Syntax(str, enum.Enum):
    """Syntax a type or api was defined in."""

    SYNTAX_PROTO2 = "SYNTAX_PROTO2"
    SYNTAX_PROTO3 = "SYNTAX_PROTO3"


# --- Type system ---


class SourceContext(ConfigMessage):
    file_name: str = ""


class Option(ConfigMessage):
    """A named option attached to a type, field, enum, or api.

    The value is kept in its textual form (``"true"``, ``"42"``, ...).
    """

    name: str = ""
    value: str = ""


class TypeField(ConfigMessage):
    """A single field of a message type."""

    kind: FieldKind = FieldKind.TYPE_UNKNOWN
    cardinality: Cardinality = Cardinality.CARDINALITY_UNKNOWN
    number: int = 0
    name: str = ""
    type_url: str = ""
    oneof_index: int = 0
    packed: bool = False
    options: list[Option] = Field(default_factory=list)
    json_name: str = ""
    default_value: str = ""


class Type(ConfigMessage):
    """A message type, identified by its fully qualified ``name``."""

    name: str = ""
    fields: list[TypeField] = Field(default_factory=list)
    oneofs: list[str] = Field(default_factory=list)
    options: list[Option] = Field(default_factory=list)
    source_context: Optional[SourceContext] = None
    syntax: Syntax = Syntax.SYNTAX_PROTO2


class EnumValue(ConfigMessage):
    name: str = ""
    number: int = 0
    options: list[Option] = Field(default_factory=list)


class Enum(ConfigMessage):
    """An enum type, identified by its fully qualified ``name``."""

    name: str = ""
    enumvalue: list[EnumValue] = Field(default_factory=list)
    options: list[Option] = Field(default_factory=list)
    source_context: Optional[SourceContext] = None
    syntax: Syntax = Syntax.SYNTAX_PROTO2


class ApiMethod(ConfigMessage):
    """A method of an :class:`Api`; request and response are type URLs."""

    name: str = ""
    request_type_url: str = ""
    request_streaming: bool = False
    response_type_url: str = ""
    response_streaming: bool = False
    options: list[Option] = Field(default_factory=list)
    syntax: Syntax = Syntax.SYNTAX_PROTO2


class Mixin(ConfigMessage):
    name: str = ""
    root: str = ""


class Api(ConfigMessage):
    """An interface exposed by the service."""

    name: str = ""
    methods: list[ApiMethod] = Field(default_factory=list)
    options: list[Option] = Field(default_factory=list)
    version: str = ""
    source_context: Optional[SourceContext] = None
    mixins: list[Mixin] = Field(default_factory=list)
    syntax: Syntax = Syntax.SYNTAX_PROTO2


# --- Documentation ---


class Page(ConfigMessage):
    name: str = ""
    content: str = ""
    subpages: list[Page] = Field(default_factory=list)


class DocumentationRule(ConfigMessage):
    """Documentation for the elements matched by ``selector``."""

    selector: str = ""
    description: str = ""
    deprecation_description: str = ""


class Documentation(ConfigMessage):
    summary: str = ""
    pages: list[Page] = Field(default_factory=list)
    rules: list[DocumentationRule] = Field(default_factory=list)
    documentation_root_url: str = ""
    overview: str = ""


# --- HTTP ---


class CustomHttpPattern(ConfigMessage):
    kind: str = ""
    path: str = ""


class HttpRule(ConfigMessage):
    """Maps the method named by ``selector`` onto an HTTP verb and path.

    Exactly one of the verb fields is expected to be set.
    """

    selector: str = ""
    get: str = ""
    put: str = ""
    post: str = ""
    delete: str = ""
    patch: str = ""
    custom: Optional[CustomHttpPattern] = None
    body: str = ""
    response_body: str = ""
    additional_bindings: list[HttpRule] = Field(default_factory=list)


class Http(ConfigMessage):
    rules: list[HttpRule] = Field(default_factory=list)
    fully_decode_reserved_expansion: bool = False


# --- Other sections ---


class Endpoint(ConfigMessage):
    name: str = ""
    aliases: list[str] = Field(default_factory=list)
    target: str = ""
    allow_cors: bool = False


class QuotaLimit(ConfigMessage):
    name: str = ""
    description: str = ""
    default_limit: int = 0
    max_limit: int = 0
    free_tier: int = 0
    duration: str = ""
    metric: str = ""
    unit: str = ""
    values: dict[str, int] = Field(default_factory=dict)
    display_name: str = ""


class MetricRule(ConfigMessage):
    selector: str = ""
    metric_costs: dict[str, int] = Field(default_factory=dict)


class Quota(ConfigMessage):
    limits: list[QuotaLimit] = Field(default_factory=list)
    metric_rules: list[MetricRule] = Field(default_factory=list)


class Control(ConfigMessage):
    environment: str = ""


class Usage(ConfigMessage):
    requirements: list[str] = Field(default_factory=list)
    producer_notification_channel: str = ""


# --- Service ---


class Service(ConfigMessage):
    """The root of a service configuration.

    ``config_version`` is a wrapper value: ``None`` means "not specified",
    which is distinct from any explicit number.
    """

    name: str = ""
    title: str = ""
    producer_project_id: str = ""
    id: str = ""
    config_version: Optional[int] = None
    apis: list[Api] = Field(default_factory=list)
    types: list[Type] = Field(default_factory=list)
    enums: list[Enum] = Field(default_factory=list)
    documentation: Optional[Documentation] = None
    http: Optional[Http] = None
    quota: Optional[Quota] = None
    endpoints: list[Endpoint] = Field(default_factory=list)
    control: Optional[Control] = None
    usage: Optional[Usage] = None
