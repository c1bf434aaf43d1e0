from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import FrozenSet, Optional, Tuple

OBJECT_NAME = "builtins.object"


class TypeKind(str, Enum):
    CLASS = "class"
    PARAMETERIZED = "parameterized"
    PRIMITIVE = "primitive"
    VOID = "void"


@dataclass(frozen=True)
class TypeReference:
    """A declared type: a plain class, or a generic type with ordered arguments."""

    name: str
    kind: TypeKind = TypeKind.CLASS
    arguments: Tuple["TypeReference", ...] = ()

    @classmethod
    def of(cls, name: str) -> "TypeReference":
        return cls(name=name, kind=TypeKind.CLASS)

    @classmethod
    def parameterized(cls, name: str, *arguments: "TypeReference") -> "TypeReference":
        return cls(name=name, kind=TypeKind.PARAMETERIZED, arguments=tuple(arguments))

    def __str__(self) -> str:
        if self.kind == TypeKind.PARAMETERIZED:
            return f"{self.name}[{', '.join(str(a) for a in self.arguments)}]"
        return self.name


VOID = TypeReference(name="None", kind=TypeKind.VOID)


class ClassKind(str, Enum):
    CLASS = "class"
    INTERFACE = "interface"


@dataclass(frozen=True)
class ClassInfo:
    name: str
    super_name: Optional[str] = OBJECT_NAME
    interface_names: Tuple[str, ...] = ()
    kind: ClassKind = ClassKind.CLASS


@dataclass(frozen=True)
class AnnotationInstance:
    """A marker attached to a declaration, carrying a single string value (the channel name)."""

    name: str
    value: str


class TargetKind(str, Enum):
    METHOD = "method"
    FIELD = "field"
    METHOD_PARAMETER = "method_parameter"


@dataclass(frozen=True)
class DeclarationSite:
    """
    A method, field or method parameter as seen by the symbol index.

    For methods ``type`` is the return type and ``parameters`` the parameter
    types. For fields and parameters ``type`` is the declared type; parameters
    also carry their ``position``.
    """

    kind: TargetKind
    owner: str
    name: str
    type: Optional[TypeReference] = None
    parameters: Tuple[TypeReference, ...] = ()
    annotations: Tuple[AnnotationInstance, ...] = ()
    position: Optional[int] = None

    def annotation(self, name: str) -> Optional[AnnotationInstance]:
        for ann in self.annotations:
            if ann.name == name:
                return ann
        return None

    def with_annotations(self, annotations: Tuple[AnnotationInstance, ...]) -> "DeclarationSite":
        return replace(self, annotations=tuple(annotations))

    @property
    def qualified_name(self) -> str:
        if self.kind == TargetKind.METHOD_PARAMETER:
            return f"{self.owner}#{self.position}:{self.name}"
        return f"{self.owner}.{self.name}"


@dataclass(frozen=True)
class AnnotationUsage:
    annotation: AnnotationInstance
    target: DeclarationSite


class ChannelDirection(str, Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"


@dataclass(frozen=True)
class ChannelDescriptor:
    name: str
    direction: ChannelDirection

    @property
    def prefix(self) -> str:
        return f"mp.messaging.{self.direction.value}.{self.name}."


@dataclass(frozen=True)
class DetectedChannels:
    """Channels that need Protobuf serde configuration, split by direction."""

    incoming: FrozenSet[str] = field(default_factory=frozenset)
    outgoing: FrozenSet[str] = field(default_factory=frozenset)

    def is_empty(self) -> bool:
        return not self.incoming and not self.outgoing

    def descriptors(self) -> Tuple[ChannelDescriptor, ...]:
        incoming = [ChannelDescriptor(n, ChannelDirection.INCOMING) for n in sorted(self.incoming)]
        outgoing = [ChannelDescriptor(n, ChannelDirection.OUTGOING) for n in sorted(self.outgoing)]
        return tuple(incoming + outgoing)
