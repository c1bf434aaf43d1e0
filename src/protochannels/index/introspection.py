"""Build a symbol index from live Python objects.

The classifier never imports or inspects user code itself; this module is the
bridge that turns modules, classes and functions into ``ClassInfo`` and
``DeclarationSite`` records once, up front.
"""

from __future__ import annotations

import inspect
import types
import typing
from typing import Any, Dict, List, Optional, Tuple

from protochannels.annotations import markers_of
from protochannels.core.contracts import (
    OBJECT_NAME,
    VOID,
    AnnotationInstance,
    ClassInfo,
    ClassKind,
    DeclarationSite,
    TargetKind,
    TypeKind,
    TypeReference,
)
from protochannels.core.logger import get_logger
from protochannels.index.symbol_index import InMemorySymbolIndex

logger = get_logger(__name__)

_PRIMITIVES = (int, float, complex, bool, str, bytes, bytearray)


def qualified_name(obj: Any) -> str:
    module = getattr(obj, "__module__", None) or "builtins"
    qualname = getattr(obj, "__qualname__", None) or getattr(obj, "__name__", None) or repr(obj)
    return f"{module}.{qualname}"


def _split_annotated(hint: Any) -> Tuple[Any, Tuple[AnnotationInstance, ...]]:
    if typing.get_origin(hint) is typing.Annotated:
        inner, *metadata = typing.get_args(hint)
        return inner, tuple(m for m in metadata if isinstance(m, AnnotationInstance))
    return hint, ()


class _IndexBuilder:
    def __init__(self, index: InMemorySymbolIndex):
        self.index = index
        self._seen: set = set()

    # -----------------
    # Types
    # -----------------

    def register_class(self, cls: type) -> None:
        if cls is object or cls in self._seen:
            return
        self._seen.add(cls)

        bases = [b for b in getattr(cls, "__bases__", ()) if isinstance(b, type)]
        super_name = qualified_name(bases[0]) if bases else OBJECT_NAME
        if bases and bases[0] is object:
            super_name = OBJECT_NAME
        kind = ClassKind.INTERFACE if getattr(cls, "_is_protocol", False) else ClassKind.CLASS
        self.index.add_class(
            ClassInfo(
                name=qualified_name(cls),
                super_name=super_name,
                interface_names=tuple(qualified_name(b) for b in bases[1:]),
                kind=kind,
            )
        )
        for base in bases:
            self.register_class(base)

    def type_reference(self, hint: Any) -> TypeReference:
        hint, _ = _split_annotated(hint)

        if hint is None or hint is type(None):
            return VOID

        if isinstance(hint, str):
            # Unresolved forward reference; nothing to walk.
            return TypeReference.of(hint)

        if isinstance(hint, typing.TypeVar):
            return TypeReference.of(f"~{hint.__name__}")

        origin = typing.get_origin(hint)
        if origin is not None:
            if isinstance(origin, type):
                self.register_class(origin)
            arguments = [
                self.type_reference(arg)
                for arg in typing.get_args(hint)
                if arg is not Ellipsis and not isinstance(arg, list)
            ]
            return TypeReference.parameterized(qualified_name(origin), *arguments)

        if isinstance(hint, type):
            if hint in _PRIMITIVES:
                return TypeReference(name=qualified_name(hint), kind=TypeKind.PRIMITIVE)
            self.register_class(hint)
            return TypeReference.of(qualified_name(hint))

        return TypeReference.of(repr(hint))

    # -----------------
    # Declarations
    # -----------------

    def scan_function(self, fn: Any, owner: str, *, bound: bool) -> None:
        hints = _type_hints(fn)
        try:
            signature = inspect.signature(fn)
        except (TypeError, ValueError):
            return

        params = list(signature.parameters.values())
        if bound and params:
            params = params[1:]

        method_name = getattr(fn, "__name__", "<anonymous>")
        parameter_types: List[TypeReference] = []
        for position, param in enumerate(params):
            raw = hints.get(param.name, param.annotation)
            if raw is inspect.Parameter.empty:
                ref = TypeReference.of("typing.Any")
                markers: Tuple[AnnotationInstance, ...] = ()
            else:
                inner, markers = _split_annotated(raw)
                ref = self.type_reference(inner)
            parameter_types.append(ref)
            if markers:
                self.index.add_declaration(
                    DeclarationSite(
                        kind=TargetKind.METHOD_PARAMETER,
                        owner=f"{owner}.{method_name}",
                        name=param.name,
                        type=ref,
                        annotations=markers,
                        position=position,
                    )
                )

        method_markers = markers_of(fn)
        if not method_markers:
            return

        return_hint = hints.get("return", signature.return_annotation)
        return_type: Optional[TypeReference] = None
        if return_hint is not inspect.Signature.empty:
            return_type = self.type_reference(return_hint)

        self.index.add_declaration(
            DeclarationSite(
                kind=TargetKind.METHOD,
                owner=owner,
                name=method_name,
                type=return_type,
                parameters=tuple(parameter_types),
                annotations=method_markers,
            )
        )

    def scan_class(self, cls: type) -> None:
        self.register_class(cls)
        owner = qualified_name(cls)

        own_annotations = cls.__dict__.get("__annotations__", {})
        hints = _type_hints(cls)
        for field_name in own_annotations:
            inner, markers = _split_annotated(hints.get(field_name, own_annotations[field_name]))
            if not markers:
                continue
            self.index.add_declaration(
                DeclarationSite(
                    kind=TargetKind.FIELD,
                    owner=owner,
                    name=field_name,
                    type=self.type_reference(inner),
                    annotations=markers,
                )
            )

        for member in cls.__dict__.values():
            if isinstance(member, staticmethod):
                self.scan_function(member.__func__, owner, bound=False)
            elif isinstance(member, classmethod):
                self.scan_function(member.__func__, owner, bound=True)
            elif inspect.isfunction(member):
                self.scan_function(member, owner, bound=True)

    def scan_module(self, module: types.ModuleType) -> None:
        for member in list(vars(module).values()):
            if getattr(member, "__module__", None) != module.__name__:
                continue
            if isinstance(member, type):
                self.scan_class(member)
            elif inspect.isfunction(member):
                self.scan_function(member, module.__name__, bound=False)

    def scan(self, target: Any) -> None:
        if isinstance(target, types.ModuleType):
            self.scan_module(target)
        elif isinstance(target, type):
            self.scan_class(target)
        elif inspect.isfunction(target):
            self.scan_function(target, target.__module__, bound=False)
        else:
            raise TypeError(f"Cannot index {target!r}; expected a module, class or function")


def _type_hints(obj: Any) -> Dict[str, Any]:
    try:
        return typing.get_type_hints(obj, include_extras=True)
    except Exception as exc:  # unresolved forward references, broken annotations
        logger.debug("Could not resolve type hints for %s: %s", qualified_name(obj), exc)
        return dict(getattr(obj, "__annotations__", {}) or {})


def build_index(*targets: Any, index: Optional[InMemorySymbolIndex] = None) -> InMemorySymbolIndex:
    """Index modules, classes and functions.

    Classes referenced from hints are registered together with their whole
    base chain, so the classifier can walk them without further imports.
    """
    index = index if index is not None else InMemorySymbolIndex()
    builder = _IndexBuilder(index)
    for target in targets:
        builder.scan(target)
    return index


def index_types(*classes: type, index: Optional[InMemorySymbolIndex] = None) -> InMemorySymbolIndex:
    """Register classes (and their bases) without scanning their members."""
    index = index if index is not None else InMemorySymbolIndex()
    builder = _IndexBuilder(index)
    for cls in classes:
        builder.register_class(cls)
    return index


def type_reference(hint: Any, index: Optional[InMemorySymbolIndex] = None) -> TypeReference:
    """Convert a type hint to a ``TypeReference``, registering any classes it names."""
    builder = _IndexBuilder(index if index is not None else InMemorySymbolIndex())
    return builder.type_reference(hint)

