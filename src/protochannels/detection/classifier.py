from __future__ import annotations

from typing import Optional

from protochannels.core.contracts import OBJECT_NAME, TypeKind, TypeReference
from protochannels.core.logger import get_logger
from protochannels.index.symbol_index import SymbolIndex

logger = get_logger(__name__)

# Root of every generated Protobuf message class.
MESSAGE = "google.protobuf.message.Message"
# Base class the upb runtime puts under generated messages.
UPB_MESSAGE = "google._upb._message.Message"


class PayloadClassifier:
    """
    Decides whether a type reference denotes a Protobuf message.

    A parameterized type is classified by its first type argument only
    (``Emitter[T]``, ``AsyncIterator[T]``); key/value wrappers with more than
    one argument must be unwrapped by the caller first.
    """

    def __init__(
        self,
        index: SymbolIndex,
        *,
        marker: str = MESSAGE,
        base_implementation: str = UPB_MESSAGE,
    ):
        self.index = index
        self.marker = marker
        self.base_implementation = base_implementation

    def is_structured_payload(self, ref: Optional[TypeReference]) -> bool:
        if ref is None:
            return False

        if ref.kind == TypeKind.PARAMETERIZED:
            first = first_type_argument(ref)
            if first is None:
                return False
            return self.is_structured_payload(first)

        if ref.kind != TypeKind.CLASS:
            return False

        if ref.name == self.marker:
            return True

        info = self.index.get_class_by_name(ref.name)
        if info is None:
            logger.debug("Class %s not found in symbol index", ref.name)
            return False

        visited = {info.name}
        super_name = info.super_name
        while super_name is not None and super_name != OBJECT_NAME and super_name not in visited:
            if super_name in (self.marker, self.base_implementation):
                return True
            visited.add(super_name)
            super_info = self.index.get_class_by_name(super_name)
            if super_info is None:
                break
            super_name = super_info.super_name

        return self.marker in info.interface_names


def is_structured_payload(ref: Optional[TypeReference], index: SymbolIndex) -> bool:
    return PayloadClassifier(index).is_structured_payload(ref)


def first_type_argument(ref: Optional[TypeReference]) -> Optional[TypeReference]:
    """Return the first type argument of a parameterized type, else None."""
    if ref is None or ref.kind != TypeKind.PARAMETERIZED or not ref.arguments:
        return None
    return ref.arguments[0]


# Emitter[T] and friends carry the payload in their only type argument.
extract_emitter_type = first_type_argument
