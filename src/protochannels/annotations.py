"""Channel markers.

Native markers are the ones the messaging connector understands. The
``protobuf_*`` variants are convenience markers that always mark a channel as
carrying Protobuf payloads; they are rewritten to the native form before
anything else looks at them.

Methods are marked with decorators::

    @protobuf_incoming("orders-in")
    def on_order(self, order: OrderEvent) -> None: ...

Fields and parameters are marked through ``typing.Annotated``::

    orders: Annotated[Emitter[OrderEvent], channel("orders-out")]
"""

from __future__ import annotations

from typing import Any, Callable, Tuple, TypeVar

from protochannels.core.contracts import AnnotationInstance

INCOMING = "protochannels.annotations.Incoming"
OUTGOING = "protochannels.annotations.Outgoing"
CHANNEL = "protochannels.annotations.Channel"

PROTOBUF_INCOMING = "protochannels.annotations.ProtobufIncoming"
PROTOBUF_OUTGOING = "protochannels.annotations.ProtobufOutgoing"
PROTOBUF_CHANNEL = "protochannels.annotations.ProtobufChannel"

MARKER_ATTRIBUTE = "__protochannels_annotations__"

F = TypeVar("F", bound=Callable[..., Any])


def _marker(name: str) -> Callable[[str], Callable[[F], F]]:
    def factory(channel_name: str) -> Callable[[F], F]:
        def decorator(fn: F) -> F:
            existing: Tuple[AnnotationInstance, ...] = getattr(fn, MARKER_ATTRIBUTE, ())
            setattr(fn, MARKER_ATTRIBUTE, existing + (AnnotationInstance(name=name, value=channel_name),))
            return fn

        return decorator

    factory.__name__ = name.rsplit(".", 1)[-1]
    return factory


incoming = _marker(INCOMING)
outgoing = _marker(OUTGOING)
protobuf_incoming = _marker(PROTOBUF_INCOMING)
protobuf_outgoing = _marker(PROTOBUF_OUTGOING)


def channel(name: str) -> AnnotationInstance:
    return AnnotationInstance(name=CHANNEL, value=name)


def protobuf_channel(name: str) -> AnnotationInstance:
    return AnnotationInstance(name=PROTOBUF_CHANNEL, value=name)


def markers_of(fn: Any) -> Tuple[AnnotationInstance, ...]:
    return tuple(getattr(fn, MARKER_ATTRIBUTE, ()))
