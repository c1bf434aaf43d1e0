import sys
from typing import Annotated, Generic, List, TypeVar

from protochannels import annotations as markers
from protochannels.annotations import channel, incoming, outgoing, protobuf_incoming, protobuf_outgoing
from protochannels.core.contracts import OBJECT_NAME, TargetKind, TypeKind
from protochannels.detection.classifier import MESSAGE
from protochannels.detection.registry import scan_channels
from protochannels.detection.transform import rewrite_index
from protochannels.index.introspection import build_index, index_types, qualified_name, type_reference

T = TypeVar("T")


class Message:
    pass


# Stand-in for the generated-code root so no protobuf install is needed.
Message.__module__ = "google.protobuf.message"


class BaseEvent(Message):
    pass


class OrderEvent(BaseEvent):
    pass


class Plain:
    pass


class Emitter(Generic[T]):
    pass


class OrderService:
    orders: Annotated[Emitter[OrderEvent], channel("orders-out")]
    texts: Annotated[Emitter[Plain], channel("text-out")]
    retries: int

    @incoming("orders-in")
    def on_order(self, order: OrderEvent) -> None:
        pass

    @incoming("text-in")
    def on_text(self, text: str) -> None:
        pass

    @outgoing("orders-published")
    def publish(self) -> OrderEvent:
        return OrderEvent()

    @protobuf_incoming("raw-in")
    def on_raw(self, payload: bytes) -> None:
        pass

    def wire(self, audit: Annotated[Emitter[OrderEvent], channel("audit-out")]) -> None:
        pass

    @staticmethod
    @outgoing("static-out")
    def static_publish() -> OrderEvent:
        return OrderEvent()


@protobuf_outgoing("module-out")
def module_producer() -> Plain:
    return Plain()


def test_build_index_finds_every_channel_source():
    channels = scan_channels(build_index(OrderService))

    assert channels.incoming == frozenset({"orders-in", "raw-in"})
    assert channels.outgoing == frozenset({"orders-out", "orders-published", "audit-out", "static-out"})


def test_message_base_chain_is_registered():
    index = index_types(OrderEvent)

    order = index.get_class_by_name(qualified_name(OrderEvent))
    base = index.get_class_by_name(qualified_name(BaseEvent))
    root = index.get_class_by_name(MESSAGE)

    assert order.super_name == qualified_name(BaseEvent)
    assert base.super_name == MESSAGE
    assert root.super_name == OBJECT_NAME


def test_field_site_carries_emitter_type():
    index = build_index(OrderService)
    usages = {u.annotation.value: u.target for u in index.get_annotations(markers.CHANNEL)}

    field = usages["orders-out"]
    assert field.kind == TargetKind.FIELD
    assert field.type.kind == TypeKind.PARAMETERIZED
    assert field.type.name == qualified_name(Emitter)
    assert field.type.arguments[0].name == qualified_name(OrderEvent)

    param = usages["audit-out"]
    assert param.kind == TargetKind.METHOD_PARAMETER
    assert param.position == 0
    assert param.name == "audit"


def test_methods_skip_self_and_record_return_type():
    index = build_index(OrderService)
    sites = {u.target.name: u.target for u in index.get_annotations(markers.INCOMING)}
    assert [p.name for p in sites["on_order"].parameters] == [qualified_name(OrderEvent)]
    assert sites["on_order"].type.kind == TypeKind.VOID


def test_module_scan_picks_up_module_functions():
    index = build_index(sys.modules[__name__])
    channels = scan_channels(index)

    assert "module-out" in channels.outgoing
    assert "orders-in" in channels.incoming


def test_built_index_rewrites_to_native_markers():
    rewritten = rewrite_index(build_index(OrderService))

    assert rewritten.get_annotations(markers.PROTOBUF_INCOMING) == []
    assert [u.annotation.value for u in rewritten.get_annotations(markers.INCOMING)].count("raw-in") == 1
    assert rewritten.get_class_by_name(qualified_name(OrderEvent)) is not None


def test_type_reference_kinds():
    assert type_reference(int).kind == TypeKind.PRIMITIVE
    assert type_reference(None).kind == TypeKind.VOID
    assert type_reference(OrderEvent).kind == TypeKind.CLASS

    listed = type_reference(List[OrderEvent])
    assert listed.name == "builtins.list"
    assert listed.arguments[0].name == qualified_name(OrderEvent)

    assert type_reference(T).name == "~T"
