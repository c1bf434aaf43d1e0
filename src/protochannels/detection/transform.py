"""Rewrite convenience markers into the connector's native markers.

``ProtobufIncoming("x")`` becomes ``Incoming("x")``, ``ProtobufOutgoing`` becomes
``Outgoing`` and ``ProtobufChannel`` becomes ``Channel``. The channel name is
carried over verbatim. Applying the rules twice changes nothing the second time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Sequence, Tuple

from protochannels import annotations as markers
from protochannels.core.contracts import AnnotationInstance, DeclarationSite, TargetKind
from protochannels.core.logger import get_logger
from protochannels.index.symbol_index import InMemorySymbolIndex, SymbolIndex

logger = get_logger(__name__)

SUPPORTED_KINDS: FrozenSet[TargetKind] = frozenset(
    {TargetKind.METHOD, TargetKind.FIELD, TargetKind.METHOD_PARAMETER}
)


@dataclass(frozen=True)
class RewriteRule:
    source: str
    target: str

    def matches(self, annotation: AnnotationInstance) -> bool:
        return annotation.name == self.source

    def apply(self, annotation: AnnotationInstance) -> AnnotationInstance:
        return AnnotationInstance(name=self.target, value=annotation.value)


DEFAULT_RULES: Tuple[RewriteRule, ...] = (
    RewriteRule(markers.PROTOBUF_INCOMING, markers.INCOMING),
    RewriteRule(markers.PROTOBUF_OUTGOING, markers.OUTGOING),
    RewriteRule(markers.PROTOBUF_CHANNEL, markers.CHANNEL),
)


def rewrite_site(site: DeclarationSite, rules: Sequence[RewriteRule] = DEFAULT_RULES) -> DeclarationSite:
    if site.kind not in SUPPORTED_KINDS:
        return site

    kept: List[AnnotationInstance] = []
    added: List[AnnotationInstance] = []
    for ann in site.annotations:
        rule = next((r for r in rules if r.matches(ann)), None)
        if rule is None:
            kept.append(ann)
            continue
        native = rule.apply(ann)
        added.append(native)
        logger.debug(
            "Transformed %s to %s for channel: %s",
            ann.name.rsplit(".", 1)[-1],
            native.name.rsplit(".", 1)[-1],
            native.value,
        )

    if not added:
        return site

    for native in added:
        if native not in kept:
            kept.append(native)
    return site.with_annotations(tuple(kept))


def rewrite_declarations(
    sites: Iterable[DeclarationSite], rules: Sequence[RewriteRule] = DEFAULT_RULES
) -> List[DeclarationSite]:
    return [rewrite_site(site, rules) for site in sites]


def rewrite_index(index: SymbolIndex, rules: Sequence[RewriteRule] = DEFAULT_RULES) -> InMemorySymbolIndex:
    """Return an index whose declarations only carry native markers."""
    rewritten = rewrite_declarations(index.declarations(), rules)
    if isinstance(index, InMemorySymbolIndex):
        return index.with_declarations(rewritten)
    # Foreign index implementations: classes stay reachable through the original.
    return _OverlayIndex(index, rewritten)


class _OverlayIndex(InMemorySymbolIndex):
    def __init__(self, base: SymbolIndex, declarations: Iterable[DeclarationSite]):
        super().__init__(declarations=declarations)
        self._base = base

    def get_class_by_name(self, name: str):
        return self._base.get_class_by_name(name)
