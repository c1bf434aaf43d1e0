from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Protocol

from protochannels.core.contracts import AnnotationUsage, ClassInfo, DeclarationSite


class SymbolIndex(Protocol):
    def get_class_by_name(self, name: str) -> Optional[ClassInfo]:
        ...

    def get_annotations(self, name: str) -> List[AnnotationUsage]:
        ...

    def declarations(self) -> List[DeclarationSite]:
        ...


class InMemorySymbolIndex:
    """Symbol table held in dictionaries. Read-only once handed to the classifier."""

    def __init__(
        self,
        classes: Optional[Iterable[ClassInfo]] = None,
        declarations: Optional[Iterable[DeclarationSite]] = None,
    ):
        self._classes: Dict[str, ClassInfo] = {}
        self._declarations: List[DeclarationSite] = []
        for info in classes or ():
            self.add_class(info)
        for site in declarations or ():
            self.add_declaration(site)

    def add_class(self, info: ClassInfo) -> None:
        self._classes[info.name] = info

    def add_declaration(self, site: DeclarationSite) -> None:
        if site not in self._declarations:
            self._declarations.append(site)

    def get_class_by_name(self, name: str) -> Optional[ClassInfo]:
        return self._classes.get(name)

    def get_annotations(self, name: str) -> List[AnnotationUsage]:
        return [
            AnnotationUsage(annotation=ann, target=site)
            for site in self._declarations
            for ann in site.annotations
            if ann.name == name
        ]

    def declarations(self) -> List[DeclarationSite]:
        return list(self._declarations)

    def classes(self) -> List[ClassInfo]:
        return list(self._classes.values())

    def with_declarations(self, declarations: Iterable[DeclarationSite]) -> "InMemorySymbolIndex":
        """Return a copy sharing the class table but holding ``declarations``."""
        return InMemorySymbolIndex(classes=self._classes.values(), declarations=declarations)
