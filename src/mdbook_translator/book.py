"""
Modèle du livre échangé avec mdBook.

mdBook transmet au préprocesseur un tableau JSON [contexte, livre] dont le
livre suit l'encodage serde de ses types Rust :

    {"sections": [
        {"Chapter": {"name": ..., "content": ..., "number": [1, 2],
                     "sub_items": [...], "path": ..., "source_path": ...,
                     "parent_names": [...]}},
        "Separator",
        {"PartTitle": "Deuxième partie"}
    ], "__non_exhaustive": null}

Les clés inconnues sont conservées dans `extra` et réécrites telles quelles,
afin que le livre renvoyé ait exactement la même structure que celui reçu.
"""

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Union

from .exceptions import ProtocolError

_CHAPTER_KEYS = (
    "name",
    "content",
    "number",
    "sub_items",
    "path",
    "source_path",
    "parent_names",
)


@dataclass
class Chapter:
    """
    Un chapitre du livre et ses sous-chapitres.

    Attributes:
        name: Titre du chapitre
        content: Contenu Markdown
        number: Numéro de section (ex: [1, 2] pour "1.2."), None si non numéroté
        sub_items: Éléments imbriqués
        path: Chemin du fichier relatif au dossier src (None pour un brouillon)
        source_path: Chemin du fichier source d'origine
        parent_names: Titres des chapitres parents
        extra: Clés inconnues conservées telles quelles
    """

    name: str
    content: str = ""
    number: Optional[list[int]] = None
    sub_items: list["BookItem"] = field(default_factory=list)
    path: Optional[str] = None
    source_path: Optional[str] = None
    parent_names: list[str] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def number_label(self) -> str:
        """Numéro affiché comme le fait mdBook ("1.2. "), vide si absent."""
        if not self.number:
            return ""
        return "".join(f"{n}." for n in self.number) + " "

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Chapter":
        if not isinstance(data.get("name"), str):
            raise ProtocolError("Chapitre sans nom valide dans le livre reçu")
        return cls(
            name=data["name"],
            content=data.get("content") or "",
            number=data.get("number"),
            sub_items=[item_from_json(i) for i in data.get("sub_items") or []],
            path=data.get("path"),
            source_path=data.get("source_path"),
            parent_names=list(data.get("parent_names") or []),
            extra={k: v for k, v in data.items() if k not in _CHAPTER_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "content": self.content,
            "number": self.number,
            "sub_items": [item_to_json(i) for i in self.sub_items],
            "path": self.path,
            "source_path": self.source_path,
            "parent_names": self.parent_names,
        }
        data.update(self.extra)
        return data


@dataclass
class Separator:
    """Séparateur horizontal dans la table des matières."""


@dataclass
class PartTitle:
    """Titre de partie (regroupe les chapitres suivants)."""

    title: str


BookItem = Union[Chapter, Separator, PartTitle]


def item_from_json(data: Any) -> BookItem:
    """Décode un élément du livre depuis son encodage serde."""
    if data == "Separator":
        return Separator()
    if isinstance(data, dict) and len(data) == 1:
        kind, value = next(iter(data.items()))
        if kind == "Chapter" and isinstance(value, dict):
            return Chapter.from_dict(value)
        if kind == "PartTitle" and isinstance(value, str):
            return PartTitle(value)
    raise ProtocolError(f"Élément de livre inconnu : {str(data)[:100]}")


def item_to_json(item: BookItem) -> Any:
    """Encode un élément du livre au format serde attendu par mdBook."""
    if isinstance(item, Chapter):
        return {"Chapter": item.to_dict()}
    if isinstance(item, PartTitle):
        return {"PartTitle": item.title}
    return "Separator"


@dataclass
class Book:
    """
    Livre complet tel que transmis par mdBook.

    Attributes:
        sections: Éléments de premier niveau, dans l'ordre du SUMMARY.md
        extra: Clés inconnues conservées telles quelles (ex: "__non_exhaustive")
    """

    sections: list[BookItem] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "Book":
        if not isinstance(data, dict) or not isinstance(data.get("sections"), list):
            raise ProtocolError("Le livre reçu ne contient pas de liste 'sections'")
        return cls(
            sections=[item_from_json(i) for i in data["sections"]],
            extra={k: v for k, v in data.items() if k != "sections"},
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"sections": [item_to_json(i) for i in self.sections]}
        data.update(self.extra)
        return data

    def iter_chapters(self) -> Iterator[Chapter]:
        """Parcourt tous les chapitres en profondeur, dans l'ordre du livre."""

        def walk(items: list[BookItem]) -> Iterator[Chapter]:
            for item in items:
                if isinstance(item, Chapter):
                    yield item
                    yield from walk(item.sub_items)

        return walk(self.sections)

    def count_chapters(self) -> int:
        return sum(1 for _ in self.iter_chapters())


@dataclass
class PreprocessorContext:
    """
    Contexte transmis par mdBook à chaque préprocesseur.

    Attributes:
        root: Racine du livre (dossier contenant book.toml)
        config: book.toml complet converti en dictionnaire
        renderer: Nom du renderer en cours (ex: "html")
        mdbook_version: Version de mdBook appelante
        extra: Clés inconnues conservées telles quelles
    """

    root: str
    config: dict[str, Any]
    renderer: str
    mdbook_version: str
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "PreprocessorContext":
        if not isinstance(data, dict):
            raise ProtocolError("Le contexte reçu n'est pas un objet JSON")
        try:
            root = data["root"]
            config = data["config"]
            renderer = data["renderer"]
            mdbook_version = data["mdbook_version"]
        except KeyError as e:
            raise ProtocolError(f"Clé manquante dans le contexte mdBook : {e}") from e
        if not isinstance(config, dict):
            raise ProtocolError("La configuration du contexte n'est pas un objet JSON")
        known = ("root", "config", "renderer", "mdbook_version")
        return cls(
            root=str(root),
            config=config,
            renderer=str(renderer),
            mdbook_version=str(mdbook_version),
            extra={k: v for k, v in data.items() if k not in known},
        )
