"""
Module de segmentation du contenu Markdown en morceaux pour la traduction.

Le découpage est volontairement naïf : il se fait ligne par ligne, sans
analyse Markdown, et borne seulement la taille de chaque requête envoyée au
LLM. Seuls les blocs de code délimités par ``` sont protégés : ils ne sont
jamais coupés en deux, même s'ils dépassent la taille maximale.
"""

from typing import Callable, Iterable, Optional

import tiktoken

from .config import DEFAULT_CHUNK_SIZE

# Délimiteur de bloc de code Markdown
CODE_FENCE = "```"

# Encodage par défaut pour le comptage de tokens (OpenAI o200k_base)
DEFAULT_ENCODING = "o200k_base"


def _is_fence(line: str) -> bool:
    return line.lstrip().startswith(CODE_FENCE)


def split_into_chunks(
    text: str,
    max_size: int,
    measure: Callable[[str], int] = len,
) -> list[str]:
    """
    Découpe un texte en morceaux de taille bornée, ligne par ligne.

    Règles :
    - chaque ligne est ajoutée au tampon suivie d'un "\\n" ;
    - une ligne ``` bascule l'état "dans un bloc de code" et reste
      toujours dans le tampon courant ;
    - dans un bloc de code, et pour les lignes vides, on n'ouvre jamais de
      nouveau morceau ;
    - sinon, si taille(tampon) + measure(ligne) >= max_size, le tampon est
      émis et la ligne commence un nouveau morceau.

    La taille du tampon est la somme des mesures de ses lignes : le tampon
    n'est jamais remesuré en entier, ce qui compte en mode tokens.

    Un morceau n'est jamais vide, et "".join(morceaux) redonne le texte
    d'origine (fins de ligne normalisées en "\\n", newline final ajouté).

    Args:
        text: Contenu Markdown d'un chapitre
        max_size: Taille maximale d'un morceau (dans l'unité de measure)
        measure: Fonction de mesure d'une chaîne (len par défaut)

    Returns:
        Liste ordonnée des morceaux

    Example:
        >>> split_into_chunks("a\\nb\\nc", max_size=3)
        ['a\\n', 'b\\n', 'c\\n']
    """
    chunks: list[str] = []
    buffer = ""
    # Taille du tampon, cumulée ligne par ligne
    size = 0
    in_code = False

    for line in text.splitlines():
        if not line:
            buffer += "\n"
            size += measure("\n")
            continue

        piece = line + "\n"
        if _is_fence(line):
            buffer += piece
            size += measure(piece)
            in_code = not in_code
            continue

        if buffer and not in_code and size + measure(line) >= max_size:
            chunks.append(buffer)
            buffer = ""
            size = 0

        buffer += piece
        size += measure(piece)

    if buffer:
        chunks.append(buffer)

    return chunks


def _trailing_newlines(text: str) -> str:
    return text[len(text.rstrip("\n")):]


def join_translations(pairs: Iterable[tuple[str, str]]) -> str:
    """
    Recolle les morceaux traduits en un seul contenu de chapitre.

    Le LLM supprime en général les sauts de ligne finaux : chaque morceau
    traduit reprend ceux de son morceau source (au moins un), ce qui conserve
    les séparations de paragraphes entre deux morceaux. Un morceau qui se
    termine par une clôture ``` suivie d'un seul "\\n" reçoit une ligne vide
    supplémentaire afin que le texte suivant ne soit pas collé au bloc de code.
    Un morceau source blanc (lignes vides seules) est repris tel quel.

    Args:
        pairs: Couples (morceau source, morceau traduit), dans l'ordre

    Returns:
        Contenu complet du chapitre
    """
    parts: list[str] = []
    for source, translated in pairs:
        body = translated.rstrip("\n")
        if not body:
            if not source.strip():
                parts.append(source)
            continue
        suffix = _trailing_newlines(source) or "\n"
        if body.endswith(CODE_FENCE) and suffix == "\n":
            suffix = "\n\n"
        parts.append(body + suffix)
    return "".join(parts)


class Segmentator:
    """
    Segmente le contenu des chapitres selon une taille maximale.

    Attributes:
        max_size: Taille maximale d'un morceau
        unit: "chars" (caractères) ou "tokens" (tokens tiktoken)

    Example:
        >>> segmentator = Segmentator(max_size=4000)
        >>> for chunk in segmentator.split(chapter.content):
        ...     translated.append(llm.query(prompt, chunk))
    """

    def __init__(
        self,
        max_size: int = DEFAULT_CHUNK_SIZE,
        unit: str = "chars",
        encoding: str = DEFAULT_ENCODING,
    ) -> None:
        """
        Initialise le segmentateur.

        Args:
            max_size: Taille maximale d'un morceau
            unit: Unité de mesure, "chars" ou "tokens"
            encoding: Nom de l'encodage tiktoken (utilisé en mode "tokens")

        Raises:
            ValueError: Si l'unité est inconnue ou max_size <= 0
        """
        if unit not in ("chars", "tokens"):
            raise ValueError(f"Unité de segmentation inconnue : {unit!r}")
        if max_size <= 0:
            raise ValueError(f"max_size doit être strictement positif : {max_size}")

        self.max_size = max_size
        self.unit = unit
        self.encoding = encoding
        self._encoding: Optional[tiktoken.Encoding] = None

    def measure(self, text: str) -> int:
        """Mesure un texte dans l'unité configurée."""
        if self.unit == "chars":
            return len(text)
        return self.count_tokens(text)

    def count_tokens(self, text: str) -> int:
        """
        Compte le nombre de tokens dans un texte.

        L'encodeur tiktoken est chargé à la première utilisation.
        """
        if self._encoding is None:
            self._encoding = tiktoken.get_encoding(self.encoding)
        return len(self._encoding.encode(text))

    def split(self, text: str) -> list[str]:
        """Découpe un contenu de chapitre en morceaux."""
        return split_into_chunks(text, self.max_size, self.measure)
