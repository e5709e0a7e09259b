"""
Protocole préprocesseur de mdBook.

mdBook appelle le préprocesseur de deux façons :
- `mdbook-translator supports <renderer>` : le code de sortie indique si le
  renderer est supporté (0) ou non (1) ;
- `mdbook-translator` : le tableau JSON [contexte, livre] est lu sur stdin et
  le livre transformé doit être écrit en JSON sur stdout.
"""

import json
import re
from typing import IO, TYPE_CHECKING, Any

from .book import Book, PreprocessorContext
from .config import TranslatorConfig
from .exceptions import ProtocolError
from .llm import load_env
from .logger import get_logger

if TYPE_CHECKING:
    from .preprocessor import TranslatorPreprocessor

logger = get_logger(__name__)

# Version de mdBook dont le format JSON est implémenté ici
SUPPORTED_MDBOOK_VERSION = "0.4.40"

_VERSION_RE = re.compile(r"^\s*v?(\d+)\.(\d+)\.(\d+)")


def _parse_version(version: str) -> tuple[int, int, int]:
    match = _VERSION_RE.match(version)
    if match is None:
        raise ProtocolError(f"Version de mdBook illisible : {version!r}")
    major, minor, patch = match.groups()
    return int(major), int(minor), int(patch)


def version_matches(version: str, requirement: str = SUPPORTED_MDBOOK_VERSION) -> bool:
    """
    Vérifie `version` contre la contrainte caret `^requirement`.

    Comme pour Cargo : même version majeure (même mineure si la majeure vaut
    0) et version supérieure ou égale à `requirement`.
    """
    actual = _parse_version(version)
    required = _parse_version(requirement)
    if actual < required:
        return False
    if required[0] == 0:
        return actual[:2] == required[:2]
    return actual[0] == required[0]


def check_version(pre_name: str, mdbook_version: str) -> bool:
    """Avertit (sans échouer) si mdBook n'a pas la version attendue."""
    if version_matches(mdbook_version):
        return True
    logger.warning(
        f"⚠️ Le préprocesseur {pre_name} cible mdBook {SUPPORTED_MDBOOK_VERSION}, "
        f"mais il est appelé par mdBook {mdbook_version}"
    )
    return False


def parse_input(stream: IO[str]) -> tuple[PreprocessorContext, Book]:
    """
    Lit l'entrée JSON [contexte, livre] envoyée par mdBook.

    Raises:
        ProtocolError: Si l'entrée n'est pas du JSON valide ou n'a pas la
            forme attendue
    """
    try:
        data: Any = json.load(stream)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"Entrée JSON invalide : {e}") from e

    if not isinstance(data, list) or len(data) != 2:
        raise ProtocolError("L'entrée doit être un tableau JSON [contexte, livre]")

    ctx = PreprocessorContext.from_dict(data[0])
    book = Book.from_dict(data[1])
    return ctx, book


def write_output(book: Book, stream: IO[bytes]) -> None:
    """Écrit le livre en JSON compact (UTF-8) pour mdBook."""
    payload = json.dumps(book.to_dict(), ensure_ascii=False, separators=(",", ":"))
    stream.write(payload.encode("utf-8"))
    stream.flush()


def handle_preprocessing(
    pre: "TranslatorPreprocessor",
    stdin: IO[str],
    stdout: IO[bytes],
) -> Book:
    """
    Exécute le préprocesseur sur l'entrée mdBook et écrit le résultat.

    La configuration du préprocesseur est relue depuis le contexte reçu, après
    chargement du .env (DEEPSEEK_MODEL et DEEPSEEK_URL peuvent y figurer).
    """
    ctx, book = parse_input(stdin)
    check_version(pre.name, ctx.mdbook_version)

    load_env()
    pre.configure(TranslatorConfig.from_context(ctx))
    processed = pre.run(ctx, book)
    write_output(processed, stdout)
    return processed


def handle_supports(pre: "TranslatorPreprocessor", renderer: str) -> int:
    """Retourne le code de sortie de `supports` : 0 si supporté, 1 sinon."""
    return 0 if pre.supports_renderer(renderer) else 1
