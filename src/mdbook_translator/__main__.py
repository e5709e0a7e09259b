"""
Point d'entrée du préprocesseur, appelé par mdBook.

Déclaration dans book.toml :

    [preprocessor.translator]
    command = "mdbook-translator"
    language = "Chinese"

mdBook lance d'abord `mdbook-translator supports <renderer>`, puis
`mdbook-translator` avec le livre en JSON sur stdin.
"""

import argparse
import io
import sys
from typing import Optional, Sequence

from .config import lock_config
from .exceptions import TranslatorError
from .logger import get_logger
from .preprocessor import TranslatorPreprocessor
from .protocol import handle_preprocessing, handle_supports

logger = get_logger(__name__)


def make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mdbook-translator",
        description=(
            "A translation preprocessor plugin for mdBook that automatically "
            "translates Markdown documents using the DeepSeek API."
        ),
    )
    subparsers = parser.add_subparsers(dest="command")
    supports = subparsers.add_parser(
        "supports",
        help="Check whether a renderer is supported by this preprocessor",
    )
    supports.add_argument("renderer")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Exécute la commande demandée par mdBook.

    Returns:
        Code de sortie : 0 en cas de succès, 1 en cas d'erreur ou de
        renderer non supporté
    """
    args = make_parser().parse_args(argv)
    lock_config()

    preprocessor = TranslatorPreprocessor()

    if args.command == "supports":
        return handle_supports(preprocessor, args.renderer)

    stdin = io.TextIOWrapper(sys.stdin.buffer, encoding="utf-8")
    try:
        handle_preprocessing(preprocessor, stdin, sys.stdout.buffer)
    except KeyboardInterrupt:
        logger.error("\n❌ Traduction interrompue par l'utilisateur")
        return 1
    except TranslatorError as e:
        logger.error(f"❌ {type(e).__name__}: {e}")
        return 1
    except Exception as e:
        logger.exception(f"❌ Erreur inattendue : {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
