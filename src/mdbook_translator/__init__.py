"""
Préprocesseur mdBook de traduction via LLM.

mdbook-translator s'insère dans la chaîne de construction de mdBook : il
reçoit le livre en JSON, traduit le contenu Markdown de chaque chapitre via
l'API DeepSeek (compatible OpenAI) et renvoie un livre de même structure.

Le processus de traduction :
1. Lit le contexte et le livre envoyés par mdBook sur stdin
2. Découpe chaque chapitre en morceaux de taille bornée (blocs de code intacts)
3. Traduit chaque morceau (cache JSON sur disque, adressé par SHA-256)
4. Recolle les morceaux et écrit le livre traduit sur stdout

Organisation du package :
- book.py : Modèle du livre et du contexte mdBook
- segment.py : Découpage ligne par ligne du Markdown
- store.py : Cache persistant des traductions (JSON)
- llm.py : Client LLM avec retry et logs par requête
- prompts.py : Templates Jinja2 des prompts
- preprocessor.py : Parcours du livre et traduction
- protocol.py : Protocole préprocesseur de mdBook
- config.py / logger.py / exceptions.py : Configuration, logs et erreurs

Configuration :
    La clé API est lue dans l'environnement ou un fichier .env :

        DEEPSEEK_API_KEY=sk-votre-cle-ici

    Les réglages de traduction viennent de book.toml :

        [preprocessor.translator]
        command = "mdbook-translator"
        language = "French"
"""

from .book import Book, Chapter, PartTitle, PreprocessorContext, Separator
from .config import TranslatorConfig
from .exceptions import (
    ConfigurationError,
    LLMRequestError,
    ProtocolError,
    TranslatorError,
)
from .llm import LLM
from .preprocessor import TranslatorPreprocessor
from .segment import Segmentator, join_translations, split_into_chunks
from .store import Store, hash_key

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Modèle
    "Book",
    "Chapter",
    "PartTitle",
    "Separator",
    "PreprocessorContext",
    # Traduction
    "LLM",
    "TranslatorPreprocessor",
    "TranslatorConfig",
    # Segmentation et cache
    "Segmentator",
    "split_into_chunks",
    "join_translations",
    "Store",
    "hash_key",
    # Erreurs
    "TranslatorError",
    "ConfigurationError",
    "ProtocolError",
    "LLMRequestError",
]
