"""
Cache persistant des traductions, adressé par contenu.

Les traductions sont stockées dans un unique fichier JSON plat :

    {"<sha256 hex>": "texte traduit", ...}

La clé est le SHA-256 du texte source suivi de la langue cible, ce qui permet
de garder plusieurs langues dans le même fichier et de réutiliser une
traduction quel que soit le chapitre où le texte réapparaît.

Notes d'implémentation:
    - Le fichier est chargé une fois en mémoire puis réécrit par save()
    - Un fichier corrompu est renommé en .backup et le cache repart à vide
    - Les traductions vides ne sont jamais mises en cache
"""

import hashlib
import json
from pathlib import Path
from typing import Optional

from .config import DEFAULT_CACHE_FILE
from .logger import get_logger

logger = get_logger(__name__)


def hash_key(text: str, target_language: str) -> str:
    """
    Calcule la clé de cache d'un texte pour une langue cible.

    Args:
        text: Texte source
        target_language: Langue cible (ex: "Chinese")

    Returns:
        Empreinte SHA-256 hexadécimale de text + target_language
    """
    hasher = hashlib.sha256()
    hasher.update(text.encode("utf-8"))
    hasher.update(target_language.encode("utf-8"))
    return hasher.hexdigest()


class Store:
    """
    Gestionnaire de persistance pour les traductions.

    Attributes:
        cache_file: Chemin du fichier JSON
    """

    def __init__(self, cache_file: str | Path = DEFAULT_CACHE_FILE) -> None:
        self.cache_file = Path(cache_file)
        self._data: dict[str, str] = {}
        self._loaded = False
        self._dirty = False

    def load(self) -> dict[str, str]:
        """
        Charge le fichier de cache en mémoire.

        Returns:
            Le dictionnaire {clé: texte_traduit}, vide si le fichier n'existe pas
            ou s'il est illisible
        """
        self._data = self._read_file()
        self._loaded = True
        self._dirty = False
        logger.debug(f"Cache chargé : {len(self._data)} entrée(s) depuis {self.cache_file}")
        return self._data

    def _read_file(self) -> dict[str, str]:
        if not self.cache_file.exists():
            return {}

        try:
            with open(self.cache_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            self._backup_corrupted(f"JSON invalide ({e})")
            return {}

        if not isinstance(data, dict):
            self._backup_corrupted("la racine n'est pas un objet JSON")
            return {}

        return {k: v for k, v in data.items() if isinstance(v, str)}

    def _backup_corrupted(self, reason: str) -> None:
        backup = self.cache_file.with_name(self.cache_file.name + ".backup")
        self.cache_file.replace(backup)
        logger.warning(
            f"⚠️ Cache corrompu ({reason}), sauvegardé sous {backup}. "
            f"Le cache repart à vide."
        )

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def save(self) -> None:
        """
        Sauvegarde le cache sur disque (JSON indenté, UTF-8).

        Ne fait rien si aucune traduction n'a été ajoutée depuis le chargement.
        """
        if not self._dirty:
            return

        if not self.cache_file.parent.exists():
            self.cache_file.parent.mkdir(parents=True, exist_ok=True)

        with open(self.cache_file, "w", encoding="utf-8") as f:
            json.dump(self._data, f, ensure_ascii=False, indent=2)
        self._dirty = False
        logger.debug(f"Cache sauvegardé : {len(self._data)} entrée(s) dans {self.cache_file}")

    def get(self, text: str, target_language: str) -> Optional[str]:
        """
        Récupère une traduction depuis le cache.

        Example:
            >>> store = Store("cache.json")
            >>> store.get("Hello", "French")  # "Bonjour" ou None
        """
        self._ensure_loaded()
        return self._data.get(hash_key(text, target_language))

    def put(self, text: str, target_language: str, translated: str) -> None:
        """
        Ajoute une traduction au cache (en mémoire, voir save()).

        Les traductions vides sont ignorées.
        """
        if not translated:
            return
        self._ensure_loaded()
        key = hash_key(text, target_language)
        if self._data.get(key) != translated:
            self._data[key] = translated
            self._dirty = True

    def clear(self) -> None:
        """
        Vide le cache et supprime le fichier.

        Attention: Cette opération est irréversible.
        """
        self._data = {}
        self._loaded = True
        self._dirty = False
        if self.cache_file.exists():
            self.cache_file.unlink()

    def __len__(self) -> int:
        self._ensure_loaded()
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        self._ensure_loaded()
        return key in self._data
