"""
Configuration du préprocesseur.

Deux niveaux de configuration coexistent :
- Des singletons de classe verrouillables (TemplateNames, Logger_Level) pour
  les réglages internes du package.
- TranslatorConfig, construit à partir de la table [preprocessor.translator]
  du book.toml transmise par mdBook dans le contexte.

Exemple de book.toml :

    [preprocessor.translator]
    language = "Japanese"
    prompt = "Garde les noms de crates en anglais."
    proxy = "http://127.0.0.1:8099"
"""

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Optional

from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from .book import PreprocessorContext


PREPROCESSOR_NAME = "translator"

DEFAULT_LANGUAGE = "Chinese"
DEFAULT_MODEL = "deepseek-chat"
DEFAULT_API_URL = "https://api.deepseek.com"
DEFAULT_CACHE_FILE = "deepseek_cache.json"
DEFAULT_CHUNK_SIZE = 4000
DEFAULT_TIMEOUT = 600.0


class ConfigBase:
    # Attribut de classe pour le singleton
    _instance = None
    _locked: bool = False

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def lock(self):
        object.__setattr__(self, "_locked", True)

    def __setattr__(self, name, value):
        if getattr(self, "_locked", False):
            raise AttributeError("Configuration is locked")
        super().__setattr__(name, value)


class TemplateNames(ConfigBase):
    System_Template: str = "system.jinja"
    User_Template: str = "user.jinja"


class Logger_Level(ConfigBase):
    level: int = logging.DEBUG
    console_level: int = logging.INFO
    file_level: int = logging.DEBUG
    log_dir: str = "logs"
    # Nombre de répertoires run_* conservés dans log_dir
    max_sessions: int = 10


def lock_config():
    """Verrouille la configuration pour empêcher les modifications ultérieures."""
    Logger_Level().lock()
    TemplateNames().lock()


@dataclass
class TranslatorConfig:
    """
    Réglages de traduction lus depuis book.toml.

    Attributes:
        language: Langue cible, insérée telle quelle dans le prompt
        prompt: Consigne supplémentaire envoyée comme message utilisateur
        proxy: URL d'un proxy HTTP(S) pour joindre l'API (vide = aucun)
        model: Nom du modèle côté API
        api_url: URL de base de l'API compatible OpenAI
        cache_file: Fichier JSON du cache (relatif à la racine du livre)
        chunk_size: Taille maximale d'un morceau envoyé au LLM
        chunk_unit: Unité de chunk_size, "chars" ou "tokens"
        timeout: Délai maximal d'une requête HTTP, en secondes
        temperature: Température d'échantillonnage (None = défaut de l'API)
        max_retries: Nombre de tentatives pour les erreurs récupérables
        translate_title: Traduit aussi les titres de chapitres et de parties
    """

    language: str = DEFAULT_LANGUAGE
    prompt: str = ""
    proxy: str = ""
    model: str = DEFAULT_MODEL
    api_url: str = DEFAULT_API_URL
    cache_file: str = DEFAULT_CACHE_FILE
    chunk_size: int = DEFAULT_CHUNK_SIZE
    chunk_unit: str = "chars"
    timeout: float = DEFAULT_TIMEOUT
    temperature: Optional[float] = None
    max_retries: int = 3
    translate_title: bool = False

    def __post_init__(self) -> None:
        if self.chunk_unit not in ("chars", "tokens"):
            raise ConfigurationError(
                f"chunk-unit doit valoir 'chars' ou 'tokens', reçu : {self.chunk_unit!r}"
            )
        if self.chunk_size <= 0:
            raise ConfigurationError(
                f"chunk-size doit être strictement positif, reçu : {self.chunk_size}"
            )
        if self.max_retries < 1:
            raise ConfigurationError(
                f"max-retries doit être >= 1, reçu : {self.max_retries}"
            )

    @classmethod
    def from_table(cls, table: dict[str, Any]) -> "TranslatorConfig":
        """
        Construit la configuration depuis la table TOML (déjà convertie en dict).

        Les chaînes vides conservent la valeur par défaut, comme pour les
        options language/prompt/proxy historiques. Les variables
        d'environnement DEEPSEEK_URL et DEEPSEEK_MODEL priment sur le défaut
        mais pas sur une valeur explicite du book.toml.

        Raises:
            ConfigurationError: Si une valeur n'a pas le type attendu
        """
        defaults = cls()
        values: dict[str, Any] = {
            "model": os.getenv("DEEPSEEK_MODEL") or defaults.model,
            "api_url": os.getenv("DEEPSEEK_URL") or defaults.api_url,
        }

        values["language"] = _get_str(table, "language", defaults.language)
        values["prompt"] = _get_str(table, "prompt", defaults.prompt)
        values["proxy"] = _get_str(table, "proxy", defaults.proxy)
        values["model"] = _get_str(table, "model", values["model"])
        values["api_url"] = _get_str(table, "api-url", values["api_url"])
        values["cache_file"] = _get_str(table, "cache-file", defaults.cache_file)
        values["chunk_unit"] = _get_str(table, "chunk-unit", defaults.chunk_unit)
        values["chunk_size"] = _get_int(table, "chunk-size", defaults.chunk_size)
        values["max_retries"] = _get_int(table, "max-retries", defaults.max_retries)
        values["timeout"] = _get_float(table, "timeout", defaults.timeout)
        values["temperature"] = _get_float(table, "temperature", None)
        values["translate_title"] = _get_bool(
            table, "translate-title", defaults.translate_title
        )

        return cls(**values)

    @classmethod
    def from_context(cls, ctx: "PreprocessorContext") -> "TranslatorConfig":
        """Extrait la table [preprocessor.translator] du contexte mdBook."""
        preprocessors = ctx.config.get("preprocessor") or {}
        table = (
            preprocessors.get(PREPROCESSOR_NAME) if isinstance(preprocessors, dict) else None
        ) or {}
        if not isinstance(table, dict):
            raise ConfigurationError(
                f"[preprocessor.{PREPROCESSOR_NAME}] doit être une table"
            )
        return cls.from_table(table)


# ============================================================
# 🔹 Lecture typée des valeurs TOML
# ============================================================


def _get_str(table: dict[str, Any], key: str, default: str) -> str:
    value = table.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ConfigurationError(
            f"{key} doit être une chaîne, reçu : {type(value).__name__}"
        )
    return value or default


def _get_int(table: dict[str, Any], key: str, default: int) -> int:
    value = table.get(key)
    if value is None:
        return default
    # bool est une sous-classe d'int
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(
            f"{key} doit être un entier, reçu : {type(value).__name__}"
        )
    return value


def _get_float(
    table: dict[str, Any], key: str, default: Optional[float]
) -> Optional[float]:
    value = table.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(
            f"{key} doit être un nombre, reçu : {type(value).__name__}"
        )
    return float(value)


def _get_bool(table: dict[str, Any], key: str, default: bool) -> bool:
    value = table.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigurationError(
            f"{key} doit être un booléen, reçu : {type(value).__name__}"
        )
    return value
