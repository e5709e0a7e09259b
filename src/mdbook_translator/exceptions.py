"""
Exceptions spécifiques au préprocesseur de traduction.

Toutes les erreurs levées volontairement par le package héritent de
TranslatorError, ce qui permet au point d'entrée CLI de les intercepter
en un seul endroit et de terminer avec un code de sortie non nul.
"""

from typing import Optional


class TranslatorError(Exception):
    """Erreur de base du préprocesseur."""


class ConfigurationError(TranslatorError, ValueError):
    """
    Configuration invalide ou incomplète.

    Levée quand une clé de la table [preprocessor.translator] a un type
    inattendu, ou quand la clé API est absente de l'environnement.
    """


class ProtocolError(TranslatorError, ValueError):
    """Entrée JSON reçue de mdBook qui ne respecte pas le format attendu."""


class LLMRequestError(TranslatorError):
    """
    Exception levée quand une requête vers l'API LLM échoue définitivement.

    Attributes:
        attempts: Nombre de tentatives effectuées avant l'abandon
        cause: Exception d'origine renvoyée par le SDK OpenAI (si disponible)
    """

    def __init__(
        self,
        message: str,
        attempts: int = 1,
        cause: Optional[BaseException] = None,
    ):
        self.attempts = attempts
        self.cause = cause
        super().__init__(message)

    def __repr__(self) -> str:
        return f"LLMRequestError(attempts={self.attempts}, cause={self.cause!r})"
