import datetime
import os
import time
from pathlib import Path
from typing import Optional, Sequence

from dotenv import find_dotenv, load_dotenv
from openai import (
    APIConnectionError,
    APIError,
    DefaultHttpxClient,
    OpenAI,
    OpenAIError,
    RateLimitError,
)
from openai.types.chat import ChatCompletionMessageParam

from .config import DEFAULT_API_URL, DEFAULT_MODEL, DEFAULT_TIMEOUT
from .exceptions import ConfigurationError, LLMRequestError
from .logger import get_logger, get_session_log_path

logger = get_logger(__name__)

API_KEY_ENV = "DEEPSEEK_API_KEY"


def load_env() -> None:
    """
    Charge le .env du livre dans l'environnement, sans écraser les variables
    déjà définies.

    Le fichier est cherché depuis le répertoire courant (racine du livre pour
    mdBook) puis ses parents.
    """
    load_dotenv(find_dotenv(usecwd=True))


def get_api_key() -> str:
    """
    Lit la clé API depuis l'environnement (après chargement d'un éventuel .env).

    Raises:
        ConfigurationError: Si DEEPSEEK_API_KEY n'est pas défini
    """
    load_env()

    api_key = os.getenv(API_KEY_ENV)
    if not api_key:
        raise ConfigurationError(
            f"La clé API n'est pas définie. Exportez {API_KEY_ENV} ou ajoutez "
            f"{API_KEY_ENV}=sk-votre-cle dans un fichier .env à la racine du livre. "
            f"Clé à obtenir sur https://platform.deepseek.com/api_keys"
        )
    return api_key


class LLM:
    """
    Client synchrone pour un LLM compatible OpenAI (DeepSeek, GPT, etc.)
    avec :
      - retry avec backoff exponentiel sur timeout, erreur réseau et rate limit,
      - proxy HTTP optionnel,
      - un fichier de log par requête dans le répertoire de session.
    """

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        url: str = DEFAULT_API_URL,
        api_key: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        proxy: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ):
        self.model_name = model_name
        self.api_key = api_key or get_api_key()
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_retries = max_retries
        self.retry_delay = retry_delay

        http_client = DefaultHttpxClient(proxy=proxy) if proxy else None
        # Les retries sont gérés ici (logs + backoff), pas par le SDK
        self.client = OpenAI(
            api_key=self.api_key,
            base_url=url,
            timeout=timeout,
            max_retries=0,
            http_client=http_client,
        )

        # Compteur pour nommage unique des logs
        self._log_counter = 0

    # -----------------------------------
    # 🔹 Gestion du log
    # -----------------------------------
    def _create_log(
        self,
        messages: Sequence[ChatCompletionMessageParam],
        context: Optional[str] = None,
    ) -> Path:
        """
        Crée le fichier de log de la requête et retourne son chemin.

        Args:
            messages: Messages envoyés au LLM
            context: Contexte optionnel pour nommer le fichier (ex: "chunk_0042")

        Returns:
            Chemin du fichier de log
        """
        timestamp = datetime.datetime.now().isoformat().replace(":", "-")

        self._log_counter += 1
        if context:
            filename = f"llm_{context}_{self._log_counter:04d}_{timestamp}.log"
        else:
            filename = f"llm_{self._log_counter:04d}_{timestamp}.log"

        log_path = get_session_log_path(filename)

        parts = [
            "=== LLM REQUEST LOG ===\n",
            f"Timestamp : {timestamp}\n",
            f"Model     : {self.model_name}\n",
        ]
        if context:
            parts.append(f"Context   : {context}\n")
        parts.append(f"{'-'*40}\n\n")
        for message in messages:
            parts.append(f"--- {str(message['role']).upper()} ---\n{message.get('content')}\n\n")
        parts.append("--- RESPONSE ---\n")

        with open(log_path, "w", encoding="utf-8") as f:
            f.write("".join(parts))
        return log_path

    def _append_response(self, log_path: Path, response: str):
        """Ajoute la réponse à la fin du log existant."""
        with open(log_path, "a", encoding="utf-8") as f:
            f.write(response.strip() + "\n")

    # -----------------------------------
    # 🔹 Requête
    # -----------------------------------
    def query(
        self,
        system_prompt: str,
        content: str,
        extra_messages: Sequence[str] = (),
        context: Optional[str] = None,
    ) -> str:
        """
        Envoie une requête au LLM avec retry automatique.

        Args:
            system_prompt: Le prompt système définissant le comportement du LLM
            content: Le message utilisateur principal (texte à traduire)
            extra_messages: Messages utilisateur supplémentaires (consignes)
            context: Contexte optionnel pour nommer le fichier de log

        Returns:
            La réponse du LLM, sans espaces superflus ("" si vide)

        Raises:
            LLMRequestError: Erreur non récupérable, ou échec après max_retries
                tentatives sur timeout / rate limit / erreur réseau
        """
        messages: list[ChatCompletionMessageParam] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": content},
        ]
        for extra in extra_messages:
            messages.append({"role": "user", "content": extra})

        log_path = self._create_log(messages, context)
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                kwargs = {}
                if self.temperature is not None:
                    kwargs["temperature"] = self.temperature
                if self.max_tokens is not None:
                    kwargs["max_tokens"] = self.max_tokens

                resp = self.client.chat.completions.create(
                    model=self.model_name,
                    messages=messages,
                    **kwargs,
                )
                result = resp.choices[0].message.content if resp.choices else None
                response_text = result.strip() if result is not None else ""

                if attempt > 0:
                    logger.debug(
                        f"✅ Requête LLM réussie après {attempt + 1} tentative(s) "
                        f"({len(content)} chars)"
                    )
                else:
                    logger.debug(f"✅ Requête LLM réussie ({len(content)} chars)")

                self._append_response(log_path, response_text)
                return response_text

            except RateLimitError as e:
                last_error = e
                logger.warning(
                    f"🚦 Limite de débit atteinte (tentative {attempt + 1}/{self.max_retries}): {e}"
                )
                if attempt < self.max_retries - 1:
                    # Pour rate limit, attendre plus longtemps
                    delay = self.retry_delay * (3**attempt)
                    logger.info(f"⏳ Attente de {delay:.1f}s avant nouvelle tentative...")
                    time.sleep(delay)

            except APIConnectionError as e:
                # Inclut APITimeoutError
                last_error = e
                logger.warning(
                    f"⏱️ Erreur réseau ou timeout (tentative {attempt + 1}/{self.max_retries}): {e}"
                )
                if attempt < self.max_retries - 1:
                    delay = self.retry_delay * (2**attempt)
                    logger.info(f"⏳ Attente de {delay:.1f}s avant nouvelle tentative...")
                    time.sleep(delay)

            except APIError as e:
                # Les erreurs API ne sont généralement pas récupérables par retry
                logger.error(f"❌ Erreur API: {e}")
                self._append_response(log_path, f"[ERREUR API: {e}]")
                raise LLMRequestError(
                    f"Erreur API : {e}", attempts=attempt + 1, cause=e
                ) from e

            except OpenAIError as e:
                logger.error(f"❌ Erreur OpenAI générique: {e}")
                self._append_response(log_path, f"[ERREUR OPENAI: {e}]")
                raise LLMRequestError(
                    f"Erreur OpenAI : {e}", attempts=attempt + 1, cause=e
                ) from e

        # Si on arrive ici, tous les retries ont échoué
        if isinstance(last_error, RateLimitError):
            message = (
                f"Rate limit après {self.max_retries} tentatives - "
                f"Trop de requêtes, veuillez patienter"
            )
        else:
            message = (
                f"Timeout ou erreur réseau après {self.max_retries} tentatives - "
                f"Le serveur n'a pas répondu à temps"
            )

        logger.error(f"❌ Échec définitif après {self.max_retries} tentatives")
        self._append_response(log_path, f"[ERREUR: {message}]")
        raise LLMRequestError(message, attempts=self.max_retries, cause=last_error)
