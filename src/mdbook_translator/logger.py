"""
Module de configuration du logging pour mdbook-translator.

mdBook lit le livre traduit sur la sortie standard du préprocesseur : aucun
log ne doit donc y être écrit. La console passe par stderr (compatible avec
les barres tqdm) et un fichier complet est conservé par exécution.

Fonctionnalités :
- Regroupement des logs par session d'exécution dans logs/run_YYYYMMDD_HHMMSS/
- Création différée des fichiers de log (évite fichiers vides)
- Nommage contextuel des fichiers (llm_chunk_0003.log, translator.log, etc.)
"""

import logging
import shutil
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from tqdm import tqdm

from .config import Logger_Level

DEFAULT_LOG_FILENAME = "translator.log"


# ============================================================
# 🔹 Gestionnaire de session de logs
# ============================================================


class LogSession:
    """
    Gestionnaire singleton pour regrouper tous les logs d'une exécution.

    Crée un répertoire unique par session : logs/run_YYYYMMDD_HHMMSS/
    Le répertoire n'est créé sur disque qu'au premier fichier écrit, et seules
    les Logger_Level.max_sessions dernières sessions sont conservées.
    """

    _instance: Optional["LogSession"] = None
    _session_dir: Optional[Path] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        # Éviter la ré-initialisation
        if LogSession._session_dir is not None:
            return

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        LogSession._session_dir = Path(Logger_Level.log_dir) / f"run_{timestamp}"

    @classmethod
    def get_session_dir(cls) -> Path:
        """Retourne le répertoire de la session en cours."""
        if cls._session_dir is None:
            cls()  # Initialiser si pas encore fait
        assert cls._session_dir is not None
        return cls._session_dir

    @classmethod
    def create_session_dir(cls) -> Path:
        """
        Crée le répertoire de session sur disque et retourne son chemin.

        À la création, les sessions les plus anciennes sont supprimées pour
        n'en garder que Logger_Level.max_sessions (session courante comprise).
        """
        session_dir = cls.get_session_dir()
        if not session_dir.exists():
            session_dir.mkdir(parents=True, exist_ok=True)
            cls.prune_sessions(session_dir.parent, Logger_Level.max_sessions)
        return session_dir

    @staticmethod
    def prune_sessions(log_dir: Path, keep: int) -> list[Path]:
        """Supprime les répertoires run_* en trop, du plus ancien au plus récent."""
        # Les noms run_YYYYMMDD_HHMMSS se trient chronologiquement
        sessions = sorted(p for p in log_dir.glob("run_*") if p.is_dir())
        removed = sessions[: max(len(sessions) - max(keep, 1), 0)]
        for old in removed:
            shutil.rmtree(old, ignore_errors=True)
        return removed

    @classmethod
    def reset(cls):
        """Reset la session (utile pour les tests)."""
        cls._instance = None
        cls._session_dir = None


# ============================================================
# 🔹 Handlers de logging
# ============================================================


class TqdmLoggingHandler(logging.Handler):
    """
    Handler de logging compatible avec tqdm.

    Utilise tqdm.write() sur stderr pour afficher les logs sans perturber
    la barre de progression ni le JSON écrit sur stdout.
    """

    def emit(self, record):
        try:
            msg = self.format(record)
            tqdm.write(msg, file=sys.stderr)
        except Exception:
            self.handleError(record)


class LazyFileHandler(logging.Handler):
    """
    Handler qui crée le fichier de log seulement au premier message.

    Le fichier est résolu via LogSession au moment du premier emit, de sorte
    qu'un reset de session (tests, changement de répertoire) soit respecté.
    """

    def __init__(
        self,
        filename: str,
        mode: str = "a",
        encoding: str = "utf-8",
        level: int = logging.NOTSET,
        log_dir: Optional[Path] = None,
    ):
        super().__init__(level)
        self.filename = filename
        self.mode = mode
        self.encoding = encoding
        self.log_dir = log_dir
        self._handler: Optional[logging.FileHandler] = None
        self._path: Optional[Path] = None

    @property
    def path(self) -> Path:
        """Chemin complet du fichier (non créé tant qu'aucun log n'est émis)."""
        base = self.log_dir or LogSession.get_session_dir()
        return base / self.filename

    def _ensure_handler(self):
        """Crée le FileHandler sous-jacent si pas encore fait (ou si la session a changé)."""
        path = self.path.absolute()
        if self._handler is not None and self._path == path:
            return
        if self._handler is not None:
            self._handler.close()
        if self.log_dir is None:
            LogSession.create_session_dir()
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
        self._handler = logging.FileHandler(path, mode=self.mode, encoding=self.encoding)
        self._path = path
        if self.formatter:
            self._handler.setFormatter(self.formatter)

    def emit(self, record):
        """Émet un log, en créant le fichier si nécessaire."""
        try:
            self._ensure_handler()
            if self._handler:
                self._handler.emit(record)
        except Exception:
            self.handleError(record)

    def close(self):
        """Ferme le handler sous-jacent si existant."""
        if self._handler:
            self._handler.close()
            self._handler = None
        super().close()


# ============================================================
# 🔹 Configuration des loggers
# ============================================================


def setup_logger(
    name: str,
    log_dir: Optional[str] = None,
    level: Optional[int] = None,
    console_level: Optional[int] = None,
    file_level: Optional[int] = None,
    log_filename: str = DEFAULT_LOG_FILENAME,
) -> logging.Logger:
    """
    Configure un logger avec sortie console (stderr) et fichier.

    Args:
        name: Nom du logger (généralement __name__ du module)
        log_dir: Répertoire explicite (None = répertoire de session)
        level: Niveau global du logger (None = Logger_Level.level)
        console_level: Niveau pour la console (None = Logger_Level.console_level)
        file_level: Niveau pour le fichier (None = Logger_Level.file_level)
        log_filename: Nom du fichier de log

    Returns:
        Logger configuré avec handlers console et fichier

    Example:
        >>> logger = setup_logger(__name__)
        >>> logger.info("Traduction démarrée")
    """
    logger = logging.getLogger(name)
    logger.setLevel(Logger_Level.level if level is None else level)
    # Les handlers sont gérés ici, pas par le logger racine
    logger.propagate = False

    # Éviter d'ajouter des handlers multiples si déjà configuré
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_formatter = logging.Formatter("%(message)s")

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(
        Logger_Level.console_level if console_level is None else console_level
    )
    console_handler.setFormatter(console_formatter)
    logger.addHandler(console_handler)

    file_handler = LazyFileHandler(
        filename=log_filename,
        log_dir=Path(log_dir) if log_dir is not None else None,
    )
    file_handler.setLevel(Logger_Level.file_level if file_level is None else file_level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger


def get_logger(name: str, log_filename: Optional[str] = None) -> logging.Logger:
    """
    Récupère un logger existant ou en crée un nouveau avec la configuration par défaut.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Message de log")
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        return setup_logger(name, log_filename=log_filename or DEFAULT_LOG_FILENAME)

    return logger


def get_session_log_path(filename: str) -> Path:
    """
    Retourne le chemin complet d'un fichier de log dans le répertoire de session.

    Le répertoire de session est créé si nécessaire, le fichier ne l'est pas.

    Example:
        >>> path = get_session_log_path("llm_chunk_0001.log")
        >>> print(path)
        logs/run_20251023_143022/llm_chunk_0001.log
    """
    return LogSession.create_session_dir() / filename
