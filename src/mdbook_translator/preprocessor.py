"""
Préprocesseur mdBook de traduction.

Pour chaque chapitre du livre (récursivement), le contenu Markdown est
découpé en morceaux, chaque morceau est traduit (cache d'abord, API sinon)
puis le chapitre est reconstruit avec les traductions. La structure du livre
n'est jamais modifiée : seuls les champs texte sont remplacés.
"""

from pathlib import Path
from typing import Optional

from tqdm import tqdm

from .book import Book, BookItem, Chapter, PartTitle, PreprocessorContext
from .config import PREPROCESSOR_NAME, TranslatorConfig
from .llm import LLM
from .logger import get_logger
from .prompts import TemplateRenderer
from .segment import Segmentator, join_translations
from .store import Store

logger = get_logger(__name__)

# Longueur maximale des aperçus affichés dans les logs console
PREVIEW_LENGTH = 100


def preview(text: str, length: int = PREVIEW_LENGTH) -> str:
    """Tronque un texte pour l'affichage ("..." ajouté si coupé)."""
    if len(text) > length:
        return text[:length] + "..."
    return text


class TranslatorPreprocessor:
    """
    Traduit tous les chapitres d'un livre mdBook via un LLM.

    Attributes:
        config: Réglages lus depuis [preprocessor.translator]
        llm: Client LLM (créé dans run() s'il n'est pas fourni)
        store: Cache des traductions (créé dans run() s'il n'est pas fourni)

    Example:
        >>> pre = TranslatorPreprocessor(TranslatorConfig(language="French"))
        >>> book = pre.run(ctx, book)
    """

    name = PREPROCESSOR_NAME

    def __init__(
        self,
        config: Optional[TranslatorConfig] = None,
        llm: Optional[LLM] = None,
        store: Optional[Store] = None,
        renderer: Optional[TemplateRenderer] = None,
    ):
        self.llm = llm
        self.store = store
        self.renderer = renderer or TemplateRenderer()
        self._chunk_counter = 0
        self.configure(config or TranslatorConfig())

    def configure(self, config: TranslatorConfig) -> None:
        """Applique une nouvelle configuration (lue depuis le contexte mdBook)."""
        self.config = config
        self.segmentator = Segmentator(config.chunk_size, config.chunk_unit)

    @property
    def target_language(self) -> str:
        return self.config.language

    def supports_renderer(self, renderer: str) -> bool:
        """
        Indique si le préprocesseur doit s'exécuter pour ce renderer.

        mdBook n'envoie aucun contexte lors de cet appel : la traduction
        s'applique à tous les renderers.
        """
        return True

    # -----------------------------------
    # 🔹 Initialisation des ressources
    # -----------------------------------
    def _ensure_llm(self) -> LLM:
        if self.llm is None:
            self.llm = LLM(
                model_name=self.config.model,
                url=self.config.api_url,
                timeout=self.config.timeout,
                proxy=self.config.proxy or None,
                temperature=self.config.temperature,
                max_retries=self.config.max_retries,
            )
        return self.llm

    def _ensure_store(self, root: Optional[str] = None) -> Store:
        if self.store is None:
            cache_file = Path(self.config.cache_file)
            if root and not cache_file.is_absolute():
                cache_file = Path(root) / cache_file
            self.store = Store(cache_file)
            self.store.load()
        return self.store

    # -----------------------------------
    # 🔹 Traduction
    # -----------------------------------
    def translate_text(self, text: str) -> str:
        """
        Traduit un morceau de texte, en passant par le cache.

        Une réponse vide du LLM n'est pas mise en cache : le texte source est
        conservé tel quel pour ce morceau.

        Raises:
            LLMRequestError: Si l'API échoue définitivement
        """
        store = self._ensure_store()
        cached = store.get(text, self.target_language)
        if cached is not None:
            logger.info(f"💾 Trouvé dans le cache : {preview(cached)!r}")
            return cached

        llm = self._ensure_llm()
        self._chunk_counter += 1
        system_prompt = self.renderer.render_system(self.target_language)
        user_prompt = self.renderer.render_user(self.target_language, text)
        extra = [self.config.prompt] if self.config.prompt else []

        logger.info("🤖 Requête envoyée à l'API, merci de patienter...")
        translated = llm.query(
            system_prompt,
            user_prompt,
            extra_messages=extra,
            context=f"chunk_{self._chunk_counter:04d}",
        )

        if not translated:
            logger.warning(
                f"⚠️ Réponse vide du LLM, texte source conservé : {preview(text)!r}"
            )
            return text

        store.put(text, self.target_language, translated)
        logger.info(f"✅ Traduction reçue : {preview(translated)!r}")
        return translated

    def translate_chapter(self, chapter: Chapter) -> None:
        """Traduit le contenu (et éventuellement le titre) d'un chapitre, en place."""
        logger.info("")
        logger.info(f"📖 Chapitre : {chapter.number_label}{chapter.name}")

        chunks = self.segmentator.split(chapter.content)
        logger.debug(f"{len(chunks)} morceau(x) pour « {chapter.name} »")
        # Les morceaux blancs (lignes vides seules) ne partent pas au LLM
        translations = [
            (chunk, self.translate_text(chunk) if chunk.strip() else chunk)
            for chunk in chunks
        ]
        chapter.content = join_translations(translations)

        if self.config.translate_title and chapter.name.strip():
            chapter.name = self.translate_text(chapter.name).strip() or chapter.name

    def walk_items(
        self,
        items: list[BookItem],
        bar: Optional[tqdm] = None,
        renamed: Optional[dict[str, str]] = None,
    ) -> None:
        """
        Parcourt récursivement les éléments et traduit chaque chapitre.

        Args:
            items: Éléments du livre (ou sous-chapitres)
            bar: Barre de progression à avancer d'un cran par chapitre
            renamed: Titres des chapitres parents déjà traduits (source vers
                traduction), reportés dans parent_names des sous-chapitres
        """
        renamed = renamed or {}
        for item in items:
            if isinstance(item, Chapter):
                if renamed:
                    item.parent_names = [renamed.get(n, n) for n in item.parent_names]
                source_name = item.name
                self.translate_chapter(item)
                if bar is not None:
                    bar.update(1)
                children_renamed = renamed
                if item.name != source_name:
                    children_renamed = {**renamed, source_name: item.name}
                self.walk_items(item.sub_items, bar, children_renamed)
            elif isinstance(item, PartTitle) and self.config.translate_title:
                item.title = self.translate_text(item.title).strip() or item.title

    def run(self, ctx: PreprocessorContext, book: Book) -> Book:
        """
        Traduit le livre complet et le retourne.

        Le cache est sauvegardé même si une requête échoue en cours de route,
        afin de ne pas perdre les traductions déjà obtenues.

        Raises:
            ConfigurationError: Si la clé API est absente
            LLMRequestError: Si l'API échoue définitivement
        """
        logger.info(f"🎯 Langue cible : {self.target_language}")
        store = self._ensure_store(ctx.root)
        try:
            with tqdm(
                total=book.count_chapters(),
                desc="Traduction des chapitres",
                unit="chapitre",
                ncols=100,
                leave=False,
            ) as bar:
                self.walk_items(book.sections, bar)
        finally:
            store.save()
        return book
