"""
Tests pour le préprocesseur : parcours du livre, cache et reconstruction.
"""

import json

import pytest

from mdbook_translator.book import Book, Chapter, PartTitle, PreprocessorContext, Separator
from mdbook_translator.config import TranslatorConfig
from mdbook_translator.exceptions import LLMRequestError
from mdbook_translator.preprocessor import TranslatorPreprocessor, preview
from mdbook_translator.store import Store, hash_key


@pytest.fixture
def ctx(context_dict):
    return PreprocessorContext.from_dict(context_dict)


def make_preprocessor(llm, tmp_path, **config):
    config.setdefault("language", "French")
    store = Store(tmp_path / "cache.json")
    return TranslatorPreprocessor(TranslatorConfig(**config), llm=llm, store=store)


class TestTranslateText:
    """Tests pour translate_text."""

    def test_calls_llm_with_rendered_prompts(self, fake_llm, tmp_path):
        pre = make_preprocessor(fake_llm, tmp_path)

        result = pre.translate_text("Hello world.\n")

        assert result == "HELLO WORLD."
        call = fake_llm.calls[0]
        assert "French" in call["system"]
        assert call["content"] == (
            "Translate the following text into French:\n\nHello world.\n"
        )
        assert call["extra"] == []
        assert call["context"] == "chunk_0001"

    def test_extra_prompt_sent_as_user_message(self, fake_llm, tmp_path):
        pre = make_preprocessor(fake_llm, tmp_path, prompt="Keep crate names.")

        pre.translate_text("Hello")

        assert fake_llm.calls[0]["extra"] == ["Keep crate names."]

    def test_cache_hit_skips_llm(self, fake_llm, tmp_path):
        pre = make_preprocessor(fake_llm, tmp_path)
        pre.store.put("Hello", "French", "Bonjour")

        assert pre.translate_text("Hello") == "Bonjour"
        assert fake_llm.calls == []

    def test_result_is_cached(self, fake_llm, tmp_path):
        pre = make_preprocessor(fake_llm, tmp_path)

        pre.translate_text("Hello")
        pre.translate_text("Hello")

        assert len(fake_llm.calls) == 1
        assert pre.store.get("Hello", "French") == "HELLO"

    def test_cache_is_per_language(self, fake_llm, tmp_path):
        pre = make_preprocessor(fake_llm, tmp_path, language="German")
        pre.store.put("Hello", "French", "Bonjour")

        assert pre.translate_text("Hello") == "HELLO"
        assert len(fake_llm.calls) == 1

    def test_empty_response_keeps_source(self, fake_llm_factory, tmp_path):
        llm = fake_llm_factory(responses=[""])
        pre = make_preprocessor(llm, tmp_path)

        assert pre.translate_text("Hello") == "Hello"
        assert pre.store.get("Hello", "French") is None


class TestRun:
    """Tests pour run() sur un livre complet."""

    def test_translates_nested_chapters(self, fake_llm, tmp_path, ctx, book_dict):
        pre = make_preprocessor(fake_llm, tmp_path)
        book = Book.from_dict(book_dict)

        result = pre.run(ctx, book)

        intro = result.sections[0]
        assert intro.content == "# INTRODUCTION\n\nHELLO WORLD.\n"
        install = intro.sub_items[0]
        assert install.content == "RUN THIS:\n\n```SH\nCARGO INSTALL MDBOOK\n```\n\n"
        # Titres non traduits par défaut
        assert intro.name == "Introduction"
        assert result.sections[2] == PartTitle("Reference")
        assert isinstance(result.sections[1], Separator)
        # Chapitre vide : aucun appel
        assert result.sections[3].content == ""
        assert len(fake_llm.calls) == 2

    def test_structure_unchanged(self, fake_llm, tmp_path, ctx, book_dict):
        """Seuls les champs texte changent : la structure reste identique."""
        pre = make_preprocessor(fake_llm, tmp_path)
        before = Book.from_dict(book_dict).to_dict()

        after = pre.run(ctx, Book.from_dict(book_dict)).to_dict()

        def shape(data):
            if isinstance(data, dict):
                return {k: shape(v) for k, v in data.items() if k not in ("content", "name")}
            if isinstance(data, list):
                return [shape(v) for v in data]
            return data

        assert shape(after) == shape(before)

    def test_cache_saved_to_disk(self, fake_llm, tmp_path, ctx, book_dict):
        pre = make_preprocessor(fake_llm, tmp_path)

        pre.run(ctx, Book.from_dict(book_dict))

        data = json.loads((tmp_path / "cache.json").read_text(encoding="utf-8"))
        assert data[hash_key("# Introduction\n\nHello world.\n", "French")] == (
            "# INTRODUCTION\n\nHELLO WORLD."
        )

    def test_second_run_uses_cache(self, fake_llm_factory, tmp_path, ctx, book_dict):
        first = fake_llm_factory()
        make_preprocessor(first, tmp_path).run(ctx, Book.from_dict(book_dict))

        second = fake_llm_factory()
        result = make_preprocessor(second, tmp_path).run(ctx, Book.from_dict(book_dict))

        assert second.calls == []
        assert result.sections[0].content == "# INTRODUCTION\n\nHELLO WORLD.\n"

    def test_cache_saved_when_request_fails(
        self, fake_llm_factory, tmp_path, ctx, book_dict
    ):
        """Les traductions obtenues avant l'échec sont conservées."""
        llm = fake_llm_factory(fail_after=1)
        pre = make_preprocessor(llm, tmp_path)

        with pytest.raises(LLMRequestError):
            pre.run(ctx, Book.from_dict(book_dict))

        reloaded = Store(tmp_path / "cache.json")
        assert len(reloaded) == 1

    def test_translate_titles(self, fake_llm, tmp_path, ctx, book_dict):
        pre = make_preprocessor(fake_llm, tmp_path, translate_title=True)

        result = pre.run(ctx, Book.from_dict(book_dict))

        assert result.sections[0].name == "INTRODUCTION"
        assert result.sections[0].sub_items[0].name == "INSTALLATION"
        assert result.sections[2] == PartTitle("REFERENCE")

    def test_translated_titles_reach_parent_names(self, fake_llm, tmp_path, ctx, book_dict):
        """Les sous-chapitres voient le titre traduit de leur parent."""
        pre = make_preprocessor(fake_llm, tmp_path, translate_title=True)

        result = pre.run(ctx, Book.from_dict(book_dict))

        assert result.sections[0].sub_items[0].parent_names == ["INTRODUCTION"]
        assert result.sections[0].parent_names == []

    def test_parent_names_kept_without_title_translation(
        self, fake_llm, tmp_path, ctx, book_dict
    ):
        pre = make_preprocessor(fake_llm, tmp_path)

        result = pre.run(ctx, Book.from_dict(book_dict))

        assert result.sections[0].sub_items[0].parent_names == ["Introduction"]

    @pytest.mark.parametrize("content", ["\n", "\n\n"])
    def test_blank_chapter_not_sent(self, fake_llm_factory, tmp_path, ctx, content):
        """Un chapitre fait de lignes vides reste tel quel, sans appel ni cache."""
        llm = fake_llm_factory(responses=["Please provide the text.", ""])
        pre = make_preprocessor(llm, tmp_path)
        chapter = Chapter(name="Blank", content=content)

        pre.run(ctx, Book(sections=[chapter]))

        assert llm.calls == []
        assert chapter.content == content
        assert len(Store(tmp_path / "cache.json")) == 0

    def test_leading_blank_lines_kept(self, fake_llm, tmp_path, ctx):
        """Les lignes vides de tête sont conservées sans appel au LLM."""
        pre = make_preprocessor(fake_llm, tmp_path, chunk_size=6)
        chapter = Chapter(name="Gaps", content="\n\nabcdef\n")

        pre.run(ctx, Book(sections=[chapter]))

        assert len(fake_llm.calls) == 1
        assert chapter.content == "\n\nABCDEF\n"

    def test_long_chapter_split_into_chunks(self, fake_llm, tmp_path, ctx):
        pre = make_preprocessor(fake_llm, tmp_path, chunk_size=12)
        chapter = Chapter(name="Long", content="first line\n\nsecond line\nthird line\n")

        pre.run(ctx, Book(sections=[chapter]))

        assert len(fake_llm.calls) == 3
        assert chapter.content == "FIRST LINE\n\nSECOND LINE\nTHIRD LINE\n"

    def test_store_created_under_book_root(self, fake_llm, tmp_path, ctx):
        root = tmp_path / "book"
        root.mkdir()
        ctx.root = str(root)
        pre = TranslatorPreprocessor(
            TranslatorConfig(language="French", cache_file="my_cache.json"), llm=fake_llm
        )

        pre.run(ctx, Book(sections=[Chapter(name="A", content="Hello\n")]))

        assert (root / "my_cache.json").exists()


def test_supports_every_renderer():
    pre = TranslatorPreprocessor()
    assert pre.supports_renderer("html")
    assert pre.supports_renderer("markdown")


def test_preview():
    assert preview("abc") == "abc"
    assert preview("x" * 150) == "x" * 100 + "..."


def test_configure_rebuilds_segmentator():
    pre = TranslatorPreprocessor()
    assert pre.segmentator.max_size == 4000

    pre.configure(TranslatorConfig(language="German", chunk_size=50))

    assert pre.target_language == "German"
    assert pre.segmentator.max_size == 50


def test_fully_cached_book_needs_no_api_key(tmp_path, ctx, monkeypatch):
    """Sans morceau manquant dans le cache, aucun client LLM n'est créé."""
    monkeypatch.delenv("DEEPSEEK_API_KEY", raising=False)
    store = Store(tmp_path / "cache.json")
    store.put("Hello\n", "French", "Bonjour")
    pre = TranslatorPreprocessor(TranslatorConfig(language="French"), store=store)

    book = pre.run(ctx, Book(sections=[Chapter(name="A", content="Hello\n")]))

    assert book.sections[0].content == "Bonjour\n"
    assert pre.llm is None
