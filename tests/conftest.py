"""
Configuration pytest pour les tests mdbook-translator.

Ce fichier contient les fixtures communes à tous les tests.
"""

import pytest

from mdbook_translator.logger import LogSession


@pytest.fixture(autouse=True)
def isolated_workdir(tmp_path, monkeypatch):
    """
    Exécute chaque test dans un répertoire temporaire avec une session de
    logs neuve, pour que logs/ et les caches ne polluent pas le dépôt.
    """
    monkeypatch.chdir(tmp_path)
    LogSession.reset()
    yield tmp_path
    LogSession.reset()


class FakeLLM:
    """
    LLM factice : « traduit » en mettant le texte en majuscules.

    Le texte source est extrait du prompt utilisateur rendu par user.jinja
    (tout ce qui suit la première ligne vide).
    """

    def __init__(self, responses=None, fail_after=None):
        self.calls = []
        self.responses = responses
        self.fail_after = fail_after

    def query(self, system_prompt, content, extra_messages=(), context=None):
        from mdbook_translator.exceptions import LLMRequestError

        if self.fail_after is not None and len(self.calls) >= self.fail_after:
            raise LLMRequestError("Timeout simulé", attempts=3)

        self.calls.append(
            {
                "system": system_prompt,
                "content": content,
                "extra": list(extra_messages),
                "context": context,
            }
        )
        if self.responses is not None:
            return self.responses.pop(0)
        source = content.split("\n\n", 1)[1]
        return source.upper().strip()


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def book_dict():
    """Livre mdBook minimal : chapitres imbriqués, séparateur et titre de partie."""
    return {
        "sections": [
            {
                "Chapter": {
                    "name": "Introduction",
                    "content": "# Introduction\n\nHello world.\n",
                    "number": [1],
                    "sub_items": [
                        {
                            "Chapter": {
                                "name": "Installation",
                                "content": "Run this:\n\n```sh\ncargo install mdbook\n```\n",
                                "number": [1, 1],
                                "sub_items": [],
                                "path": "intro/install.md",
                                "source_path": "intro/install.md",
                                "parent_names": ["Introduction"],
                            }
                        }
                    ],
                    "path": "intro.md",
                    "source_path": "intro.md",
                    "parent_names": [],
                }
            },
            "Separator",
            {"PartTitle": "Reference"},
            {
                "Chapter": {
                    "name": "Draft",
                    "content": "",
                    "number": None,
                    "sub_items": [],
                    "path": None,
                    "source_path": None,
                    "parent_names": [],
                }
            },
        ],
        "__non_exhaustive": None,
    }


@pytest.fixture
def context_dict(tmp_path):
    """Contexte mdBook avec une table [preprocessor.translator]."""
    return {
        "root": str(tmp_path),
        "config": {
            "book": {"title": "Test", "src": "src"},
            "preprocessor": {
                "translator": {
                    "command": "mdbook-translator",
                    "language": "French",
                    "cache-file": "cache.json",
                }
            },
        },
        "renderer": "html",
        "mdbook_version": "0.4.40",
        "__non_exhaustive": None,
    }


@pytest.fixture
def fake_llm_factory():
    """Retourne la classe FakeLLM pour les tests qui paramètrent les réponses."""
    return FakeLLM
