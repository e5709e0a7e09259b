"""
Rendu typé des templates Jinja2 utilisés pour les prompts.

Les templates sont livrés avec le package dans le dossier template/ :
- system.jinja : rôle du traducteur (prompt système)
- user.jinja : demande de traduction d'un morceau de texte
"""

from pathlib import Path
from typing import TypedDict

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from .config import TemplateNames

TEMPLATE_DIR = Path(__file__).parent / "template"


class SystemParams(TypedDict):
    """
    Paramètres pour system.jinja.

    Attributes:
        target_language: Langue cible (ex: "Chinese", "French")
    """

    target_language: str


class UserParams(TypedDict):
    """
    Paramètres pour user.jinja.

    Attributes:
        target_language: Langue cible
        text: Morceau de Markdown à traduire
    """

    target_language: str
    text: str


class TemplateRenderer:
    """
    Encapsule le rendu des templates avec typage fort.

    Example:
        >>> renderer = TemplateRenderer()
        >>> system = renderer.render_system(target_language="French")
        >>> user = renderer.render_user(target_language="French", text=chunk)
        >>> llm.query(system, user)
    """

    def __init__(self, prompt_dir: str | Path = TEMPLATE_DIR):
        self.env = Environment(
            loader=FileSystemLoader(str(prompt_dir)),
            autoescape=select_autoescape(["html", "xml"]),
            undefined=StrictUndefined,
        )

    def render_prompt(self, template_name: str, **kwargs) -> str:
        """Rend un template Jinja2 avec les variables données."""
        template = self.env.get_template(template_name)
        return template.render(**kwargs)

    def render_system(self, target_language: str) -> str:
        params: SystemParams = {"target_language": target_language}
        return self.render_prompt(TemplateNames.System_Template, **params)

    def render_user(self, target_language: str, text: str) -> str:
        params: UserParams = {"target_language": target_language, "text": text}
        return self.render_prompt(TemplateNames.User_Template, **params)
