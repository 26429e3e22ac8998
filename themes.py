"""Theme rendering for public portfolio pages."""

import logging
from collections import OrderedDict
from typing import Any, Dict, Iterable, List

from jinja2 import Environment, FileSystemLoader, select_autoescape

from composer import PortfolioReadModel
from config import TEMPLATES_DIR
from schemas import THEMES

logger = logging.getLogger(__name__)

DEFAULT_THEME = "modern"

_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html"]),
)


def select_theme(theme: str) -> str:
    return theme if theme in THEMES else DEFAULT_THEME


def group_skills(skills: Iterable[Dict[str, Any]]) -> "OrderedDict[str, List[Dict[str, Any]]]":
    """Group skill rows by category, keeping first-seen order."""
    groups: "OrderedDict[str, List[Dict[str, Any]]]" = OrderedDict()
    for skill in skills:
        groups.setdefault(skill.get("category") or "Other", []).append(skill)
    return groups


def render(model: PortfolioReadModel) -> str:
    theme = select_theme(model.theme)
    if theme != model.theme:
        logger.warning("Unknown theme %r for %s, using %s", model.theme, model.portfolio.get("username"), theme)
    template = _env.get_template(f"themes/{theme}.html")
    return template.render(
        theme=theme,
        portfolio=model.portfolio,
        owner=model.owner,
        education=model.education,
        experience=model.experience,
        projects=model.projects,
        skill_groups=group_skills(model.skills),
    )
