import pytest

import themes
from composer import PortfolioReadModel


def _model(theme, **children):
    portfolio = {
        "username": "janedoe", "tagline": "Engineer", "bio": "Hello", "theme": theme,
        "phone": "", "location": "", "website": "", "github": "", "linkedin": "",
        "profiles": {"full_name": "Jane Doe", "email": "jane@example.com"},
    }
    return PortfolioReadModel(portfolio=portfolio, **children)


@pytest.mark.parametrize("theme", ["modern", "minimal", "professional"])
def test_known_themes_render_their_variant(theme):
    html = themes.render(_model(theme))
    assert f'data-theme="{theme}"' in html
    assert "Jane Doe" in html


@pytest.mark.parametrize("theme", ["retro", "", "MODERN", None])
def test_unknown_theme_falls_back_to_modern(theme):
    assert themes.select_theme(theme) == "modern"
    assert 'data-theme="modern"' in themes.render(_model(theme))


def test_experience_rendered():
    html = themes.render(_model("minimal", experience=[{"company": "Acme", "position": "Dev", "start_date": "2020", "end_date": ""}]))
    assert "Acme" in html
    assert "Dev" in html


def test_skills_grouped_by_category():
    skills = [
        {"name": "Docker", "category": "Cloud"},
        {"name": "Python", "category": "Languages"},
        {"name": "Go", "category": "Languages"},
        {"name": "Teamwork", "category": ""},
    ]
    groups = themes.group_skills(skills)
    assert list(groups) == ["Cloud", "Languages", "Other"]
    assert [s["name"] for s in groups["Languages"]] == ["Python", "Go"]


def test_output_is_escaped():
    model = _model("modern")
    model.portfolio["bio"] = "<script>alert(1)</script>"
    html = themes.render(model)
    assert "<script>alert(1)</script>" not in html
    assert "&lt;script&gt;" in html
