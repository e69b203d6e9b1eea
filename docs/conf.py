"""Sphinx configuration for the balsam documentation."""

import sys
import tomllib
from pathlib import Path

# Make the in-tree package importable for autodoc
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

with (project_root / "pyproject.toml").open("rb") as f:
    project_info = tomllib.load(f)["project"]

project = "balsam"
release = project_info["version"]
author = project_info["authors"][0]["name"]
copyright = f"2026, {author}"

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.autosummary",
    "sphinx.ext.intersphinx",
    "sphinx.ext.mathjax",
    "sphinx.ext.napoleon",
    "sphinx.ext.viewcode",
    "sphinx_design",
]

# NumPy-style docstrings only
napoleon_google_docstring = False
napoleon_numpy_docstring = True
napoleon_use_rtype = True
napoleon_attr_annotations = True

autodoc_default_options = {
    "members": True,
    "member-order": "bysource",
    "undoc-members": True,
}
autodoc_typehints = "description"
autodoc_preserve_defaults = True
autosummary_generate = True

intersphinx_mapping = {
    "python": ("https://docs.python.org/3/", None),
    "numpy": ("https://numpy.org/doc/stable/", None),
    "pandas": ("https://pandas.pydata.org/docs/", None),
    "scipy": ("https://docs.scipy.org/doc/scipy/", None),
}

templates_path = ["_templates"]
exclude_patterns = ["_build", "Thumbs.db", ".DS_Store"]

html_theme = "furo"
html_title = f"{project} v{release}"
html_theme_options = {
    "navigation_with_keys": True,
    "light_css_variables": {"color-brand-primary": "#2f6f4f"},
    "dark_css_variables": {"color-brand-primary": "#7fc8a0"},
}
static_dir = Path(__file__).parent / "_static"
html_static_path = ["_static"] if static_dir.exists() else []
