"""Sphinx configuration for the Matchday project documentation."""

from __future__ import annotations

import os
import sys
from datetime import datetime

# Ensure the project root is discoverable for autodoc/autosummary imports.
PROJECT_ROOT = os.path.abspath(os.path.join(__file__, "..", ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

project = "Matchday Betting Simulator"
author = "WelshDragon"
copyright = f"{datetime.now():%Y}, {author}"

try:
    from matchday import __version__ as version
except ImportError:  # pragma: no cover - docs build should not fail if import fails
    version = "0.1.0"
release = version

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.autosummary",
    "sphinx.ext.napoleon",
    "sphinx.ext.viewcode",
]

autosummary_generate = True
autodoc_member_order = "bysource"

templates_path = ["_templates"]
exclude_patterns: list[str] = ["_build", "Thumbs.db", ".DS_Store"]

html_theme = "sphinx_rtd_theme"

# Numpydoc-style sections only; type hints go into the field list.
autodoc_typehints = "description"
napoleon_google_docstring = False
napoleon_numpy_docstring = True
