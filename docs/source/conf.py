# Configuration file for the Sphinx documentation builder.
#
# For the full list of built-in configuration values, see the documentation:
# https://www.sphinx-doc.org/en/master/usage/configuration.html

# -- Project information -----------------------------------------------------

project = 'FF Blog'
copyright = '2026, FF Blog contributors'
author = 'FF Blog contributors'
release = '1.0.0'

import os
import sys
sys.path.insert(0, os.path.abspath("../../src"))   # finds the ffblog package
sys.path.insert(0, os.path.abspath("../../tests")) # finds conftest helpers

# -- General configuration ---------------------------------------------------

extensions = [
    'sphinx.ext.autodoc',
    'sphinx.ext.napoleon',  # needed for :param:/:type:/:returns: style docstrings
]

napoleon_use_param = True
napoleon_use_rtype = True

templates_path = []
exclude_patterns = []

# -- Options for HTML output -------------------------------------------------

html_theme = 'sphinx_rtd_theme'
html_static_path = []
