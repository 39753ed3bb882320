# Sphinx configuration for the torch_cortical documentation.
#
# Build with:
#     sphinx-build -b html docs/source docs/build/html

import os
import sys

# Make the package importable without installing it
sys.path.insert(0, os.path.abspath('../..'))

import torch_cortical  # noqa: E402

# -- Project information -----------------------------------------------------
project = 'torch_cortical'
copyright = '2026, Stefano Giacomelli'
author = torch_cortical.__author__
release = torch_cortical.__version__
version = '.'.join(release.split('.')[:2])

# -- General configuration ---------------------------------------------------
extensions = [
    'sphinx.ext.autodoc',
    'sphinx.ext.autosummary',
    'sphinx.ext.napoleon',          # NumPy-style docstrings
    'sphinx.ext.mathjax',           # filter equations in the module docstrings
    'sphinx.ext.viewcode',
    'sphinx.ext.intersphinx',
]

napoleon_google_docstring = False
napoleon_numpy_docstring = True
napoleon_include_init_with_doc = True
napoleon_custom_sections = [('Shape', 'params_style')]

autosummary_generate = True
autodoc_member_order = 'bysource'
autodoc_typehints = 'description'
autodoc_default_options = {
    'members': True,
    'show-inheritance': True,
    'exclude-members': 'forward, extra_repr',
}

exclude_patterns = ['_build']
root_doc = 'index'

intersphinx_mapping = {
    'python': ('https://docs.python.org/3', None),
    'torch': ('https://pytorch.org/docs/stable/', None),
    'numpy': ('https://numpy.org/doc/stable/', None),
}

# -- Options for HTML output -------------------------------------------------
html_theme = 'sphinx_rtd_theme'
html_title = f'{project} v{release}'
html_theme_options = {
    'navigation_depth': 3,
    'collapse_navigation': False,
}
