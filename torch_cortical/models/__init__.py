"""Auditory models."""

from torch_cortical.models.chi2005 import Chi2005

__all__ = ["Chi2005"]
