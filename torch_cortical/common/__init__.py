"""Reusable building blocks of the cortical model (axes, filters, filter banks, FFT engines, modules)."""
