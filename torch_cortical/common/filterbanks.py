"""
Cortical Filterbanks
====================

Author:
    Stefano Giacomelli - Ph.D. candidate @ DISIM dpt. - University of L'Aquila

License:
    GNU General Public License v3.0 or later (GPLv3+)

Filter specifications and filter-bank generators for the spectrotemporal
(cortical) decomposition. A specification lists the channel tuning values of
one decomposition axis:

- **rate** axis: signed temporal modulation rates in Hz. The sign selects the
  sweep direction (negative rates are downward sweeps), the magnitude selects
  the filter shape.
- **scale** axis: positive spectral modulation scales in cycles/octave.

Each channel is classified as low-, band- or high-pass by comparing its
magnitude with the :class:`~torch_cortical.common.axes.AxisBounds` stored on
the output axis. Unless ``bandonly`` is set, the smallest magnitude is the
single low-pass channel and the largest the single high-pass channel.

Default channel tables are provided as named values (``DEFAULT_RATES``,
``DEFAULT_SCALES``, ``DEFAULT_SPECT_RATE``); builders never read them
implicitly.

References
----------
.. [1] T. Chi, P. Ru, and S. A. Shamma, "Multiresolution spectrotemporal
       analysis of complex sounds," *J. Acoust. Soc. Am.*, vol. 118, no. 2,
       pp. 887-906, 2005.

.. [2] X. Yang, K. Wang, and S. A. Shamma, "Auditory representations of
       acoustic signals," *IEEE Trans. Inf. Theory*, vol. 38, no. 2,
       pp. 824-839, 1992.
"""

import math
import warnings
from enum import Enum
from typing import Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
import torch

from torch_cortical.common.axes import AxisBounds, LabeledArray
from torch_cortical.common.filters import rate_filter, scale_filter

# ---------------------------------------------- Default Channels ------------------------------------------------

DEFAULT_RATES = tuple(sorted(np.concatenate([-2.0 ** np.arange(1, 5.25, 0.5),
                                             2.0 ** np.arange(1, 5.25, 0.5)]).tolist()))
DEFAULT_SCALES = tuple((2.0 ** np.arange(-2, 3.25, 0.5)).tolist())
DEFAULT_SPECT_RATE = 24

# ----------------------------------------------- Specifications -------------------------------------------------

class CorticalAxis(Enum):
    """Decomposition axis variant."""
    SCALE = 'scale'
    RATE = 'rate'


class FilterSpec:
    """
    Channel specification for one decomposition axis.

    Parameters
    ----------
    kind : CorticalAxis
        Which axis this specification decomposes.

    values : sequence of float
        Channel tuning values in output order (Hz for rates, cyc/oct for scales).

    bandonly : bool
        Force every channel to be band-pass.

    axis : str
        Name of the output axis.

    spect_rate : float, optional
        Frequency-axis samples per octave (scale specifications only).
    """

    def __init__(self, kind: CorticalAxis, values: Sequence[float], bandonly: bool, axis: str,
                 spect_rate: Optional[float] = None):
        self.kind = kind
        self.values = tuple(float(v) for v in values)
        self.bandonly = bool(bandonly)
        self.axis = axis
        self.spect_rate = spect_rate

    def __len__(self) -> int:
        return len(self.values)

    @property
    def axisnames(self) -> Tuple[str, ...]:
        return (self.axis,)

    def __repr__(self) -> str:
        extra = f", spect_rate={self.spect_rate}" if self.kind is CorticalAxis.SCALE else ""
        return (f"FilterSpec({self.kind.value}, n={len(self)}, bandonly={self.bandonly}, "
                f"axis='{self.axis}'{extra})")


class ComposedSpec:
    """Joint scale x rate specification."""

    def __init__(self, scales: FilterSpec, rates: FilterSpec):
        if scales.kind is not CorticalAxis.SCALE or rates.kind is not CorticalAxis.RATE:
            raise ValueError("ComposedSpec expects a scale specification followed by a rate specification")
        self.scales = scales
        self.rates = rates

    def __len__(self) -> int:
        return len(self.scales) * len(self.rates)

    @property
    def axisnames(self) -> Tuple[str, ...]:
        return (self.scales.axis, self.rates.axis)

    def __repr__(self) -> str:
        return f"ComposedSpec(scales={self.scales!r}, rates={self.rates!r})"


class InverseSpec:
    """
    Inverse of a :class:`FilterSpec` or :class:`ComposedSpec`.

    ``norm`` blends the accumulated filter energy with its maximum before
    division; 1 is pure energy weighting, smaller values regularise bins
    with little filter energy.
    """

    def __init__(self, spec: Union[FilterSpec, ComposedSpec], norm: float = 0.9):
        if not 0.0 <= norm <= 1.0:
            raise ValueError(f"norm must lie in [0, 1], got {norm}")
        self.spec = spec
        self.norm = float(norm)

    @property
    def axisnames(self) -> Tuple[str, ...]:
        return self.spec.axisnames

    def __repr__(self) -> str:
        return f"InverseSpec({self.spec!r}, norm={self.norm})"


def ratefilter(rates: Sequence[float], bandonly: bool = True, axis: str = 'rate') -> FilterSpec:
    """
    Build a rate (temporal modulation) specification.

    Parameters
    ----------
    rates : sequence of float
        Signed rates in Hz; zero is not allowed.

    bandonly : bool, optional
        Classify every channel as band-pass. Default: ``True``.

    axis : str, optional
        Output axis name; must contain ``'rate'``. Default: ``'rate'``.
    """
    if 'rate' not in axis:
        raise ValueError(f"Rate axis name '{axis}' must contain the word 'rate'.")
    rates = [float(r) for r in rates]
    if len(rates) == 0:
        raise ValueError("At least one rate is required")
    if any(r == 0 or not math.isfinite(r) for r in rates):
        raise ValueError(f"Rates must be finite and non-zero, got {rates}")
    return FilterSpec(CorticalAxis.RATE, rates, bandonly, axis)


def scalefilter(scales: Sequence[float], bandonly: bool = True, axis: str = 'scale',
                spect_rate: float = DEFAULT_SPECT_RATE) -> FilterSpec:
    """
    Build a scale (spectral modulation) specification.

    Parameters
    ----------
    scales : sequence of float
        Strictly positive scales in cycles/octave.

    bandonly : bool, optional
        Classify every channel as band-pass. Default: ``True``.

    axis : str, optional
        Output axis name; must contain ``'scale'``. Default: ``'scale'``.

    spect_rate : float, optional
        Samples per octave of the spectrogram frequency axis. Default: 24.
    """
    if 'scale' not in axis:
        raise ValueError(f"Scale axis name '{axis}' must contain the word 'scale'.")
    scales = [float(s) for s in scales]
    if len(scales) == 0:
        raise ValueError("At least one scale is required")
    if any(not (s > 0) or not math.isfinite(s) for s in scales):
        raise ValueError(f"Scales must be finite and strictly positive, got {scales}")
    if spect_rate <= 0:
        raise ValueError(f"spect_rate must be positive, got {spect_rate}")
    return FilterSpec(CorticalAxis.SCALE, scales, bandonly, axis, spect_rate=spect_rate)


def cortical(scales: Union[FilterSpec, Sequence[float]],
             rates: Union[FilterSpec, Sequence[float]],
             bandonly: bool = True,
             axes: Tuple[str, str] = ('scale', 'rate'),
             spect_rate: float = DEFAULT_SPECT_RATE) -> ComposedSpec:
    """
    Compose a scale and a rate specification.

    Either pass two ready-made specifications, or raw value lists that are
    turned into specifications sharing ``bandonly``.
    """
    if not isinstance(scales, FilterSpec):
        scales = scalefilter(scales, bandonly=bandonly, axis=axes[0], spect_rate=spect_rate)
    if not isinstance(rates, FilterSpec):
        rates = ratefilter(rates, bandonly=bandonly, axis=axes[1])
    return ComposedSpec(scales, rates)


def inverse(spec: Union[FilterSpec, ComposedSpec], norm: float = 0.9) -> InverseSpec:
    """Inverse of ``spec`` with energy-regularisation ``norm``."""
    if isinstance(spec, InverseSpec):
        raise ValueError("Specification is already an inverse")
    return InverseSpec(spec, norm)

# ---------------------------------------------- Classification --------------------------------------------------

def axis_bounds(spec: FilterSpec) -> AxisBounds:
    """Low/high thresholds of the axis produced by ``spec``."""
    if spec.bandonly:
        return AxisBounds(-math.inf, math.inf)
    magnitudes = sorted(set(abs(v) for v in spec.values))
    return AxisBounds(magnitudes[0], magnitudes[-1])


def filter_kind(magnitude: float, bounds: AxisBounds) -> str:
    """
    Classify a channel: ``<= low`` is low-pass, ``< high`` band-pass, else high-pass.
    """
    if magnitude <= bounds.low:
        return 'low'
    if magnitude < bounds.high:
        return 'band'
    return 'high'

# ----------------------------------------------- Filter Banks ----------------------------------------------------

def rate_filters(Y, x: LabeledArray, rate_axis: str, conjugate: bool = False) -> List[torch.Tensor]:
    """
    Rate transfer functions for every tick of ``x``'s rate axis.

    Parameters
    ----------
    Y : FIRFiltering or FFTCum
        Transformed grid; ``Y.fft_length('time') // 2`` one-sided bins are used.

    x : LabeledArray
        Array carrying the rate axis (ticks + bounds) and the time axis (step).

    rate_axis : str
        Name of the rate axis.

    conjugate : bool, optional
        Conjugate the responses (inverse transform). Default: ``False``.

    Returns
    -------
    list of torch.Tensor
        Complex responses of length ``Y.fft_length('time')``, in axis order.
    """
    N_t = Y.fft_length('time') >> 1
    bounds = x.bounds(rate_axis)
    dt = x.step('time')

    nyquist = 1 / (2 * dt)
    filters = []
    for rate in x.values(rate_axis).tolist():
        if abs(rate) > nyquist:
            warnings.warn(f"Rate {rate:g} Hz exceeds the frame-rate Nyquist ({nyquist:g} Hz)")
        kind = filter_kind(abs(rate), bounds)
        filters.append(rate_filter(rate, N_t, dt, kind, conjugate))
    return filters


def scale_filters(Y, x: LabeledArray, scale_axis: str,
                  spect_rate: float = DEFAULT_SPECT_RATE) -> List[torch.Tensor]:
    """
    Scale transfer functions for every tick of ``x``'s scale axis.

    Returns one-sided real responses of length ``Y.fft_length('freq') // 2``;
    see :func:`extend_scale` for the full-grid version.
    """
    N_f = Y.fft_length('freq') >> 1
    bounds = x.bounds(scale_axis)

    filters = []
    for scale in x.values(scale_axis).tolist():
        if scale >= spect_rate / 2:
            warnings.warn(f"Scale {scale:g} cyc/oct is at or above the spectral Nyquist "
                          f"({spect_rate / 2:g} cyc/oct); its peak falls outside the grid")
        kind = filter_kind(scale, bounds)
        filters.append(scale_filter(scale, N_f, spect_rate, kind))
    return filters


def extend_scale(HS: torch.Tensor) -> torch.Tensor:
    """Full-grid scale response: one-sided ``HS`` followed by zeros, conjugated."""
    return torch.conj(torch.cat([HS, torch.zeros_like(HS)])).to(torch.complex128)


def list_filters(spec: Union[FilterSpec, ComposedSpec], Y, x: LabeledArray,
                 inverse: bool = False) -> Iterator[Tuple[Tuple[int, ...], torch.Tensor]]:
    """
    Channel index / broadcastable transfer function pairs for ``spec``.

    The one-dimensional rate and scale responses are built up front; the
    full-grid product of a composed channel is only formed when that channel
    is yielded, so at most one grid-sized filter is alive at a time.

    Parameters
    ----------
    spec : FilterSpec or ComposedSpec
        Specification to expand.

    Y : FIRFiltering or FFTCum
        Transformed grid; provides ``fft_length`` and ``along``.

    x : LabeledArray
        Array carrying the decomposition axes.

    inverse : bool, optional
        Build the inverse filters (conjugated rates). Default: ``False``.

    Yields
    ------
    (tuple, torch.Tensor)
        For a single axis the index is ``(i,)``; for a composed spec it is
        ``(scale_index, rate_index)``, scales varying slowest. ``len(spec)``
        pairs are produced in total.
    """
    if isinstance(spec, ComposedSpec):
        HS = [Y.along(extend_scale(H), 'freq')
              for H in scale_filters(Y, x, spec.scales.axis, spec.scales.spect_rate)]
        HR = [Y.along(H, 'time') for H in rate_filters(Y, x, spec.rates.axis, conjugate=inverse)]
        for si, hs in enumerate(HS):
            for ri, hr in enumerate(HR):
                yield (si, ri), hr * hs
    elif spec.kind is CorticalAxis.RATE:
        for ri, H in enumerate(rate_filters(Y, x, spec.axis, conjugate=inverse)):
            yield (ri,), Y.along(H, 'time')
    elif spec.kind is CorticalAxis.SCALE:
        for si, H in enumerate(scale_filters(Y, x, spec.axis, spec.spect_rate)):
            yield (si,), Y.along(extend_scale(H), 'freq')
    else:
        raise ValueError(f"Unknown cortical axis {spec.kind!r}")

# ------------------------------------------------- Accessors -----------------------------------------------------

def rates(x: LabeledArray, axis: str = 'rate') -> torch.Tensor:
    """Rate ticks (Hz) of a decomposed array."""
    return x.values(axis)


def nrates(x: LabeledArray, axis: str = 'rate') -> int:
    return len(rates(x, axis))


def scales(x: LabeledArray, axis: str = 'scale') -> torch.Tensor:
    """Scale ticks (cyc/oct) of a decomposed array."""
    return x.values(axis)


def nscales(x: LabeledArray, axis: str = 'scale') -> int:
    return len(scales(x, axis))
