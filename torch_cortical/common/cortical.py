"""
Cortical Filterbank Modules
===========================

Author:
    Stefano Giacomelli - Ph.D. candidate @ DISIM dpt. - University of L'Aquila

License:
    GNU General Public License v3.0 or later (GPLv3+)

``nn.Module`` front-ends that apply a cortical filter specification (or its
inverse) to a labeled spectrogram.

Forward modules insert the decomposition axes:

- :class:`RateFilterbank`: ``[time, freq] -> [time, rate, freq]``
- :class:`ScaleFilterbank`: ``[time, freq] -> [time, scale, freq]``
- :class:`ScaleRateFilterbank`: ``[time, freq] -> [time, scale, rate, freq]``

Inverse modules remove them again and return a real, non-negative
spectrogram. Inverses must undo every inner axis at once; partial inverses
raise ``ValueError``.

Algorithm Overview
------------------
Forward: one :class:`~torch_cortical.common.fftfilt.FIRFiltering` engine over
the filtered axes, then one multiply + inverse FFT per channel, cropped back
to the input extent.

Inverse: one :class:`~torch_cortical.common.fftfilt.FFTCum` accumulator, one
``accumulate`` per channel with the (conjugated) channel response and a single
``finalize``.
"""

from typing import Sequence, Tuple, Union

import torch
import torch.nn as nn
from tqdm import tqdm

from torch_cortical.common.axes import Axis, LabeledArray
from torch_cortical.common.fftfilt import FFTCum, FIRFiltering
from torch_cortical.common.filterbanks import (ComposedSpec, CorticalAxis, FilterSpec, InverseSpec,
                                               axis_bounds, list_filters, ratefilter, scalefilter)

# -------------------------------------------------- Utilities ----------------------------------------------------

def _check_input(x: LabeledArray, axisnames: Sequence[str]):
    for name in ('time', 'freq'):
        if not x.has_axis(name):
            raise ValueError(f"Input must have a '{name}' axis, got axes {x.axisnames}")
    for name in axisnames:
        if x.has_axis(name):
            raise ValueError(f"Input already has an axis named '{name}'. If you intended to add a new "
                             f"dimension, you will have to change the name of the axis. When you define "
                             f"the filter you can specify the axis name using the `axis` keyword argument.")


def _channel_index(x: LabeledArray, names: Sequence[str], index: Tuple[int, ...]) -> tuple:
    full = [slice(None)] * x.ndim
    for name, i in zip(names, index):
        full[x.dim(name)] = i
    return tuple(full)


def _progress(filters, total: int, progress: bool):
    return tqdm(filters, desc="Cortical Model", total=total, disable=not progress, leave=False)


def _decompose(spec: Union[FilterSpec, ComposedSpec], x: LabeledArray, progress: bool = False) -> LabeledArray:
    _check_input(x, spec.axisnames)

    time_dim = x.dim('time')
    if isinstance(spec, ComposedSpec):
        filtered = ('time', 'freq')
        insertions = [(time_dim + 1, spec.scales), (time_dim + 2, spec.rates)]
    elif spec.kind is CorticalAxis.RATE:
        filtered = ('time',)
        insertions = [(time_dim + 1, spec)]
    else:
        filtered = ('freq',)
        insertions = [(x.dim('freq'), spec)]

    fir = FIRFiltering(x, filtered)

    # intermediate insertions wrap a broadcast view; only the last one allocates the complex output
    out = x
    for n, (position, s) in enumerate(insertions):
        axis = Axis(s.axis, s.values, axis_bounds(s))
        if n < len(insertions) - 1:
            view = out.data.unsqueeze(position).expand(*out.shape[:position], len(axis), *out.shape[position:])
            out = out.insert_axis(axis, position, data=view)
        else:
            out = out.insert_axis(axis, position, dtype=fir.dtype)

    for index, H in _progress(list_filters(spec, fir, out), len(spec), progress):
        out.data[_channel_index(out, spec.axisnames, index)] = fir.crop(fir.apply(H))

    return out


def _reconstruct(spec: Union[FilterSpec, ComposedSpec], cr: LabeledArray, norm: float,
                 progress: bool = False) -> LabeledArray:
    names = spec.axisnames
    for name in names:
        if not cr.has_axis(name):
            raise ValueError(f"Input has no axis named '{name}' to invert (axes: {cr.axisnames})")

    inner = cr.axisnames[1:-1]
    if len(inner) != len(names):
        raise ValueError(f"When computing the inverse you must invert all inner dimensions {inner}; "
                         f"partial inverses are not supported.")

    z_cum = FFTCum(cr)
    filters = list_filters(spec, z_cum, cr, inverse=True)
    for index, H in _progress(filters, len(spec), progress):
        z_cum.accumulate(cr.data[_channel_index(cr, names, index)], H)

    reference = cr.data[_channel_index(cr, names, (0,) * len(names))]
    return cr.remove_axes(*names, data=z_cum.finalize(reference, norm))

# ------------------------------------------------ Forward Modules ------------------------------------------------

class _CorticalFilterbank(nn.Module):
    """Shared forward machinery; subclasses only build ``self.spec``."""

    spec: Union[FilterSpec, ComposedSpec]

    def __init__(self, progress: bool = False):
        super().__init__()
        self.progress = progress

    @property
    def axisnames(self) -> Tuple[str, ...]:
        return self.spec.axisnames

    @property
    def num_channels(self) -> int:
        return len(self.spec)

    def forward(self, x: LabeledArray) -> LabeledArray:
        """
        Decompose ``x``.

        Parameters
        ----------
        x : LabeledArray
            Array with ``time`` and ``freq`` axes and none of the output axes.

        Returns
        -------
        LabeledArray
            Complex array with the decomposition axes inserted.
        """
        return _decompose(self.spec, x, self.progress)

    def inverse(self, norm: float = 0.9) -> "InverseCorticalFilterbank":
        """Matching inverse module."""
        return InverseCorticalFilterbank(self.spec, norm=norm, progress=self.progress)


class RateFilterbank(_CorticalFilterbank):
    r"""
    Temporal modulation (rate) filterbank.

    Filters every frequency channel of a spectrogram along time with the
    rate transfer functions of :func:`~torch_cortical.common.filters.rate_filter`.
    Positive rates respond to upward spectral sweeps, negative rates to
    downward ones.

    Parameters
    ----------
    rates : sequence of float or FilterSpec
        Signed rates in Hz, or a ready-made rate specification.

    bandonly : bool, optional
        All channels band-pass. Default: ``True``.

    axis : str, optional
        Name of the inserted axis (must contain ``'rate'``). Default: ``'rate'``.

    progress : bool, optional
        Show a ``tqdm`` progress bar. Default: ``False``.

    Shape
    -----
    - Input: ``(T, ..., F)`` labeled ``time``/``freq``
    - Output: ``(T, R, ..., F)`` complex

    Examples
    --------
    >>> fb = RateFilterbank([-4, -1, 1, 4])
    >>> cr = fb(spectrogram(torch.rand(128, 64), time_step=0.01))
    >>> cr.shape
    torch.Size([128, 4, 64])
    """

    def __init__(self, rates: Union[Sequence[float], FilterSpec], bandonly: bool = True, axis: str = 'rate',
                 progress: bool = False):
        super().__init__(progress)
        if not isinstance(rates, FilterSpec):
            rates = ratefilter(rates, bandonly=bandonly, axis=axis)
        if rates.kind is not CorticalAxis.RATE:
            raise ValueError(f"RateFilterbank needs a rate specification, got {rates!r}")
        self.spec = rates
        self.register_buffer('rates', torch.tensor(rates.values, dtype=torch.float64))

    def extra_repr(self) -> str:
        return f"num_rates={len(self.spec)}, bandonly={self.spec.bandonly}, axis='{self.spec.axis}'"


class ScaleFilterbank(_CorticalFilterbank):
    r"""
    Spectral modulation (scale) filterbank.

    Filters every time frame along the log-frequency axis with the scale
    transfer functions of :func:`~torch_cortical.common.filters.scale_filter`.

    Parameters
    ----------
    scales : sequence of float or FilterSpec
        Positive scales in cycles/octave, or a ready-made scale specification.

    bandonly : bool, optional
        All channels band-pass. Default: ``True``.

    axis : str, optional
        Name of the inserted axis (must contain ``'scale'``). Default: ``'scale'``.

    spect_rate : float, optional
        Frequency-axis samples per octave. Default: 24.

    progress : bool, optional
        Show a ``tqdm`` progress bar. Default: ``False``.

    Shape
    -----
    - Input: ``(T, ..., F)`` labeled ``time``/``freq``
    - Output: ``(T, ..., S, F)`` complex
    """

    def __init__(self, scales: Union[Sequence[float], FilterSpec], bandonly: bool = True, axis: str = 'scale',
                 spect_rate: float = 24, progress: bool = False):
        super().__init__(progress)
        if not isinstance(scales, FilterSpec):
            scales = scalefilter(scales, bandonly=bandonly, axis=axis, spect_rate=spect_rate)
        if scales.kind is not CorticalAxis.SCALE:
            raise ValueError(f"ScaleFilterbank needs a scale specification, got {scales!r}")
        self.spec = scales
        self.register_buffer('scales', torch.tensor(scales.values, dtype=torch.float64))

    def extra_repr(self) -> str:
        return (f"num_scales={len(self.spec)}, bandonly={self.spec.bandonly}, axis='{self.spec.axis}', "
                f"spect_rate={self.spec.spect_rate}")


class ScaleRateFilterbank(_CorticalFilterbank):
    r"""
    Joint scale x rate (cortical) filterbank.

    Every channel is the product of one rate and one (conjugated, extended)
    scale response, applied to a single 2-D FFT of the spectrogram:

    .. math::
        H_{s,r}(\omega, \Omega) = H_r(\omega) \, \overline{H_s(\Omega)}

    Parameters
    ----------
    spec : ComposedSpec
        Composed specification, see :func:`~torch_cortical.common.filterbanks.cortical`.

    progress : bool, optional
        Show a ``tqdm`` progress bar. Default: ``False``.

    Shape
    -----
    - Input: ``(T, F)`` labeled ``time``/``freq``
    - Output: ``(T, S, R, F)`` complex
    """

    def __init__(self, spec: ComposedSpec, progress: bool = False):
        super().__init__(progress)
        if not isinstance(spec, ComposedSpec):
            raise ValueError(f"ScaleRateFilterbank needs a composed specification, got {spec!r}")
        self.spec = spec
        self.register_buffer('scales', torch.tensor(spec.scales.values, dtype=torch.float64))
        self.register_buffer('rates', torch.tensor(spec.rates.values, dtype=torch.float64))

    def extra_repr(self) -> str:
        return (f"num_scales={len(self.spec.scales)}, num_rates={len(self.spec.rates)}, "
                f"axes={self.spec.axisnames}")

# ------------------------------------------------ Inverse Module -------------------------------------------------

class InverseCorticalFilterbank(nn.Module):
    """
    Inverse of a rate, scale or scale x rate decomposition.

    Parameters
    ----------
    spec : FilterSpec or ComposedSpec
        Specification used by the forward transform.

    norm : float, optional
        Blend between pure energy weighting (1) and a flat weight (0).
        Default: 0.9.

    progress : bool, optional
        Show a ``tqdm`` progress bar. Default: ``False``.

    Shape
    -----
    - Input: ``(T, ..., F)`` with exactly the inverted axes between ``time``
      and ``freq``
    - Output: ``(T, F)`` real, non-negative
    """

    def __init__(self, spec: Union[FilterSpec, ComposedSpec], norm: float = 0.9, progress: bool = False):
        super().__init__()
        self.inv = InverseSpec(spec, norm)
        self.progress = progress

    @property
    def spec(self) -> Union[FilterSpec, ComposedSpec]:
        return self.inv.spec

    @property
    def norm(self) -> float:
        return self.inv.norm

    def forward(self, cr: LabeledArray) -> LabeledArray:
        return _reconstruct(self.spec, cr, self.norm, self.progress)

    def extra_repr(self) -> str:
        return f"axes={self.spec.axisnames}, norm={self.norm}"

# -------------------------------------------------- Dispatch -----------------------------------------------------

def filt(spec: Union[FilterSpec, ComposedSpec, InverseSpec], x: LabeledArray,
         progress: bool = False) -> LabeledArray:
    """
    Apply a specification (or its inverse) to a labeled array.

    Parameters
    ----------
    spec : FilterSpec, ComposedSpec or InverseSpec
        What to compute.

    x : LabeledArray
        Spectrogram (forward) or decomposed array (inverse).

    progress : bool, optional
        Show a ``tqdm`` progress bar. Default: ``False``.
    """
    if isinstance(spec, InverseSpec):
        return InverseCorticalFilterbank(spec.spec, spec.norm, progress)(x)
    if isinstance(spec, ComposedSpec):
        return ScaleRateFilterbank(spec, progress)(x)
    if spec.kind is CorticalAxis.RATE:
        return RateFilterbank(spec, progress=progress)(x)
    elif spec.kind is CorticalAxis.SCALE:
        return ScaleFilterbank(spec, progress=progress)(x)
    raise ValueError(f"Unknown cortical axis {spec.kind!r}")
