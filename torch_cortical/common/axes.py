"""
Labeled Arrays
==============

Author:
    Stefano Giacomelli - Ph.D. candidate @ DISIM dpt. - University of L'Aquila

License:
    GNU General Public License v3.0 or later (GPLv3+)

Minimal labeled-array container used by the cortical filterbanks. A
:class:`LabeledArray` couples a dense ``torch.Tensor`` with an ordered mapping
from axis name to :class:`Axis` (dimension ticks plus optional
:class:`AxisBounds`). All lookups are explicit name queries; there is no
implicit broadcasting by name.

Conventions
-----------
- A spectrogram is ``[time, freq]``; ``time`` has uniform spacing (seconds),
  ``freq`` is log-spaced (Hz, ``spect_rate`` samples per octave).
- Cortical outputs insert ``rate`` right after ``time`` and ``scale`` right
  before ``freq``.
"""

import math
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np
import torch


class AxisBounds(NamedTuple):
    """Magnitude thresholds separating low-, band- and high-pass channels."""
    low: float
    high: float


class Axis:
    """
    Named dimension of a :class:`LabeledArray`.

    Parameters
    ----------
    name : str
        Axis name (e.g. ``'time'``, ``'freq'``, ``'rate'``).

    values : sequence of float or torch.Tensor
        Ordered tick values, one per index along the dimension.

    bounds : AxisBounds, optional
        Filter-kind thresholds; only present on decomposition axes.
    """

    def __init__(self, name: str, values, bounds: Optional[AxisBounds] = None):
        self.name = name
        self.values = torch.as_tensor(values, dtype=torch.float64).reshape(-1)
        self.bounds = bounds

    def __len__(self) -> int:
        return self.values.numel()

    @property
    def step(self) -> float:
        if len(self) < 2:
            raise ValueError(f"Axis '{self.name}' needs at least two ticks to define a step")
        return (self.values[1] - self.values[0]).item()

    def __repr__(self) -> str:
        bounds = f", bounds=({self.bounds.low}, {self.bounds.high})" if self.bounds is not None else ""
        return f"Axis('{self.name}', n={len(self)}{bounds})"


class LabeledArray:
    """
    Dense tensor with named, ticked axes.

    Parameters
    ----------
    data : torch.Tensor
        Array data, one dimension per axis.

    axes : sequence of Axis
        Axes in dimension order. Names must be unique and lengths must match
        ``data.shape``.

    Examples
    --------
    >>> import torch
    >>> from torch_cortical.common.axes import spectrogram
    >>> x = spectrogram(torch.rand(128, 64), time_step=0.01)
    >>> x.axisnames
    ('time', 'freq')
    >>> x.dim('freq')
    1
    """

    def __init__(self, data: torch.Tensor, axes: Sequence[Axis]):
        axes = list(axes)
        if data.ndim != len(axes):
            raise ValueError(f"Got {len(axes)} axes for an array with {data.ndim} dimensions")
        names = [ax.name for ax in axes]
        if len(set(names)) != len(names):
            raise ValueError(f"Axis names must be unique, got {names}")
        for size, ax in zip(data.shape, axes):
            if size != len(ax):
                raise ValueError(f"Axis '{ax.name}' has {len(ax)} ticks but dimension has size {size}")

        self.data = data
        self._axes: Dict[str, Axis] = {ax.name: ax for ax in axes}
        self._order: List[str] = names

    # ---------------------------------------------- Lookup ----------------------------------------------

    @property
    def axisnames(self) -> Tuple[str, ...]:
        return tuple(self._order)

    @property
    def axes(self) -> Tuple[Axis, ...]:
        return tuple(self._axes[name] for name in self._order)

    @property
    def shape(self) -> torch.Size:
        return self.data.shape

    @property
    def ndim(self) -> int:
        return self.data.ndim

    @property
    def dtype(self) -> torch.dtype:
        return self.data.dtype

    def has_axis(self, name: str) -> bool:
        return name in self._axes

    def axis(self, name: str) -> Axis:
        try:
            return self._axes[name]
        except KeyError:
            raise ValueError(f"Array has no axis named '{name}' (axes: {self.axisnames})") from None

    def dim(self, name: str) -> int:
        self.axis(name)
        return self._order.index(name)

    def values(self, name: str) -> torch.Tensor:
        return self.axis(name).values

    def bounds(self, name: str) -> AxisBounds:
        bounds = self.axis(name).bounds
        if bounds is None:
            raise ValueError(f"Axis '{name}' carries no filter bounds")
        return bounds

    def step(self, name: str) -> float:
        return self.axis(name).step

    def size(self, name: str) -> int:
        return self.data.shape[self.dim(name)]

    def select(self, name: str, index: int) -> torch.Tensor:
        """Slice at ``index`` along axis ``name`` (the axis is dropped)."""
        return self.data.select(self.dim(name), index)

    # ------------------------------------------- Construction -------------------------------------------

    def insert_axis(self, axis: Axis, position: int, data: Optional[torch.Tensor] = None,
                    dtype: Optional[torch.dtype] = None) -> "LabeledArray":
        """
        New array with ``axis`` inserted before dimension ``position``.

        If ``data`` is None a zero tensor of ``dtype`` (default: the input
        dtype) is allocated.
        """
        if self.has_axis(axis.name):
            raise ValueError(f"Array already has an axis named '{axis.name}'")
        axes = list(self.axes)
        axes.insert(position, axis)
        if data is None:
            shape = [len(ax) for ax in axes]
            data = torch.zeros(shape, dtype=dtype or self.dtype, device=self.data.device)
        return LabeledArray(data, axes)

    def remove_axes(self, *names: str, data: torch.Tensor) -> "LabeledArray":
        """New array without the named axes (and their bounds) wrapping ``data``."""
        for name in names:
            self.axis(name)
        axes = [ax for ax in self.axes if ax.name not in names]
        return LabeledArray(data, axes)

    def __repr__(self) -> str:
        dims = ", ".join(f"{name}={self.size(name)}" for name in self._order)
        return f"LabeledArray({dims}, dtype={self.dtype})"


def spectrogram(data: torch.Tensor,
                time_step: float,
                freqs=None,
                spect_rate: int = 24,
                fmin: float = 90.0) -> LabeledArray:
    """
    Wrap a ``[time, freq]`` tensor as a labeled spectrogram.

    Parameters
    ----------
    data : torch.Tensor
        Spectrogram, shape ``(T, F)``.

    time_step : float
        Frame spacing in seconds.

    freqs : array-like, optional
        Center frequencies in Hz. If None, log-spaced ticks
        ``fmin * 2**(k / spect_rate)`` are generated.

    spect_rate : int, optional
        Channels per octave used when generating ``freqs``. Default: 24.

    fmin : float, optional
        Lowest generated frequency in Hz. Default: 90.0.

    Returns
    -------
    LabeledArray
        Array with axes ``('time', 'freq')``.
    """
    if data.ndim != 2:
        raise ValueError(f"Spectrogram must be 2D (time, freq), got shape {tuple(data.shape)}")
    if not math.isfinite(time_step) or time_step <= 0:
        raise ValueError(f"time_step must be positive, got {time_step}")

    n_time, n_freq = data.shape
    times = np.arange(n_time) * time_step
    if freqs is None:
        freqs = fmin * 2.0 ** (np.arange(n_freq) / spect_rate)

    return LabeledArray(data, [Axis('time', times), Axis('freq', freqs)])
