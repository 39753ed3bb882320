"""
FFT Filtering Engines
=====================

Author:
    Stefano Giacomelli - Ph.D. candidate @ DISIM dpt. - University of L'Aquila

License:
    GNU General Public License v3.0 or later (GPLv3+)

Frequency-domain engines behind the cortical filterbanks.

**FIRFiltering** (forward):
    The input is zero-padded along the filtered axes to ``2 * nextprod(n)``
    points and transformed once. Each channel is then a multiplication by its
    transfer function followed by an inverse FFT, so one forward transform is
    shared by every channel of a bank.

**FFTCum** (inverse):
    Channel reconstructions are transformed and accumulated together with
    their filter energies:

    .. math::
        Z_{\\text{cum}} = \\sum_k H_k \\, \\mathcal{F}\\{y_k\\}, \\qquad
        H_{\\text{cum}} = \\sum_k |H_k|^2

    and the spectrogram is recovered as
    ``max(2 Re F^-1{Z_cum / H_cum}, 0)`` after regularising ``H_cum``.
    The accumulator is a two-state machine (accumulating, finalized):
    :meth:`FFTCum.finalize` may be called exactly once and no accumulation is
    accepted afterwards.

Both engines are created per call and discarded afterwards.
"""

import warnings
from typing import Dict, Sequence

import torch

from torch_cortical.common.axes import LabeledArray
from torch_cortical.common.filters import fft_length, pad


def _complex_dtype(dtype: torch.dtype) -> torch.dtype:
    return torch.promote_types(dtype, torch.complex64)


def _along(H: torch.Tensor, dim: int, ndim: int) -> torch.Tensor:
    shape = [1] * ndim
    shape[dim] = -1
    return H.reshape(shape)


class FIRFiltering:
    """
    Forward FIR-via-FFT filtering of a labeled array along named axes.

    Parameters
    ----------
    x : LabeledArray
        Input array (real or complex).

    axes : sequence of str
        Axes to filter (e.g. ``('time',)``, ``('freq',)`` or both).

    Attributes
    ----------
    Y : torch.Tensor
        Transformed, padded input.

    lengths : dict
        Padded FFT length per filtered axis.
    """

    def __init__(self, x: LabeledArray, axes: Sequence[str]):
        self.axes = tuple(axes)
        self.dims: Dict[str, int] = {name: x.dim(name) for name in self.axes}
        self.lengths: Dict[str, int] = {name: fft_length(x.size(name)) for name in self.axes}
        self.input_shape = tuple(x.shape)

        shape = list(x.shape)
        for name in self.axes:
            shape[self.dims[name]] = self.lengths[name]

        data = x.data.to(_complex_dtype(x.dtype))
        self._fft_dims = tuple(self.dims[name] for name in self.axes)
        self.Y = torch.fft.fftn(pad(data, shape), dim=self._fft_dims)

    @property
    def ndim(self) -> int:
        return self.Y.ndim

    @property
    def dtype(self) -> torch.dtype:
        return self.Y.dtype

    def fft_length(self, name: str) -> int:
        if name not in self.lengths:
            raise ValueError(f"Axis '{name}' is not filtered by this engine (filtered: {self.axes})")
        return self.lengths[name]

    def along(self, H: torch.Tensor, name: str) -> torch.Tensor:
        """Reshape a 1-D response so that it broadcasts along axis ``name``."""
        if H.numel() != self.fft_length(name):
            raise ValueError(f"Response has {H.numel()} bins, axis '{name}' expects {self.fft_length(name)}")
        return _along(H.to(device=self.Y.device, dtype=self.dtype), self.dims[name], self.ndim)

    def apply(self, H: torch.Tensor) -> torch.Tensor:
        """Filter by ``H`` and return the full (padded) inverse transform."""
        return torch.fft.ifftn(self.Y * H, dim=self._fft_dims)

    def crop(self, z: torch.Tensor) -> torch.Tensor:
        """Keep the original index window of a padded result."""
        return z[tuple(slice(0, n) for n in self.input_shape)]


class FFTCum:
    """
    Frequency-domain accumulator for the inverse cortical transform.

    The grid is ``(2 * nextprod(T), 2 * nextprod(F))`` for a ``T x F``
    spectrogram, so that rate and scale responses generated for this grid
    match the ones used by the forward transform.

    Parameters
    ----------
    x : LabeledArray
        Decomposed array. ``time`` must be the first and ``freq`` the last axis.

    Examples
    --------
    >>> acc = FFTCum(cr)
    >>> for index, H in filters:
    ...     acc.accumulate(cr.data[:, index[0], :], H)
    >>> spec = acc.finalize(cr.data[:, 0, :], norm=0.9)
    """

    def __init__(self, x: LabeledArray):
        if x.dim('time') != 0 or x.dim('freq') != x.ndim - 1:
            raise ValueError(f"Expected 'time' as first and 'freq' as last axis, got {x.axisnames}")

        self.ntimes = x.size('time')
        self.nfrequencies = x.size('freq')
        self.lengths = {'time': fft_length(self.ntimes), 'freq': fft_length(self.nfrequencies)}
        shape = (self.lengths['time'], self.lengths['freq'])

        dtype = _complex_dtype(x.dtype)
        device = x.data.device
        self.z = torch.zeros(shape, dtype=dtype, device=device)
        self.z_cum = torch.zeros(shape, dtype=dtype, device=device)
        self.h_cum = torch.zeros(shape, dtype=self.z.real.dtype, device=device)
        self.count = 0
        self.finalized = False

    @property
    def ndim(self) -> int:
        return 2

    @property
    def dtype(self) -> torch.dtype:
        return self.z.dtype

    def fft_length(self, name: str) -> int:
        if name not in self.lengths:
            raise ValueError(f"FFTCum grid has no axis '{name}'")
        return self.lengths[name]

    def along(self, H: torch.Tensor, name: str) -> torch.Tensor:
        if H.numel() != self.fft_length(name):
            raise ValueError(f"Response has {H.numel()} bins, axis '{name}' expects {self.fft_length(name)}")
        dim = 0 if name == 'time' else 1
        return _along(H.to(device=self.z.device, dtype=self.dtype), dim, 2)

    def accumulate(self, cr: torch.Tensor, h: torch.Tensor) -> "FFTCum":
        """
        Add one channel reconstruction ``cr`` (``T x F``) filtered by ``h``.

        ``h`` must broadcast to the accumulator grid. The order of calls does
        not matter.
        """
        if self.finalized:
            raise RuntimeError("FFTCum has been finalized; create a new accumulator")
        if tuple(cr.shape) != (self.ntimes, self.nfrequencies):
            raise ValueError(f"Channel slice has shape {tuple(cr.shape)}, accumulator expects "
                             f"{(self.ntimes, self.nfrequencies)}")

        self.z[:self.ntimes, :self.nfrequencies] = cr
        Z = torch.fft.fft2(self.z)
        self.h_cum += torch.abs(h) ** 2
        self.z_cum += h * Z
        self.count += 1

        return self

    def finalize(self, cr: torch.Tensor, norm: float) -> torch.Tensor:
        """
        Normalise the accumulated response and return the spectrogram.

        Parameters
        ----------
        cr : torch.Tensor
            Reference slice (``T x F``); only its extent is used.

        norm : float
            Energy-weighting blend in ``[0, 1]``.

        Returns
        -------
        torch.Tensor
            Real, non-negative spectrogram of shape ``(T, F)``.
        """
        if self.finalized:
            raise RuntimeError("FFTCum.finalize() can only be called once")
        if self.count == 0:
            raise RuntimeError("Nothing was accumulated")
        if not 0.0 <= norm <= 1.0:
            raise ValueError(f"norm must lie in [0, 1], got {norm}")
        if tuple(cr.shape[-1:]) != (self.nfrequencies,):
            raise ValueError(f"Reference slice has {cr.shape[-1]} frequencies, expected {self.nfrequencies}")
        self.finalized = True

        last = self.nfrequencies - 1
        h_cum = self.h_cum
        h_cum[:, 0] *= 2
        old_sum = h_cum[:, last].sum()
        if old_sum == 0:
            warnings.warn(f"No filter energy at the highest frequency channel ({last}); the "
                          f"reconstruction cannot be normalised and will be all zeros")
        h_cum = norm * h_cum + (1 - norm) * h_cum.max()
        h_cum = h_cum * (old_sum / h_cum[:, last].sum())

        weighted = torch.where(h_cum > 0, self.z_cum / h_cum, torch.zeros_like(self.z_cum))

        spect = torch.fft.ifft2(weighted)[:self.ntimes, :self.nfrequencies]
        return torch.clamp(2 * spect.real, min=0)
