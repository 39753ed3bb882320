"""
Cortical Filter Shapes
======================

Author:
    Stefano Giacomelli - Ph.D. candidate @ DISIM dpt. - University of L'Aquila

License:
    GNU General Public License v3.0 or later (GPLv3+)

Transfer functions of the spectrotemporal receptive fields used by the
cortical model, plus the small padding/FFT-size utilities they rely on.

Contents
--------

**Filter Shapes:**
    - `rate_filter`: Temporal modulation (rate) transfer function, signed rates
    - `scale_filter`: Spectral modulation (scale) transfer function
    - `askind`: Turn a band-pass response into a low- or high-pass one

**Utilities:**
    - `nextprod`: Smallest integer >= n with only the given prime factors
    - `fft_length`: Padded FFT length used along a filtered axis
    - `pad`: Zero-pad a tensor to a larger shape

Design Philosophy
-----------------
- Filters are synthesised in float64 and returned as ``complex128``/``float64``
  tensors; callers cast to the working dtype.
- Every filter covers the positive half of a ``2 * length`` FFT grid. Negative
  rates occupy the negative half (Hermitian mirror of the positive rate).

References
----------
.. [1] T. Chi, P. Ru, and S. A. Shamma, "Multiresolution spectrotemporal
       analysis of complex sounds," *J. Acoust. Soc. Am.*, vol. 118, no. 2,
       pp. 887-906, 2005.
"""

import math
from typing import Sequence, Tuple, Union

import torch

FILTER_KINDS = ('low', 'band', 'high')

# -------------------------------------------------- Utilities ----------------------------------------------------

def nextprod(n: int, factors: Sequence[int] = (2, 3, 5)) -> int:
    """
    Smallest integer ``>= n`` whose prime factors all belong to ``factors``.

    Parameters
    ----------
    n : int
        Lower bound (must be positive).

    factors : sequence of int, optional
        Allowed factors. Default: ``(2, 3, 5)``.

    Returns
    -------
    int
        Next "smooth" length, e.g. ``nextprod(7) == 8``, ``nextprod(11) == 12``.
    """
    if n < 1:
        raise ValueError(f"n must be positive, got {n}")
    candidate = n
    while True:
        m = candidate
        for p in factors:
            while m % p == 0:
                m //= p
        if m == 1:
            return candidate
        candidate += 1


def fft_length(n: int) -> int:
    """
    Padded FFT length for filtering an axis of extent ``n``.

    Always even and ``>= 2n`` so that the filter grid splits into two halves of
    ``nextprod(n)`` bins each, and linear convolution does not wrap.
    """
    return 2 * nextprod(n)


def pad(x: torch.Tensor, shape: Sequence[int]) -> torch.Tensor:
    """
    Zero-pad ``x`` at the end of each dimension up to ``shape``.

    Raises
    ------
    ValueError
        If any dimension of ``x`` is larger than the requested size.
    """
    shape = tuple(shape)
    if len(shape) != x.ndim or any(s < n for s, n in zip(shape, x.shape)):
        raise ValueError(f"Cannot pad tensor of shape {tuple(x.shape)} to {shape}")
    y = torch.zeros(shape, dtype=x.dtype, device=x.device)
    y[tuple(slice(0, n) for n in x.shape)] = x
    return y

# ------------------------------------------------ Filter Shapes --------------------------------------------------

def askind(H: torch.Tensor, length: int, peak_index: int, kind: str, skip_normalization: bool) -> torch.Tensor:
    r"""
    Reshape a band-pass magnitude response into the requested filter kind.

    - ``'band'``: returned unchanged.
    - ``'low'``: bins below the peak are set to 1 (flat shelf down to DC).
    - ``'high'``: bins above the peak (up to ``length``) are set to 1.

    Unless ``skip_normalization`` is set, the result is rescaled so that its
    sum equals the sum of the unmodified response:

    .. math::
        H' \leftarrow H' \cdot \frac{\sum H}{\sum H'}

    Parameters
    ----------
    H : torch.Tensor
        Real magnitude response, shape ``(length,)``. Not modified.

    length : int
        Number of bins considered.

    peak_index : int
        Index of the response maximum (0-based).

    kind : str
        ``'low'``, ``'band'`` or ``'high'``.

    skip_normalization : bool
        Skip the sum-preserving rescale.

    Returns
    -------
    torch.Tensor
        Reshaped response.
    """
    if kind == 'band':
        return H
    if kind not in FILTER_KINDS:
        raise ValueError(f"Unexpected filter kind '{kind}'. Choose from: {FILTER_KINDS}")

    old_sum = H.sum()
    H = H.clone()
    if kind == 'low':
        H[:peak_index] = 1
    else:
        H[peak_index + 1:length] = 1

    if not skip_normalization:
        H = H / H.sum() * old_sum

    return H


def rate_filter(rate: float,
                length: int,
                dt: float,
                kind: str,
                conjugate: bool = False,
                return_partial: bool = False) -> Union[torch.Tensor, Tuple[torch.Tensor, torch.Tensor]]:
    r"""
    Temporal-rate transfer function (filter along the time axis).

    The time-domain kernel is a gamma-modulated sinusoid

    .. math::
        h[n] = \sin(2\pi t)\, t^2 e^{-3.5 t}, \qquad t = n \cdot \Delta t \cdot |r|

    with its mean removed (zero DC). Its ``2 * length`` point FFT is truncated
    to the first ``length`` bins, the magnitude is normalised to a unit peak
    and reshaped by :func:`askind` (without sum normalisation), then the phase
    is restored.

    Positive rates are zero-padded to ``2 * length`` bins (upward sweeps live
    on positive temporal frequencies). Negative rates are the Hermitian mirror
    of the positive-rate filter:

    .. math::
        H_{-r}[k] = \overline{H_{r}[2L - k]}, \qquad k = 1, \ldots, 2L - 1

    with the Nyquist bin set to the magnitude of its upper neighbour.

    Parameters
    ----------
    rate : float
        Signed modulation rate in Hz.

    length : int
        Number of one-sided bins ``L``; output has ``2L`` bins.

    dt : float
        Time step of the spectrogram frames in seconds.

    kind : str
        ``'low'``, ``'band'`` or ``'high'``.

    conjugate : bool, optional
        Conjugate the response before padding/mirroring (used by the inverse).
        Default: ``False``.

    return_partial : bool, optional
        Also return the time-domain kernel ``h``. Default: ``False``.

    Returns
    -------
    torch.Tensor or tuple
        Complex response of shape ``(2L,)``, or ``(H, h)`` when
        ``return_partial`` is set.
    """
    if kind not in FILTER_KINDS:
        raise ValueError(f"Unexpected filter kind '{kind}'. Choose from: {FILTER_KINDS}")

    t = torch.arange(length, dtype=torch.float64) * dt * abs(rate)
    h = torch.sin(2 * math.pi * t) * t ** 2 * torch.exp(-3.5 * t)
    h = h - h.mean()

    H0 = torch.fft.fft(h, n=2 * length)[:length]
    A = torch.angle(H0)
    H = torch.abs(H0)

    maxi = int(torch.argmax(H))
    H = H / H[maxi]
    HR = askind(H, length, maxi, kind, True) * torch.exp(1j * A)

    if conjugate:
        HR = torch.conj(HR)

    HR = pad(HR, (2 * length,))
    if rate < 0:
        HR[1:] = torch.conj(torch.flip(HR[1:], dims=(0,)))
        HR[length] = torch.abs(HR[length + 1])

    if return_partial:
        return HR, h
    return HR


def scale_filter(scale: float, length: int, spect_rate: float, kind: str) -> torch.Tensor:
    r"""
    Frequency-scale transfer function (filter along the spectral axis).

    .. math::
        H[k] = f_k^2 e^{1 - f_k^2}, \qquad
        f_k = \frac{k}{L} \cdot \frac{\text{spect\_rate}}{2 |s|}

    The response is real, peaks at ``f = 1`` and is reshaped by :func:`askind`
    with sum normalisation.

    Parameters
    ----------
    scale : float
        Spectral modulation in cycles/octave.

    length : int
        Number of one-sided bins ``L``.

    spect_rate : float
        Frequency-axis samples per octave.

    kind : str
        ``'low'``, ``'band'`` or ``'high'``.

    Returns
    -------
    torch.Tensor
        Real response (float64) of shape ``(L,)``.
    """
    if kind not in FILTER_KINDS:
        raise ValueError(f"Unexpected filter kind '{kind}'. Choose from: {FILTER_KINDS}")

    f2 = (torch.arange(length, dtype=torch.float64) / length * spect_rate / 2 / abs(scale)) ** 2
    H = f2 * torch.exp(1 - f2)

    return askind(H, length, int(torch.argmax(H)), kind, False)
