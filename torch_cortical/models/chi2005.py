"""
Chi2005 Cortical Model
======================

Author:
    Stefano Giacomelli - Ph.D. candidate @ DISIM dpt. - University of L'Aquila

License:
    GNU General Public License v3.0 or later (GPLv3+)

This module implements the cortical stage of the Chi, Ru and Shamma (2005)
multiresolution spectrotemporal model. An auditory spectrogram is decomposed
into a bank of spectrotemporal receptive fields tuned to temporal modulation
rates (Hz, signed for sweep direction) and spectral modulation scales
(cycles/octave), and can be approximately reconstructed from that
representation.

References
----------
.. [1] T. Chi, P. Ru, and S. A. Shamma, "Multiresolution spectrotemporal
       analysis of complex sounds," *J. Acoust. Soc. Am.*, vol. 118, no. 2,
       pp. 887-906, 2005.

.. [2] X. Yang, K. Wang, and S. A. Shamma, "Auditory representations of
       acoustic signals," *IEEE Trans. Inf. Theory*, vol. 38, no. 2,
       pp. 824-839, 1992.
"""

from typing import Any, Dict, Optional, Sequence, Tuple, Union

import torch
import torch.nn as nn

from torch_cortical.common.axes import LabeledArray, spectrogram
from torch_cortical.common.cortical import InverseCorticalFilterbank, ScaleFilterbank, ScaleRateFilterbank
from torch_cortical.common.filterbanks import (DEFAULT_RATES, DEFAULT_SCALES, DEFAULT_SPECT_RATE,
                                               cortical)


class Chi2005(nn.Module):
    r"""
    Chi et al. (2005) cortical (scale x rate) model.

    Maps an auditory spectrogram :math:`y(t, x)` (time x log-frequency) to the
    complex cortical representation

    .. math::
        r(t, s, \omega, x) = \mathcal{F}^{-1}\left\{
            Y(\omega', \Omega') \, H_\omega(\omega') \, \overline{H_s(\Omega')}
        \right\}

    where :math:`H_\omega` are the rate filters and :math:`H_s` the scale
    filters of :mod:`torch_cortical.common.filters`.

    Parameters
    ----------
    time_step : float
        Spectrogram frame spacing in seconds (used when the input is a plain
        tensor).

    scales : sequence of float, optional
        Scales in cycles/octave. Default: ``DEFAULT_SCALES`` (0.25-8, half-octave steps).

    rates : sequence of float, optional
        Signed rates in Hz. Default: ``DEFAULT_RATES`` (+/-2 to +/-32 Hz, half-octave steps).

    bandonly : bool, optional
        All channels band-pass. Default: ``True``.

    spect_rate : float, optional
        Frequency-axis samples per octave. Default: 24.

    norm : float, optional
        Regularisation used by :meth:`inverse`. Default: 0.9.

    return_stages : bool, optional
        If True, ``forward`` also returns a dict with the labeled input
        (``'spectrogram'``) and the scale-only decomposition (``'scale'``).
        Default: ``False``.

    progress : bool, optional
        Show ``tqdm`` progress bars. Default: ``False``.

    Shape
    -----
    - Input: ``(T, F)`` tensor or labeled ``time``/``freq`` array
    - Output: ``(T, S, R, F)`` complex labeled array

    Examples
    --------
    >>> import torch
    >>> from torch_cortical import Chi2005
    >>> model = Chi2005(time_step=0.01, scales=[0.5, 2], rates=[-4, -1, 1, 4])
    >>> cr = model(torch.rand(128, 64))
    >>> cr.shape
    torch.Size([128, 2, 4, 64])
    >>> model.inverse(cr).shape
    torch.Size([128, 64])
    """

    def __init__(self,
                 time_step: float,
                 scales: Sequence[float] = DEFAULT_SCALES,
                 rates: Sequence[float] = DEFAULT_RATES,
                 bandonly: bool = True,
                 spect_rate: float = DEFAULT_SPECT_RATE,
                 norm: float = 0.9,
                 return_stages: bool = False,
                 progress: bool = False):
        super().__init__()

        self.time_step = time_step
        self.spect_rate = spect_rate
        self.norm = norm
        self.return_stages = return_stages
        self.progress = progress

        self.spec = cortical(scales, rates, bandonly=bandonly, spect_rate=spect_rate)
        self.filterbank = ScaleRateFilterbank(self.spec, progress=progress)
        self.inverse_filterbank = InverseCorticalFilterbank(self.spec, norm=norm, progress=progress)

    @property
    def num_scales(self) -> int:
        return len(self.spec.scales)

    @property
    def num_rates(self) -> int:
        return len(self.spec.rates)

    def _as_spectrogram(self, x: Union[torch.Tensor, LabeledArray]) -> LabeledArray:
        if isinstance(x, LabeledArray):
            return x
        return spectrogram(x, self.time_step, spect_rate=self.spect_rate)

    def forward(self, x: Union[torch.Tensor, LabeledArray]) -> Union[LabeledArray, Tuple[LabeledArray, Dict[str, Any]]]:
        """
        Compute the cortical representation.

        Parameters
        ----------
        x : torch.Tensor or LabeledArray
            Spectrogram, shape ``(T, F)``.

        Returns
        -------
        LabeledArray or tuple
            Cortical representation ``(T, S, R, F)``; with ``return_stages``
            a ``(output, stages)`` tuple.
        """
        x = self._as_spectrogram(x)
        output = self.filterbank(x)

        if self.return_stages:
            stages = {'spectrogram': x,
                      'scale': ScaleFilterbank(self.spec.scales, progress=self.progress)(x)}
            return output, stages
        return output

    def inverse(self, cr: LabeledArray, norm: Optional[float] = None) -> LabeledArray:
        """
        Reconstruct the spectrogram from a cortical representation.

        Parameters
        ----------
        cr : LabeledArray
            Output of :meth:`forward`.

        norm : float, optional
            Override the model's regularisation.

        Returns
        -------
        LabeledArray
            Real, non-negative ``(T, F)`` spectrogram.
        """
        if norm is None:
            return self.inverse_filterbank(cr)
        return InverseCorticalFilterbank(self.spec, norm=norm, progress=self.progress)(cr)

    def extra_repr(self) -> str:
        return (f"time_step={self.time_step}, num_scales={self.num_scales}, num_rates={self.num_rates}, "
                f"spect_rate={self.spect_rate}, norm={self.norm}")
