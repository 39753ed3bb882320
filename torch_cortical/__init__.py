"""
torch_cortical: PyTorch Cortical Spectrotemporal Model
======================================================

A PyTorch implementation of the cortical (spectrotemporal) stage of auditory
models: a time-frequency spectrogram is decomposed into channels tuned to
temporal modulation rates (Hz, signed for sweep direction) and spectral
modulation scales (cycles/octave), and can be reconstructed from them.

**Key Features:**
    - FFT-based filtering: one transform shared by every channel of a bank
    - Rate, scale and joint scale x rate decompositions with named output axes
    - Energy-weighted inverse with adjustable regularisation
    - Hardware-accelerated with PyTorch (CUDA, MPS, CPU)

**Quick Start:**

    >>> import torch
    >>> import torch_cortical
    >>>
    >>> # End-to-end model
    >>> model = torch_cortical.Chi2005(time_step=0.01, scales=[0.5, 2], rates=[-4, -1, 1, 4])
    >>> cr = model(torch.rand(128, 64))          # (time, scale, rate, freq)
    >>> spect = model.inverse(cr)                # (time, freq)
    >>>
    >>> # Or build specifications explicitly
    >>> spec = torch_cortical.cortical([0.5, 2], [-4, -1, 1, 4], bandonly=False)
    >>> x = torch_cortical.spectrogram(torch.rand(128, 64), time_step=0.01)
    >>> cr = torch_cortical.filt(spec, x)
    >>> spect = torch_cortical.filt(torch_cortical.inverse(spec, norm=0.9), cr)

**Package Structure:**

    torch_cortical/
    ├── models/             # Complete end-to-end models
    │   └── Chi2005                 - Cortical scale x rate model
    │
    └── common/             # Reusable building blocks
        ├── axes.py                 - Labeled arrays (named axes, ticks, bounds)
        ├── filters.py              - Rate/scale filter shapes
        ├── filterbanks.py          - Filter specifications and banks
        ├── fftfilt.py              - FFT filtering and inverse accumulation
        └── cortical.py             - Forward/inverse filterbank modules

**Author:**
    Stefano Giacomelli - Ph.D. candidate @ DISIM dpt. - University of L'Aquila

**License:**
    GNU General Public License v3.0 or later (GPLv3+)

**References:**
    - T. Chi, P. Ru, and S. A. Shamma, "Multiresolution spectrotemporal
      analysis of complex sounds," J. Acoust. Soc. Am., 118(2), 2005.
"""

# ============================================================================
# Package Metadata
# ============================================================================

__version__ = "0.1.0"
__author__ = "Stefano Giacomelli"
__email__ = "stefano.giacomelli@graduate.univaq.it"
__license__ = "GPL-3.0-or-later"
__description__ = "PyTorch cortical spectrotemporal model - rate/scale decomposition of spectrograms"

# ============================================================================
# Public API - End-to-End Models
# ============================================================================

from torch_cortical.models.chi2005 import Chi2005

# ============================================================================
# Public API - Common Building Blocks
# ============================================================================

# --- Labeled arrays ---
from torch_cortical.common.axes import (
    Axis,                               # Named axis with ticks and bounds
    AxisBounds,                         # Low/high filter-kind thresholds
    LabeledArray,                       # Tensor + named axes
    spectrogram,                        # Wrap a (time, freq) tensor
)

# --- Filter shapes ---
from torch_cortical.common.filters import (
    rate_filter,                        # Temporal modulation transfer function
    scale_filter,                       # Spectral modulation transfer function
    askind,                             # Band -> low/high reshaping
)

# --- Specifications & filter banks ---
from torch_cortical.common.filterbanks import (
    DEFAULT_RATES,                      # +/-2..32 Hz, half-octave steps
    DEFAULT_SCALES,                     # 0.25..8 cyc/oct, half-octave steps
    DEFAULT_SPECT_RATE,                 # 24 channels per octave
    ratefilter,                         # Rate specification
    scalefilter,                        # Scale specification
    cortical,                           # Composed scale x rate specification
    inverse,                            # Inverse specification
    rates,                              # Rate ticks of a decomposed array
    scales,                             # Scale ticks of a decomposed array
    nrates,
    nscales,
)

# --- Modules ---
from torch_cortical.common.cortical import (
    RateFilterbank,                     # Rate decomposition
    ScaleFilterbank,                    # Scale decomposition
    ScaleRateFilterbank,                # Joint scale x rate decomposition
    InverseCorticalFilterbank,          # Inverse of any of the above
    filt,                               # Apply a specification / inverse
)

# ============================================================================
# Package-Level Exports
# ============================================================================

__all__ = [
    # Models
    "Chi2005",

    # Labeled arrays
    "Axis",
    "AxisBounds",
    "LabeledArray",
    "spectrogram",

    # Filter shapes
    "rate_filter",
    "scale_filter",
    "askind",

    # Specifications
    "DEFAULT_RATES",
    "DEFAULT_SCALES",
    "DEFAULT_SPECT_RATE",
    "ratefilter",
    "scalefilter",
    "cortical",
    "inverse",
    "rates",
    "scales",
    "nrates",
    "nscales",

    # Modules
    "RateFilterbank",
    "ScaleFilterbank",
    "ScaleRateFilterbank",
    "InverseCorticalFilterbank",
    "filt",
]

models = {
    'Chi2005': Chi2005,
}

filterbanks = {
    'RateFilterbank': RateFilterbank,
    'ScaleFilterbank': ScaleFilterbank,
    'ScaleRateFilterbank': ScaleRateFilterbank,
    'InverseCorticalFilterbank': InverseCorticalFilterbank,
}
