"""Device Compatibility Test Suite for the cortical filterbanks

This test suite verifies that the cortical filterbank modules work correctly
across the available devices (CPU, CUDA).

Contents:
- 4 nn.Module classes: RateFilterbank, ScaleFilterbank, ScaleRateFilterbank, InverseCorticalFilterbank
- 1 model: Chi2005

Test structure:
- Initialization with default/custom parameters
- Forward decomposition on device
- Inverse reconstruction on device
- Module repr and buffer inspection
- Timing measurements

Usage:
    # pytest execution
    pytest test_device_cortical.py -v

    # pytest execution on specific device
    pytest test_device_cortical.py -v -k "cpu"
"""

import time
from typing import List

import pytest
import torch

from torch_cortical.common.axes import LabeledArray, spectrogram


# ================================================================================================
# Device Detection
# ================================================================================================

def get_available_devices() -> List[str]:
    """Detect PyTorch devices with complex FFT support.

    Returns
    -------
    list of str
        ``['cpu']`` or ``['cpu', 'cuda']``
    """
    devices = ['cpu']

    if torch.cuda.is_available():
        devices.append('cuda')

    return devices


# ================================================================================================
# Test Data Factories
# ================================================================================================

def create_test_spectrogram(device: str, n_time: int = 128, n_freq: int = 64,
                            time_step: float = 0.01) -> LabeledArray:
    """Create a labeled, non-negative test spectrogram on ``device``.

    Parameters
    ----------
    device : str
        Target device ('cpu', 'cuda')
    n_time : int
        Number of frames
    n_freq : int
        Number of frequency channels
    time_step : float
        Frame spacing in seconds

    Returns
    -------
    LabeledArray
        Spectrogram with axes ('time', 'freq')
    """
    data = torch.rand(n_time, n_freq, device=device)
    return spectrogram(data, time_step=time_step)


def time_call(module, *args, device='cpu', n_runs=3):
    """Average wall time of ``module(*args)`` in milliseconds."""
    times = []
    with torch.no_grad():
        for _ in range(n_runs):
            if device == 'cuda':
                torch.cuda.synchronize()
            start = time.time()
            _ = module(*args)
            if device == 'cuda':
                torch.cuda.synchronize()
            times.append((time.time() - start) * 1000)
    return sum(times) / len(times)


# ================================================================================================
# Test: RateFilterbank
# ================================================================================================

@pytest.mark.parametrize("device", get_available_devices())
def test_rate_filterbank(device):
    """Test RateFilterbank forward/inverse on specified device."""
    from torch_cortical.common.cortical import RateFilterbank

    print(f"\n{'='*80}")
    print(f"TEST: RateFilterbank - Device: {device.upper()}")
    print(f"{'='*80}\n")

    fb = RateFilterbank([-8, -2, 2, 8]).to(device)
    print(f"✓ Initialization successful")
    print(f"  Module: {fb}")

    assert fb.rates.device.type == device
    assert fb.num_channels == 4
    assert fb.axisnames == ('rate',)

    x = create_test_spectrogram(device)
    avg_time = time_call(fb, x, device=device)
    cr = fb(x)

    assert cr.shape == (128, 4, 64)
    assert cr.data.device.type == device
    assert cr.dtype == torch.complex64
    print(f"✓ Forward: {tuple(x.shape)} -> {tuple(cr.shape)} ({avg_time:.3f} ms avg)")

    y = fb.inverse()(cr)
    assert y.shape == (128, 64)
    assert y.data.device.type == device
    assert (y.data >= 0).all()
    print(f"✓ Inverse: {tuple(cr.shape)} -> {tuple(y.shape)}")


# ================================================================================================
# Test: ScaleFilterbank
# ================================================================================================

@pytest.mark.parametrize("device", get_available_devices())
def test_scale_filterbank(device):
    """Test ScaleFilterbank forward/inverse on specified device."""
    from torch_cortical.common.cortical import ScaleFilterbank

    print(f"\n{'='*80}")
    print(f"TEST: ScaleFilterbank - Device: {device.upper()}")
    print(f"{'='*80}\n")

    fb = ScaleFilterbank([0.5, 1, 2, 4], bandonly=False).to(device)
    print(f"  Module: {fb}")
    assert 'spect_rate=24' in fb.extra_repr()

    x = create_test_spectrogram(device)
    cs = fb(x)

    assert cs.shape == (128, 4, 64)
    assert cs.data.device.type == device

    y = fb.inverse(norm=0.95)(cs)
    assert y.shape == (128, 64)
    assert (y.data >= 0).all()
    print(f"✓ Forward/inverse: {tuple(x.shape)} -> {tuple(cs.shape)} -> {tuple(y.shape)}")


# ================================================================================================
# Test: ScaleRateFilterbank
# ================================================================================================

@pytest.mark.parametrize("device", get_available_devices())
@pytest.mark.parametrize("bandonly", [True, False])
def test_scale_rate_filterbank(device, bandonly):
    """Test joint scale x rate filterbank on specified device."""
    from torch_cortical.common.cortical import ScaleRateFilterbank
    from torch_cortical.common.filterbanks import cortical

    print(f"\n{'='*80}")
    print(f"TEST: ScaleRateFilterbank - Device: {device.upper()}, bandonly: {bandonly}")
    print(f"{'='*80}\n")

    fb = ScaleRateFilterbank(cortical([0.5, 2], [-4, -1, 1, 4], bandonly=bandonly)).to(device)
    print(f"  Module: {fb}")
    assert fb.num_channels == 8
    assert fb.scales.device.type == device

    x = create_test_spectrogram(device)
    avg_time = time_call(fb, x, device=device)
    cr = fb(x)

    assert cr.shape == (128, 2, 4, 64)
    assert cr.data.is_complex()
    print(f"✓ Forward: {tuple(x.shape)} -> {tuple(cr.shape)} ({avg_time:.3f} ms avg)")

    inv = fb.inverse()
    print(f"  Inverse module: {inv}")
    y = inv(cr)
    assert y.shape == (128, 64)
    assert not y.data.is_complex()
    assert (y.data >= 0).all()
    assert torch.isfinite(y.data).all()


# ================================================================================================
# Test: Chi2005 model
# ================================================================================================

@pytest.mark.parametrize("device", get_available_devices())
def test_chi2005(device):
    """Test the end-to-end model on specified device."""
    from torch_cortical.models.chi2005 import Chi2005

    print(f"\n{'='*80}")
    print(f"TEST: Chi2005 - Device: {device.upper()}")
    print(f"{'='*80}\n")

    model = Chi2005(time_step=0.01, scales=[0.5, 1, 2], rates=[-8, -2, 2, 8]).to(device)
    print(f"  Model: {model}")

    x = torch.rand(64, 48, device=device)
    cr = model(x)
    assert cr.shape == (64, 3, 4, 48)
    assert cr.data.device.type == device

    y = model.inverse(cr)
    assert y.shape == (64, 48)
    assert y.data.device.type == device
    assert (y.data >= 0).all()
    print(f"✓ Forward/inverse: {tuple(x.shape)} -> {tuple(cr.shape)} -> {tuple(y.shape)}")


def test_progress_bar(capsys):
    """Progress reporting is optional and does not change results."""
    from torch_cortical.common.cortical import ScaleRateFilterbank
    from torch_cortical.common.filterbanks import cortical

    x = create_test_spectrogram('cpu', n_time=32, n_freq=24)
    spec = cortical([0.5, 2], [-4, 4])

    quiet = ScaleRateFilterbank(spec)(x)
    loud = ScaleRateFilterbank(spec, progress=True)(x)

    assert torch.equal(quiet.data, loud.data)
