"""
Cortical Decomposition & Reconstruction - Test Suite

Contents:
1. test_end_to_end_shapes: [128, 64] -> [128, 2, 4, 64] -> [128, 64]
2. test_output_axes: inserted axes carry channel ticks (spec order) and bounds
3. test_single_axis_shapes: rate-only and scale-only decompositions and inverses
4. test_axis_collision: existing output axis names are rejected
5. test_nested_decomposition: renamed axes allow decomposing a decomposition
6. test_missing_axes: time and freq axes are required
7. test_partial_inverse: inverting fewer axes than present is rejected
8. test_round_trip: reconstruction correlates with the original spectrogram
9. test_zero_energy_reference_warns: unnormalisable reconstructions are reported
10. test_insert_axis: axis insertion used by the forward drivers
11. test_chi2005_model: end-to-end model wrapper
12. test_chi2005_annotations / test_public_api_lives_at_package_root: API surface

Figures generated:
- cortical_round_trip.png: original vs reconstructed spectrogram
"""

import math
import typing
from pathlib import Path

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np
import pytest
import torch
from scipy.stats import pearsonr

from torch_cortical import (Axis, Chi2005, RateFilterbank, ScaleFilterbank, ScaleRateFilterbank, cortical, filt,
                            inverse, nrates, nscales, ratefilter, rates, scalefilter, scales, spectrogram)


def _synthetic_spectrogram(n_time=128, n_freq=64, dt=0.01, spect_rate=24):
    """Smooth, non-negative ripple spectrogram with a time/frequency envelope."""
    t = torch.arange(n_time, dtype=torch.float64) * dt
    octv = torch.arange(n_freq, dtype=torch.float64) / spect_rate
    T, X = torch.meshgrid(t, octv, indexing='ij')

    env = (torch.exp(-0.5 * ((T - t.mean()) / (0.2 * t[-1])) ** 2) *
           torch.exp(-0.5 * ((X - octv.mean()) / (0.25 * octv[-1])) ** 2))
    ripple = 1 + 0.5 * torch.cos(2 * math.pi * (4 * T + 1 * X)) + 0.3 * torch.cos(2 * math.pi * (-8 * T + 2 * X))
    return spectrogram(env * ripple, time_step=dt, spect_rate=spect_rate)


def test_end_to_end_shapes():
    torch.manual_seed(0)
    x = spectrogram(torch.rand(128, 64, dtype=torch.float64), time_step=0.01)
    spec = cortical([0.5, 2], [-4, -1, 1, 4])

    cr = filt(spec, x)

    print(f"Forward: {tuple(x.shape)} -> {tuple(cr.shape)}")
    assert cr.shape == (128, 2, 4, 64)
    assert cr.data.is_complex()
    assert cr.axisnames == ('time', 'scale', 'rate', 'freq')

    y = filt(inverse(spec), cr)

    print(f"Inverse: {tuple(cr.shape)} -> {tuple(y.shape)}")
    assert y.shape == (128, 64)
    assert not y.data.is_complex()
    assert (y.data >= 0).all()
    assert y.axisnames == ('time', 'freq')
    assert torch.equal(y.values('freq'), x.values('freq'))


def test_output_axes():
    x = spectrogram(torch.rand(32, 24, dtype=torch.float64), time_step=0.01)

    cr = filt(cortical([2, 0.5], [4, -1, 1, -4], bandonly=False), x)
    assert rates(cr).tolist() == [4.0, -1.0, 1.0, -4.0]
    assert scales(cr).tolist() == [2.0, 0.5]
    assert nrates(cr) == 4 and nscales(cr) == 2
    assert cr.bounds('rate') == (1.0, 4.0)
    assert cr.bounds('scale') == (0.5, 2.0)

    cr = filt(cortical([0.5, 2], [-4, 4], bandonly=True), x)
    assert cr.bounds('rate') == (-math.inf, math.inf)
    assert cr.bounds('scale') == (-math.inf, math.inf)


def test_single_axis_shapes():
    torch.manual_seed(1)
    x = spectrogram(torch.rand(40, 30, dtype=torch.float64), time_step=0.01)

    rfb = RateFilterbank([-8, -2, 2, 8], bandonly=False)
    cr = rfb(x)
    assert cr.shape == (40, 4, 30)
    assert cr.axisnames == ('time', 'rate', 'freq')
    y = rfb.inverse()(cr)
    assert y.shape == (40, 30)
    assert (y.data >= 0).all()

    sfb = ScaleFilterbank([0.5, 1, 2], bandonly=False)
    cs = sfb(x)
    assert cs.shape == (40, 3, 30)
    assert cs.axisnames == ('time', 'scale', 'freq')
    y = filt(inverse(sfb.spec, norm=0.8), cs)
    assert y.shape == (40, 30)
    assert (y.data >= 0).all()


def test_forward_matches_composition():
    """Joint filtering equals applying the combined rate and scale responses separately."""
    torch.manual_seed(2)
    x = spectrogram(torch.rand(24, 16, dtype=torch.float64), time_step=0.01)

    joint = filt(cortical([1.0], [4.0]), x)
    rate_only = filt(ratefilter([4.0]), x)
    # scale filtering of the (complex) rate output, along frequency
    both = filt(scalefilter([1.0]), rate_only)

    assert torch.allclose(joint.data[:, 0, 0, :], both.data[:, 0, 0, :], atol=1e-10)


def test_axis_collision():
    x = spectrogram(torch.rand(32, 16, dtype=torch.float64), time_step=0.01)
    cr = filt(ratefilter([1, 2]), x)

    with pytest.raises(ValueError, match="already has an axis named 'rate'"):
        filt(ratefilter([1, 2]), cr)
    with pytest.raises(ValueError, match="already has an axis named 'rate'"):
        filt(cortical([1], [1, 2]), cr)


def test_nested_decomposition():
    x = spectrogram(torch.rand(32, 16, dtype=torch.float64), time_step=0.01)
    cr = filt(ratefilter([1, 2]), x)
    nested = filt(ratefilter([4, 8, 16], axis='rate2'), cr)

    assert nested.axisnames == ('time', 'rate2', 'rate', 'freq')
    assert nested.shape == (32, 3, 2, 16)


def test_missing_axes():
    x = spectrogram(torch.rand(32, 16, dtype=torch.float64), time_step=0.01)
    y = x.remove_axes('freq', data=x.data[:, 0])

    with pytest.raises(ValueError, match="'freq' axis"):
        filt(ratefilter([1, 2]), y)


def test_partial_inverse():
    x = spectrogram(torch.rand(32, 16, dtype=torch.float64), time_step=0.01)
    spec = cortical([0.5, 2], [-4, 4])
    cr = filt(spec, x)

    with pytest.raises(ValueError, match="partial inverses are not supported"):
        filt(inverse(spec.rates), cr)
    with pytest.raises(ValueError, match="partial inverses are not supported"):
        filt(inverse(spec.scales), cr)
    with pytest.raises(ValueError, match="no axis named"):
        filt(inverse(ratefilter([1], axis='rate2')), cr)


def test_round_trip():
    """Forward + inverse reproduces the spectrogram up to a smooth gain."""
    TEST_FIGURES_DIR = Path(__file__).parent.parent.parent / 'test_figures'
    TEST_FIGURES_DIR.mkdir(exist_ok=True)

    x = _synthetic_spectrogram()
    spec = cortical([0.25, 0.5, 1, 2, 4, 8], [-32, -16, -8, -4, -2, 2, 4, 8, 16, 32], bandonly=False)

    cr = filt(spec, x)
    y = filt(inverse(spec, norm=0.99), cr)

    r, _ = pearsonr(x.data.flatten().numpy(), y.data.flatten().numpy())
    print(f"Round trip correlation: {r:.4f}")

    fig, axes = plt.subplots(1, 2, figsize=(12, 4))
    for ax, data, title in zip(axes, (x.data, y.data), ('Original', f'Reconstruction (r={r:.3f})')):
        im = ax.imshow(data.numpy().T, origin='lower', aspect='auto', cmap='viridis')
        ax.set_xlabel('Time frame')
        ax.set_ylabel('Frequency channel')
        ax.set_title(title)
        fig.colorbar(im, ax=ax)
    plt.tight_layout()
    plt.savefig(TEST_FIGURES_DIR / 'cortical_round_trip.png', dpi=100)
    plt.close(fig)

    assert (y.data >= 0).all()
    assert r > 0.95


def test_zero_energy_reference_warns():
    """A coarse single scale leaves no energy at the top frequency channel."""
    x = spectrogram(torch.rand(32, 64, dtype=torch.float64), time_step=0.01)
    spec = scalefilter([0.25])
    cs = filt(spec, x)

    with pytest.warns(UserWarning, match="No filter energy"):
        y = filt(inverse(spec), cs)

    assert y.shape == (32, 64)
    assert torch.all(y.data == 0)


def test_insert_axis():
    x = spectrogram(torch.rand(16, 12, dtype=torch.float64), time_step=0.01)
    rate = Axis('rate', [1.0, 2.0, 4.0])

    out = x.insert_axis(rate, 1, dtype=torch.complex128)
    assert out.axisnames == ('time', 'rate', 'freq')
    assert out.shape == (16, 3, 12)
    assert out.dtype == torch.complex128
    assert torch.all(out.data == 0)

    view = x.data.unsqueeze(1).expand(16, 3, 12)
    shared = x.insert_axis(rate, 1, data=view)
    assert shared.data.data_ptr() == x.data.data_ptr()

    with pytest.raises(ValueError, match="already has an axis named 'rate'"):
        out.insert_axis(Axis('rate', [8.0]), 1)

    # forward outputs are allocated once with the complex dtype of the engine
    cr = filt(cortical([0.5, 2], [-4, 4]), x)
    assert cr.dtype == torch.complex128
    assert cr.data.is_contiguous()


def test_chi2005_model():
    torch.manual_seed(3)
    model = Chi2005(time_step=0.01, scales=[0.5, 2], rates=[-4, -1, 1, 4])
    print(model)

    cr = model(torch.rand(128, 64))
    assert cr.shape == (128, 2, 4, 64)
    assert cr.dtype == torch.complex64
    assert model.num_scales == 2 and model.num_rates == 4

    y = model.inverse(cr)
    assert y.shape == (128, 64)
    assert (y.data >= 0).all()

    y2 = model.inverse(cr, norm=0.5)
    assert y2.shape == (128, 64)

    staged = Chi2005(time_step=0.01, scales=[0.5, 2], rates=[-4, 4], return_stages=True)
    out, stages = staged(torch.rand(32, 24))
    assert out.shape == (32, 2, 2, 24)
    assert stages['spectrogram'].shape == (32, 24)
    assert stages['scale'].shape == (32, 2, 24)


def test_chi2005_annotations():
    hints = typing.get_type_hints(Chi2005.inverse)
    assert hints['norm'] == typing.Optional[float]

    hints = typing.get_type_hints(Chi2005.forward)
    assert typing.get_origin(hints['return']) is typing.Union


def test_public_api_lives_at_package_root():
    """Building blocks are imported from their modules or from the package root."""
    import torch_cortical
    import torch_cortical.common as common

    assert torch_cortical.filt is filt
    assert not hasattr(common, 'filt')
    assert not hasattr(common, 'LabeledArray')


def test_chi2005_defaults():
    model = Chi2005(time_step=0.01)
    assert model.num_rates == 18
    assert model.num_scales == 11
    assert 'num_rates=18' in model.extra_repr()
