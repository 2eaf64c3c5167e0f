# quitools

Tools for quantitative MRI: flip-angle (B1) maps from AFI and DREAM
acquisitions, a head-coil / body-coil ratio map, image comparison, header
inspection and synthetic image creation, together with the numerical helpers
they rest on. Images are read and written as NIfTI-1 (`.nii`, `.nii.gz`, or
`.hdr`/`.img` pairs, optionally gzipped).

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Command-line tools

Two commands are installed. Each takes a sub-command followed by that
sub-command's options. Errors are printed as `Error <message>` and give exit
status 1.

### `qi-b1`

```
qi-b1 --help
```

- `qi-b1 afi INPUT` – actual flip-angle imaging. INPUT is a series whose
  first two volumes are the TR1 and TR2 signals. Writes `AFI_B1<ext>`; with
  `-s/--save` also `AFI_angle<ext>`. Options: `-f/--flip` nominal flip angle
  (default 55), `-r/--ratio` TR2:TR1 ratio (default 5).
- `qi-b1 dream DREAM_FILE` – DREAM. Writes `DREAM_angle<ext>` and
  `DREAM_B1<ext>`. Options: `-O/--order` (`f` for FID first, `s` or `v` for
  the stimulated echo first; default `f`), `-a/--alpha` nominal flip angle
  (default 55).
- `qi-b1 b1_papp INPUT` – divides the second volume (head coil) by the first
  (body coil) and writes `B1minus<ext>`.

All three take `-o/--out PREFIX` to prefix output names and `-v/--verbose`.
`-T/--threads`, and `-m/--mask` for `dream`, are accepted but have no effect:
processing is single-threaded and unmasked. Where a divisor is zero the
written value is the largest float32 value.

### `qi-core`

```
qi-core --help
```

- `qi-core diff --input FILE --baseline FILE` – prints the root mean square
  relative bias of the input against the baseline, or the absolute bias with
  `-a/--abs`. With `--noise N` (greater than 0) it prints that value divided
  by N instead. `-v/--verbose` also shows mean bias, variance, SD and MSE.
- `qi-core hdr FILES...` – prints header information. With no selection
  everything is printed with labels; otherwise choose from `-d/--direction`,
  `-o/--origin`, `-S/--spacing N`, `-s/--size N` (N is a 1-based axis, 0 for
  all), `-v/--voxvol`, `-T/--dtype`, `-D/--dims`, and `-m/--meta FIELD`
  (repeatable; fields are `descrip`, `aux_file`, `intent_name`,
  `qform_code`, `sform_code`, `scl_slope`, `scl_inter`). `-3/--3D` ignores
  axes beyond the third; `--verbose` adds labels.
- `qi-core newimage OUTPUT` – creates a float image. `-d/--dims` (3 or 4),
  `-s/--size`, `-p/--spacing`, `-o/--origin` as comma-separated integers;
  `-f/--fill VALUE` for a constant, or `-v/--grad_vals LOW,HIGH` with
  `-g/--grad_dim AXIS` for a gradient, `-t/--steps N` for a stepped one and
  `-w/--wrap VALUE` to wrap values. Without an origin the first three axes
  are centred on zero.

### Environment variables

- `QUIT_THREADS` – default thread count reported by
  `quitools.util.get_default_threads()` (must be 1 to 1024).
- `QUIT_EXT` – output extension: `NIFTI`, `NIFTI_PAIR`, `NIFTI_GZ`,
  `NIFTI_PAIR_GZ`, or any extension including its dot. Unset means
  `.nii.gz`.

## Library use

Filename helpers in `quitools.util`:

```python
from quitools.util import strip_ext, get_ext, basename

strip_ext("brain.nii.gz")        # "brain"
get_ext("brain.nii.gz")          # ".nii.gz"
basename("/data/sub-01/T1.nii")  # "T1"
```

Golden-section minimisation:

```python
from quitools.goldensection import golden_section_search

x_min = golden_section_search(lambda x: (x - 2.0) ** 2, 0.0, 5.0, 1e-6)
```

Ordinary and robust (Huber-weighted) least squares; each returns the
coefficients and the norm of the residual:

```python
import numpy as np
from quitools.fit import least_squares, robust_least_squares

x = np.column_stack([np.ones(10), np.arange(10.0)])
y = 1.0 + 2.0 * np.arange(10.0)
b, residual = least_squares(x, y)
b_robust, residual_robust = robust_least_squares(x, y)
```

Images and B1 maps:

```python
from quitools.imageio import read_image, read_header
from quitools.imagewrite import write_image
from quitools.b1 import afi

series = read_image("afi.nii.gz")
b1, angle = afi(series, nominal_flip=55.0, tr_ratio=5.0)
write_image(b1, "AFI_B1.nii.gz")
```

Other modules:

- `quitools.image` – the `Image` class (data with spacing, origin and
  direction), `new_image_like`, and `image_to_vector` / `vector_to_image`
  to move between a series and a vector image.
- `quitools.imageio` – `read_header`, `read_image`, `read_magnitude_image`,
  `read_vector_image`.
- `quitools.imagewrite` – `write_image`, `write_magnitude_image`,
  `write_scaled_image`, `write_vector_image`.
- `quitools.masking` – `threshold_mask`, `otsu_mask`, `find_labels`.
- `quitools.spline` – `SplineInterpolator`.
- `quitools.jsonio` – `read_json`, `write_json`, `array_from_json`,
  `get_json`.
- `quitools.lineshape` – `gaussian`, `lorentzian`, `super_lorentzian` and
  `InterpLineshape`.
- `quitools.rfpulse` – `RFPulse`.
- `quitools.coreprogs` – `diff_stats`, `make_image`, `header_lines`.

## What is not included

The package has no voxel-wise model fitting commands (such as relaxometry
fits), no k-space filter kernels and no noise generation for simulations.
Only NIfTI-1 files are read and written.