# waferalign

A toolkit for finding a small image patch inside a larger search image,
such as an SEM picture of a wafer. It gives you:

- a common result type and interfaces for alignment algorithms,
- pipelines that chain processing stages,
- algorithms built from other algorithms (coarse-to-fine, ensembles),
- a RANSAC-style estimator for keypoint matches,
- a visual tester that runs your algorithms on distorted patches and
  writes images, logs, JSON reports and a Markdown summary.

Images are numpy arrays of `uint8`. Grayscale images have shape
`(height, width)`.

## Installation

```
pip install waferalign
```

To run the test suite, install the `test` extra and run pytest:

```
pip install "waferalign[test]"
pytest
```

## Modules

- `waferalign.types`: shared data types.
  - `AlignmentResult` holds `algorithm_name`, `location` (a `Rect`),
    `score`, `confidence`, `execution_time_ms`, `metadata` and an
    optional `transformation`.
  - `with_location`, `with_score`, `with_confidence` and
    `with_metadata` set a field and return the same result, so they can
    be chained.
  - `to_dict` and `from_dict` convert results to and from JSON-compatible
    mappings.
  - The module also defines `TransformParams`, `GroundTruth`,
    `AugmentedImage`, `Transform`, `TransformType`, `StageTime`,
    `PipelineMessage`, `MessageLevel`, `PipelineContext`, `TestCase` and
    `BenchmarkResult`.
- `waferalign.traits`: abstract base classes.
  - `AlignmentAlgorithm`: implement the `name` property and
    `align(search_image, patch)`.
  - `PipelineStage`: implement `execute(data)` and `stage_name()`.
  - `ImageAugmentation` and `Metric` are the other two interfaces.
  - `AlgorithmConfig` holds named parameters. `get` returns a copy of a
    value, or `None` when the parameter is missing.
  - `ComplexityClass` is ordered `LOW < MEDIUM < HIGH`.
- `waferalign.builder`: `PipelineBuilder` and `Pipeline`.
  - Data moves between stages as `ImageData`, `ImagePair`, `ResultData`,
    `Multiple` or `Report`.
  - A stage that returns a `Report` ends the run early.
  - When a stage raises, the error is logged, recorded in
    `Pipeline.last_context` and raised again.
  - Each run is tagged with a correlation id. Manage it with
    `new_correlation_id`, `get_correlation_id` and `set_correlation_id`.
- `waferalign.stage`: ready-made stages.
  - `AlignmentStage` takes an `ImagePair` and returns a `ResultData`.
  - `AugmentationStage` and `PreprocessingStage` take and return
    `ImageData`. `PreprocessingStage` runs the operations
    `GaussianBlur(sigma)`, `HistogramEqualization()`, `Normalize()` and
    `Resize(scale)` in order.
  - `ValidationStage` raises `ValueError` when the confidence is below
    `min_confidence` (default 0.5).
  - Each stage raises `TypeError` when it gets the wrong kind of input.
- `waferalign.composite`:
  - `CoarseToFineAlgorithm(coarse, fine, search_radius=20)` refines the
    coarse hit inside a window around it.
  - `EnsembleAlgorithm(algorithms, voting_strategy)` combines its
    members' results. `VotingStrategy` is one of `MAJORITY`,
    `WEIGHTED_CONFIDENCE` (the default), `MAX_CONFIDENCE` or `AVERAGE`.
    Members that raise are logged and skipped. When every member fails,
    it raises `RuntimeError`.
- `waferalign.ransac`: `estimate_transformation_ransac(kp1, kp2, matches,
  min_inliers, max_iterations, inlier_threshold, rng=None)`.
  - It works on `KeyPoint` and `DMatch` values and returns a
    `RansacResult`.
  - With fewer than `min_inliers` matches, the translation is a plain
    average, the rotation is 0 and the confidence is 0.4.
- `waferalign.image_conversion`:
  - `load_image(path)` loads a file as a grayscale array. It raises
    `FileNotFoundError` when the file is missing.
  - `validate_image_size(image, min_size=10, max_size=10000)` raises
    `ValueError` when either side is out of range.
- `waferalign.scenarios`: perturbations applied to patches.
  - `default_scenarios()` lists ten scenarios: `clean`, `translation_5px`,
    `translation_10px`, `rotation_10deg`, `rotation_30deg`,
    `gaussian_noise`, `salt_pepper`, `gaussian_blur`,
    `brightness_change` and `scale_120`. `select_scenarios(names)` picks
    some of them by name.
  - `extract_good_patches`, `rotate_image`, `bilinear_sample`,
    `box_blur`, `apply_noise` and `apply_transformation_and_noise` are
    the functions that apply these perturbations.
- `waferalign.render`: returns RGB arrays.
  - `side_by_side` places two images next to each other.
  - `alignment_overlay` draws the true location in green and the
    detected location in red.
  - `error_heatmap` shows the pixel differences between two images.
  - `draw_rectangle` draws a rectangle outline onto an image in place.
- `waferalign.reports`:
  - `RunReport` and its parts describe one test run.
  - `calculate_performance_metrics` returns the centre-to-centre error
    and whether the run succeeded.
  - `summary_markdown`, `aggregated_statistics` and `algorithm_log`
    produce the summary, the statistics and the per-run log.
- `waferalign.tester`: `VisualTester` runs every algorithm against every
  selected scenario on patches of one image.
- `waferalign.dashboard`:
  - `format_results` and `format_comparison_table` return plain-text
    summaries of a list of results.
  - `print_results` and `print_comparison_table` print those summaries.

## Example

```python
import numpy as np

from waferalign.builder import ImagePair, PipelineBuilder
from waferalign.stage import AlignmentStage, ValidationStage
from waferalign.traits import AlignmentAlgorithm
from waferalign.types import AlignmentResult, Rect


class CentreGuess(AlignmentAlgorithm):
    @property
    def name(self):
        return "CentreGuess"

    def align(self, search_image, patch):
        ph, pw = patch.shape
        sh, sw = search_image.shape
        return (
            AlignmentResult(self.name)
            .with_location(Rect((sw - pw) // 2, (sh - ph) // 2, pw, ph))
            .with_confidence(1.0)
        )


pipeline = (
    PipelineBuilder("align")
    .add_stage(AlignmentStage(CentreGuess()))
    .add_stage(ValidationStage(min_confidence=0.6))
    .build()
)
search = np.zeros((100, 100), dtype=np.uint8)
patch = np.zeros((20, 20), dtype=np.uint8)
outcome = pipeline.execute(ImagePair(search=search, patch=patch))
print(outcome.result.location, outcome.result.confidence)
```

Running a full visual test:

```python
from waferalign.tester import VisualTester

tester = VisualTester("results", algorithms=[CentreGuess()])
reports = tester.run_comprehensive_test("wafer.png", [32, 64], ["clean", "gaussian_noise"])
```

The `results` directory then holds:

- one folder per test, with the patch images, the overlay, the heatmap,
  an algorithm log and `test_report.json`,
- `SUMMARY_REPORT.md`,
- `aggregated_statistics.json`,
- a `session_<id>_metadata.json` file.

A run succeeds when the detected centre is within
`translation_accuracy_px` (default 10) of the true centre and the
confidence is above `min_confidence` (default 0.5).

If no patch of a requested size has enough texture,
`run_comprehensive_test` raises `ValueError`.

## What it does not do

- **No alignment algorithms of its own.** There is no template matcher
  and no feature detector. You supply `AlignmentAlgorithm`
  implementations; the composite algorithms and the tester only combine
  and exercise them.
- **No keypoint detection or matching.** `estimate_transformation_ransac`
  expects keypoints and matches that you have already computed.
- **No command-line program and no web dashboard.** Everything is used
  from Python.