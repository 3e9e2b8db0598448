"""
Weighted Voronoi stippling.

Sites start where a darkness-weighted rejection sampler puts them and are then
relaxed with Lloyd's algorithm: every pass assigns each pixel to its nearest
site, moves each site past the darkness-weighted centroid of its pixels and
adds a small random wiggle that shrinks as the passes go on.
"""

from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
import structlog
from pydantic import BaseModel, Field

from ..config import Settings, settings
from ..utils.random import SeedLike, describe_seed, make_rng
from .darkness import darkness_from_rgba
from .nearest_site import Bounds, NearestSiteLocator

logger = structlog.get_logger()


class StippleConfig(BaseModel):
    """Tuning parameters of a stippling run."""

    sample_attempts: int = Field(default=60, ge=1, description="Rejection sampling attempts per site")
    relaxation_factor: float = Field(default=1.8, gt=0, description="Step toward the weighted centroid")
    jitter_scale: float = Field(default=10.0, ge=0, description="Jitter amplitude of the first pass")
    jitter_decay: float = Field(default=0.8, ge=0, description="Exponent of the jitter annealing")
    point_density: int = Field(default=50, ge=1, description="Pixels per site when no site count is given")
    iterations: int = Field(default=80, ge=0, description="Relaxation passes per run")

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None) -> "StippleConfig":
        """Build a configuration from application settings."""
        source = source or settings
        return cls(
            sample_attempts=source.sample_attempts,
            relaxation_factor=source.relaxation_factor,
            jitter_scale=source.jitter_scale,
            jitter_decay=source.jitter_decay,
            point_density=source.point_density,
            iterations=source.default_iterations,
        )

    def default_point_count(self, width: int, height: int) -> int:
        """Site count used when the caller gives none."""
        if width <= 0 or height <= 0:
            return 0
        return max(1, (width * height) // self.point_density)


@dataclass
class BitmapData:
    """Row-major RGBA8 pixels plus the number of sites to place."""
    buffer: object
    width: int
    height: int
    point_count: Optional[int] = None


@dataclass
class StippleResult:
    """Site positions after a number of relaxation passes."""
    positions: np.ndarray  # flat, x and y interleaved
    width: int
    height: int
    iteration: int

    @property
    def points(self) -> np.ndarray:
        return self.positions.reshape(-1, 2)

    @property
    def n_points(self) -> int:
        return len(self.positions) // 2


@dataclass
class RelaxationPass:
    """Centroid accumulators of one relaxation pass."""
    iteration: int
    weight_sums: np.ndarray    # (n,) darkness assigned to each site
    centroid_sums: np.ndarray  # (n, 2) darkness-weighted pixel centre sums
    jitter: float

    @property
    def total_weight(self) -> float:
        return float(self.weight_sums.sum())

    @property
    def empty_sites(self) -> int:
        return int(np.count_nonzero(self.weight_sums == 0))


ProgressCallback = Callable[[StippleResult], Optional[bool]]


def jitter_amplitude(iteration: int, scale: float = 10.0, decay: float = 0.8) -> float:
    """Width of the uniform jitter applied in pass ``iteration`` (0-based)."""
    return (iteration + 1) ** -decay * scale


class StippleEngine:
    """
    Lloyd relaxation of sites over a darkness field.

    One engine drives one run at a time and owns its sites, its locator and
    its random generator. Passes are strictly sequential.
    """

    def __init__(self, config: Optional[StippleConfig] = None, seed: SeedLike = None):
        """
        Initialize the engine.

        Args:
            config: Tuning parameters, defaults to the application settings
            seed: Seed or generator for sampling and jitter, defaults to
                ``settings.seed``
        """
        self.config = config or StippleConfig.from_settings()
        self.seed = settings.seed if seed is None else seed
        self.rng = make_rng(self.seed)

        self.width = 0
        self.height = 0
        self.darkness: Optional[np.ndarray] = None
        self.sites = np.zeros((0, 2), dtype=np.float64)
        self.locator: Optional[NearestSiteLocator] = None
        self.iteration = 0

    def initialize(self, n: int, width: int, height: int, darkness, sites=None) -> np.ndarray:
        """
        Place the initial sites and build the locator.

        Args:
            n: Number of sites
            width, height: Field size in pixels
            darkness: (height, width) darkness grid
            sites: Optional explicit starting positions, (n, 2) or flat

        Returns:
            The (n, 2) site array, shared with the locator
        """
        if width < 0 or height < 0:
            raise ValueError(f"Invalid field size {width}x{height}")
        if n < 0:
            raise ValueError(f"Invalid site count {n}")

        darkness = np.asarray(darkness, dtype=np.float64)
        if darkness.shape != (height, width):
            raise ValueError(f"Darkness field has shape {darkness.shape}, expected {(height, width)}")

        if sites is None:
            if n and not darkness.size:
                raise ValueError("Cannot sample sites on an empty field")
            sites = self._sample_sites(n, width, height, darkness)
        else:
            sites = np.array(sites, dtype=np.float64).reshape(-1, 2)
            if len(sites) != n:
                raise ValueError(f"Expected {n} initial sites, got {len(sites)}")

        self.width = width
        self.height = height
        self.darkness = darkness
        self.sites = np.ascontiguousarray(sites)
        self.locator = NearestSiteLocator(self.sites, Bounds(0, 0, width, height))
        self.iteration = 0
        return self.sites

    def _sample_sites(self, n: int, width: int, height: int, darkness: np.ndarray) -> np.ndarray:
        # Rejection sampling, giving up after sample_attempts and keeping the last draw
        sites = np.zeros((n, 2), dtype=np.float64)
        rng = self.rng
        for i in range(n):
            for _ in range(self.config.sample_attempts):
                x = int(rng.integers(width))
                y = int(rng.integers(height))
                sites[i] = x, y
                if rng.random() < darkness[y, x]:
                    break
        return sites

    def _assign_pixels(self) -> np.ndarray:
        # Raster order keeps consecutive queries close, so the previous
        # answer is a good start for the next walk
        find = self.locator.find
        labels = np.empty(self.width * self.height, dtype=np.int64)
        i = 0
        p = 0
        for y in range(self.height):
            cy = y + 0.5
            for x in range(self.width):
                i = find(x + 0.5, cy, i)
                labels[p] = i
                p += 1
        return labels

    def relax(self, iteration_index: Optional[int] = None) -> RelaxationPass:
        """
        Run one Lloyd pass.

        Pixels are scanned in raster (row-major) order and each query starts
        its walk at the previous pixel's site; the locator is only fast when
        consecutive queries are spatially coherent like this.

        Args:
            iteration_index: 0-based pass index driving the jitter annealing,
                defaults to the number of passes run so far

        Returns:
            The accumulators of this pass
        """
        if self.locator is None:
            raise ValueError("Engine has no sites. Call initialize() first!")

        k = self.iteration if iteration_index is None else iteration_index
        sites = self.sites
        n = len(sites)
        amplitude = jitter_amplitude(k, self.config.jitter_scale, self.config.jitter_decay)

        weights = self.darkness.ravel()
        if n == 0 or not weights.size:
            self.iteration += 1
            return RelaxationPass(k, np.zeros(n), np.zeros((n, 2)), amplitude)

        labels = self._assign_pixels()
        cx = np.tile(np.arange(self.width) + 0.5, self.height)
        cy = np.repeat(np.arange(self.height) + 0.5, self.width)

        weight_sums = np.bincount(labels, weights=weights, minlength=n)
        centroid_sums = np.stack([
            np.bincount(labels, weights=weights * cx, minlength=n),
            np.bincount(labels, weights=weights * cy, minlength=n),
        ], axis=1)

        # Sites without darkness keep their position as target
        targets = sites.copy()
        assigned = weight_sums != 0
        targets[assigned] = centroid_sums[assigned] / weight_sums[assigned, None]

        noise = (self.rng.random((n, 2)) - 0.5) * amplitude
        sites += (targets - sites) * self.config.relaxation_factor + noise

        self.locator.update()
        self.iteration += 1

        result = RelaxationPass(k, weight_sums, centroid_sums, amplitude)
        logger.debug("Relaxation pass complete", iteration=k, jitter=round(amplitude, 4),
                     empty_sites=result.empty_sites, collinear=self.locator.is_collinear)
        return result

    def snapshot(self) -> StippleResult:
        """Copy of the current positions."""
        return StippleResult(self.sites.ravel().copy(), self.width, self.height, self.iteration)

    def run(self, n: Optional[int], width: int, height: int, darkness,
            iterations: Optional[int] = None, on_progress: Optional[ProgressCallback] = None,
            sites=None) -> StippleResult:
        """
        Stipple a darkness field.

        Args:
            n: Number of sites, defaults to one per ``point_density`` pixels
            width, height: Field size in pixels
            darkness: (height, width) darkness grid
            iterations: Number of passes, defaults to ``config.iterations``
            on_progress: Called after every pass with the positions and the
                0-based pass index; returning False stops before the next pass
            sites: Optional explicit starting positions

        Returns:
            Final positions and the number of passes performed
        """
        if iterations is None:
            iterations = self.config.iterations
        if iterations < 0:
            raise ValueError(f"Invalid iteration count {iterations}")
        if n is None:
            n = self.config.default_point_count(width, height)

        if width == 0 or height == 0:
            logger.info("Empty field, nothing to stipple", width=width, height=height)
            return StippleResult(np.zeros(0, dtype=np.float64), width, height, 0)

        logger.info("Starting stipple run", points=n, width=width, height=height,
                    iterations=iterations, seed=describe_seed(self.seed))

        self.initialize(n, width, height, darkness, sites=sites)

        completed = 0
        for k in range(iterations):
            self.relax(k)
            completed = k + 1
            if on_progress is not None:
                info = StippleResult(self.sites.ravel().copy(), width, height, k)
                if on_progress(info) is False:
                    logger.info("Stipple run stopped by caller", iteration=k)
                    break

        logger.info("Stipple run complete", points=n, iterations=completed)
        return self.snapshot()


def stipple(bitmap: BitmapData, iterations: Optional[int] = None,
            on_progress: Optional[ProgressCallback] = None,
            config: Optional[StippleConfig] = None, seed: SeedLike = None) -> StippleResult:
    """
    Stipple an RGBA8 bitmap.

    Args:
        bitmap: Pixels, size and optional site count
        iterations: Number of passes, defaults to ``config.iterations``
        on_progress: Per-pass callback, see ``StippleEngine.run``
        config: Tuning parameters
        seed: Seed for sampling and jitter

    Returns:
        Final site positions
    """
    darkness = darkness_from_rgba(bitmap.buffer, bitmap.width, bitmap.height)
    engine = StippleEngine(config, seed)
    return engine.run(bitmap.point_count, bitmap.width, bitmap.height, darkness,
                      iterations=iterations, on_progress=on_progress)
