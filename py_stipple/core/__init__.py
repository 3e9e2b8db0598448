"""
Core stippling functionality.
"""

from .triangulation import Triangulation, triangulate
from .nearest_site import Bounds, InvalidBoundsError, NearestSiteLocator
from .darkness import darkness_from_rgba, gray_value
from .stipple_engine import (BitmapData, RelaxationPass, StippleConfig, StippleEngine,
                             StippleResult, jitter_amplitude, stipple)

__all__ = ['Triangulation', 'triangulate',
           'Bounds', 'InvalidBoundsError', 'NearestSiteLocator',
           'darkness_from_rgba', 'gray_value',
           'BitmapData', 'RelaxationPass', 'StippleConfig', 'StippleEngine',
           'StippleResult', 'jitter_amplitude', 'stipple']
