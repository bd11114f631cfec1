"""
knockout - Plugin performance experiments for WordPress.

Deactivate one plugin at a time, measure, rank the damage.
"""

from knockout.controller import ExperimentController, ExperimentOutcome
from knockout.rank import rank

__version__ = "0.1.0"
__all__ = ["ExperimentController", "ExperimentOutcome", "rank", "__version__"]
