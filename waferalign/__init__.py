"""Image alignment interfaces, pipelines, composite algorithms and visual testing tools."""

__version__ = "0.1.0"