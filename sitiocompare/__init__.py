"""
sitiocompare package
====================

Comparison & ranking engine for multi-year sitio (sub-village) profiles.

- The CLI entry point is in `sitiocompare/cli.py`.
- The comparison engine (validation, temporal/spatial/aggregate) is in `sitiocompare/engine.py`.
- Indicator definitions are in `sitiocompare/indicators.py`.
- Snapshot loading is in `sitiocompare/loader.py`.
"""

__version__ = '0.3.0'
