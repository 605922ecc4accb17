"""Benchmarks package, run through pytest-benchmark.

Run with::

    pytest tests/benchmarks/ -v --benchmark-sort=median

To run as plain functional tests without timing::

    pytest tests/benchmarks/ --benchmark-disable
"""
