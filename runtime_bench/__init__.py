"""
Runtime behaviour demonstrations built on a small measurement harness:
collector pause/throughput benchmarks and memory-leak examples.
"""

__version__ = "1.0.0"
