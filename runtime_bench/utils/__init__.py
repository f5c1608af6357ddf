"""Measurement harness: recorder, driver, percentile reducer and reporter"""

from runtime_bench.utils.counters import AtomicCounter
from runtime_bench.utils.errors import ConfigurationError, EmptySampleSetError, HarnessError
from runtime_bench.utils.percentiles import PercentileSummary, percentile_index, summarize
from runtime_bench.utils.periodic_reporter import PeriodicReporter, ProgressSnapshot, start_reporting
from runtime_bench.utils.run_config import RunConfig
from runtime_bench.utils.sample_recorder import SampleRecorder
from runtime_bench.utils.workload_driver import RunResult, WorkloadDriver, timed

__all__ = [
    'AtomicCounter',
    'ConfigurationError',
    'EmptySampleSetError',
    'HarnessError',
    'PercentileSummary',
    'PeriodicReporter',
    'ProgressSnapshot',
    'RunConfig',
    'RunResult',
    'SampleRecorder',
    'WorkloadDriver',
    'percentile_index',
    'start_reporting',
    'summarize',
    'timed',
]
