"""
Run All Benchmarks - Complete Collector Suite

Executes the collector benchmarks with short budgets:
1. Latency (paced requests, tail latency)
2. Throughput (iteration-bound, ops/sec)
3. Allocation Rate (unthrottled, MB/sec)
4. Mixed Workload (concurrent workers over a shared cache)

Prints a pass/fail summary and, with --json, a JSON document of all results.
"""

import argparse
import json
import sys
from datetime import datetime
from typing import Dict, List

from runtime_bench.allocation_benchmark import AllocationBenchmark
from runtime_bench.latency_benchmark import LatencyBenchmark
from runtime_bench.mixed_workload_benchmark import MixedWorkloadBenchmark
from runtime_bench.throughput_benchmark import ThroughputBenchmark
from runtime_bench.utils.console import cancel_on_interrupt, configure_logging

DEFAULT_DURATION_SEC = 10.0


def _suite(duration_sec: float, workers: int) -> List[tuple]:
    """(key, title, benchmark) triples in execution order"""
    return [
        ('latency', "LATENCY - Tail Latency Under Paced Load",
         LatencyBenchmark(duration_sec=duration_sec, warmup_sec=min(2.0, duration_sec / 5),
                          progress_every_sec=max(1.0, duration_sec / 3))),
        ('throughput', "THROUGHPUT - Operations per Second",
         ThroughputBenchmark(iterations=3, warmup_iterations=1)),
        ('allocation', "ALLOCATION RATE - Young Generation Pressure",
         AllocationBenchmark(duration_sec=duration_sec, report_every_sec=max(1.0, duration_sec / 3))),
        ('mixed_workload', "MIXED WORKLOAD - Short and Long-Lived Objects",
         MixedWorkloadBenchmark(duration_sec=duration_sec, workers=workers,
                                burst_interval_sec=max(0.5, duration_sec / 4),
                                cleanup_interval_sec=max(1.0, duration_sec / 2),
                                report_every_sec=max(1.0, duration_sec / 3))),
    ]


def run_all_benchmarks(duration_sec: float = DEFAULT_DURATION_SEC, workers: int = 2,
                       only: List[str] = None) -> Dict:
    """Run complete benchmark suite"""

    print("="*80)
    print("RUNTIME COLLECTOR BENCHMARK SUITE")
    print("="*80)
    print(f"Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    all_results = {
        'timestamp': datetime.now().isoformat(),
        'benchmarks': {}
    }

    suite = [entry for entry in _suite(duration_sec, workers) if not only or entry[0] in only]

    for number, (key, title, benchmark) in enumerate(suite, start=1):
        print("\n" + "="*80)
        print(f"TEST {number}: {title}")
        print("="*80)

        try:
            with cancel_on_interrupt(benchmark.driver):
                result = benchmark.run_benchmark()
            if result is None:
                raise RuntimeError("no samples recorded")

            all_results['benchmarks'][key] = {
                'status': 'completed',
                'result': result.to_dict()
            }
            print(f"✅ {title}: PASSED")
        except Exception as e:
            print(f"❌ {title}: FAILED - {e}")
            all_results['benchmarks'][key] = {
                'status': 'failed',
                'error': str(e)
            }

    total = len(all_results['benchmarks'])
    passed = sum(1 for b in all_results['benchmarks'].values() if b['status'] == 'completed')
    failed = total - passed

    print("\n" + "="*80)
    print("BENCHMARK SUITE COMPLETE")
    print("="*80)
    print(f"Completed: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"\nTests Passed: {passed}/{total}")
    print(f"Tests Failed: {failed}/{total}")

    if failed == 0:
        print("\n🎉 ALL TESTS PASSED!")
    else:
        print(f"\n⚠️  {failed} test(s) failed. Review logs above.")
    print("="*80)

    return all_results


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the collector benchmark suite.")
    parser.add_argument("--duration", type=float, default=DEFAULT_DURATION_SEC,
                        help="Budget in seconds for each duration-bound benchmark.")
    parser.add_argument("--workers", type=int, default=2,
                        help="Workers for the mixed workload benchmark.")
    parser.add_argument("--only", action="append",
                        choices=['latency', 'throughput', 'allocation', 'mixed_workload'],
                        help="Run only the named benchmark (repeatable).")
    parser.add_argument("--json", action="store_true",
                        help="Print all results as JSON at the end.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    results = run_all_benchmarks(args.duration, args.workers, args.only)
    if args.json:
        print(json.dumps(results, indent=2))

    failed = any(b['status'] == 'failed' for b in results['benchmarks'].values())
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
