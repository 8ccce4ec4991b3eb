"""
Kafka Metrics Reporter Command Line Interface

Runs a reporter for the process metrics of the CLI itself, prints
snapshots, and shows the effective configuration.
"""

import argparse
import gc
import json
import shutil
import sys
import threading
import time
from typing import Optional

from kafka_reporter.exceptions import KafkaReporterError


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="kafka-metrics-reporter",
        description="Publish metric registry snapshots to a Kafka topic",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  kafka-metrics-reporter run --brokers localhost:9092 --topic metrics --period 10
  kafka-metrics-reporter snapshot --rate-unit minutes
  kafka-metrics-reporter config --show
        """
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version="%(prog)s 1.0.0"
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        help="Path to configuration file"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Run command
    run_parser = subparsers.add_parser("run", help="Report process metrics to Kafka")
    run_parser.add_argument("--brokers", type=str, help="Comma-separated host:port list")
    run_parser.add_argument("--topic", type=str, help="Kafka topic")
    run_parser.add_argument("--period", type=float, help="Seconds between reports")
    run_parser.add_argument("--sync", action="store_true", help="Wait for broker acknowledgement")
    run_parser.add_argument("--codec", type=int, help="Compression codec id")
    run_parser.add_argument("--batch-size", type=int, help="Messages buffered before a forced send")
    run_parser.add_argument("--retries", type=int, help="Max send retries")
    run_parser.add_argument(
        "--iterations",
        type=int,
        default=0,
        help="Stop after this many reports (0 runs until interrupted)"
    )

    # Snapshot command
    snapshot_parser = subparsers.add_parser("snapshot", help="Print one metrics report")
    snapshot_parser.add_argument("--rate-unit", type=str, default="seconds")
    snapshot_parser.add_argument("--duration-unit", type=str, default="seconds")

    # Config command
    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_parser.add_argument(
        "--show",
        action="store_true",
        help="Show current configuration"
    )
    config_parser.add_argument(
        "--generate",
        type=str,
        help="Write the default config to the specified path"
    )

    return parser


def create_process_registry():
    """Registry with metrics describing this process."""
    from kafka_reporter.metrics import MetricRegistry

    registry = MetricRegistry()
    started = time.time()
    registry.gauge("process.uptime", lambda: round(time.time() - started, 3))
    registry.gauge("process.threads", threading.active_count)
    registry.gauge("process.gc.pending", lambda: gc.get_count()[0])
    registry.counter("cli.invocations").inc()
    return registry


def track_report_cycles(reporter, registry) -> None:
    """Count and time each scheduled report cycle in the reported registry."""
    reports = registry.counter("reporter.reports")
    cycle = registry.timer("reporter.cycle")
    report_now = reporter.report_now

    def timed_report_now() -> None:
        with cycle.time():
            report_now()
        reports.inc()

    reporter.report_now = timed_report_now


def _load_settings(args: argparse.Namespace):
    from kafka_reporter.config import ConfigManager

    return ConfigManager(args.config).load()


def cmd_run(args: argparse.Namespace) -> int:
    """Handle run command."""
    from kafka_reporter.reporting import KafkaReporter
    from kafka_reporter.telemetry import configure_logging

    settings = _load_settings(args)
    configure_logging(
        settings.logging.level,
        json_format=settings.logging.json,
        log_file=settings.logging.file,
        max_size=settings.logging.max_size,
        backup_count=settings.logging.backup_count,
    )

    if args.brokers:
        settings.kafka.broker_list = args.brokers
    if args.topic:
        settings.kafka.topic = args.topic
    if args.sync:
        settings.kafka.synchronous = True
    if args.codec is not None:
        settings.kafka.compression_codec = args.codec
    if args.batch_size is not None:
        settings.kafka.batch_size = args.batch_size
    if args.retries is not None:
        settings.kafka.message_send_max_retries = args.retries
    period = args.period or settings.reporter.period

    registry = create_process_registry()
    reporter = KafkaReporter.from_config(registry, settings)
    track_report_cycles(reporter, registry)

    print(f"Reporting to {settings.kafka.topic} every {period}s (Ctrl+C to stop)")
    reporter.start(period, initial_delay=0)
    try:
        if args.iterations:
            time.sleep(period * (args.iterations - 1) + period / 2)
        else:
            while True:
                time.sleep(1)
    except KeyboardInterrupt:
        print("\nStopping reporter")
    finally:
        reporter.stop()

    return 0


def cmd_snapshot(args: argparse.Namespace) -> int:
    """Handle snapshot command."""
    from kafka_reporter.metrics import TimeUnit
    from kafka_reporter.reporting import MetricsSerializer

    registry = create_process_registry()
    serializer = MetricsSerializer(
        TimeUnit.parse(args.rate_unit),
        TimeUnit.parse(args.duration_unit),
    )
    print(serializer.dumps(registry))
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Handle config command."""
    from kafka_reporter.config import ConfigManager

    manager = ConfigManager(args.config)
    if args.show:
        print(json.dumps(manager.to_dict(), indent=2))
    elif args.generate:
        shutil.copy(ConfigManager.DEFAULT_CONFIG_PATH, args.generate)
        print(f"Configuration generated at: {args.generate}")
    else:
        print("Use --show or --generate")

    return 0


def main(argv: Optional[list] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "run": cmd_run,
        "snapshot": cmd_snapshot,
        "config": cmd_config,
    }

    try:
        return commands[args.command](args)
    except KafkaReporterError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
