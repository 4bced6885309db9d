"""
Main sweep orchestration module for threshold_sweep.

This module wires the sweep components together from the command line:
- Argument parsing and configuration merging
- File list loading
- Scratch storage, transcoder, VMAF evaluator and result logger setup
- Exit codes: 0 when the sweep completes, 1 when it cannot start
"""

import argparse
import signal
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..config import get_config, parse_number, parse_thresholds
from .modules.analysis.vmaf_evaluator import VMAfEvaluator
from .modules.models import FileListError, StorageUnavailable, SweepConfig
from .modules.processing.file_manager import FileManager
from .modules.processing.sweep_driver import SweepDriver, iter_work_items
from .modules.processing.transcoding_engine import TranscoderAdapter
from .modules.system.result_logger import ResultLogger, load_completed
from .modules.system.scratch_manager import ScratchSpaceManager
from ..utils.logging import get_logger, print_section_header, set_debug_mode, set_quiet_mode

# Module logger
logger = get_logger("sweep_main")

EXIT_OK = 0
EXIT_CANNOT_START = 1
EXIT_INTERRUPTED = 130


def build_parser(config: dict) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="threshold-sweep",
        description="Transcode a dataset at a sweep of contrast thresholds and log "
                    "execution time, transcoder info summaries and VMAF quality")

    parser.add_argument("dataset_root", help="Root directory of the dataset")
    parser.add_argument("file_list", help="Text file with one dataset-relative path per line")
    parser.add_argument("output_dir", help="Directory for the text log and JSON results")
    parser.add_argument("baseline", help="Baseline contrast threshold passed to the transcoder")
    parser.add_argument("scratch_root", help="Fast (e.g. tmpfs) storage root for intermediate files")

    # Sweep settings
    parser.add_argument("--thresholds", default=None,
                        help="Comma separated contrast thresholds, in sweep order "
                             f"(default: {','.join(str(t) for t in config['thresholds'])})")
    parser.add_argument("--run-name", default=None,
                        help="Base name of the log/JSON files (default: sweep_<timestamp>)")
    parser.add_argument("--resume", action="store_true",
                        help="Skip WorkItems already successful in an existing <run-name>.json")
    parser.add_argument("--dry-run", action="store_true",
                        help="List the WorkItems in sweep order without running anything")

    # External tools
    parser.add_argument("--transcode-cmd", default=config['transcode_cmd'],
                        help="Transcoder command template (placeholders: {source} {threshold} "
                             "{baseline} {scratch} {events} {reconstructed})")
    parser.add_argument("--info-cmd", default=config['info_cmd'],
                        help="Info summary command template (default: %(default)s)")
    parser.add_argument("--ffmpeg", default=config['ffmpeg_cmd'],
                        help="ffmpeg executable used for VMAF (default: %(default)s)")
    parser.add_argument("--vmaf-threads", type=int, default=config['vmaf_threads'],
                        help="libvmaf threads, 0 = auto (default: %(default)s)")
    parser.add_argument("--vmaf-model", default=config['vmaf_model'],
                        help="libvmaf model specification (default: libvmaf built-in)")

    # Timeouts
    parser.add_argument("--transcode-timeout", type=float, default=config['transcode_timeout'],
                        help="Seconds before a transcode is classed TranscodeTimedOut")
    parser.add_argument("--info-timeout", type=float, default=config['info_timeout'],
                        help="Seconds allowed for the info summary command")
    parser.add_argument("--vmaf-timeout", type=float, default=config['vmaf_timeout'],
                        help="Seconds before VMAF is classed EvaluationTimedOut")

    # Output and scratch policy
    parser.add_argument("--json-flush-every", type=int, default=config['json_flush_every'],
                        help="Rewrite the JSON document every N records (default: %(default)s)")
    parser.add_argument("--keep-failed-scratch", action="store_true",
                        default=config['keep_failed_scratch'],
                        help="Leave scratch regions of failed WorkItems for inspection")
    parser.add_argument("--min-scratch-free-gb", type=float, default=config['min_scratch_free_gb'],
                        help="Warn when the scratch root has less free space (default: %(default)s)")

    parser.add_argument("--debug", action="store_true", default=config['debug'],
                        help="Enable debug output")
    parser.add_argument("--quiet", action="store_true", help="Only show warnings and errors")
    return parser


def _raise_system_exit(signum, frame):
    # Lets per-item finally blocks release scratch and flush the JSON document
    raise SystemExit(EXIT_INTERRUPTED)


def main(argv: Optional[List[str]] = None) -> int:
    try:
        config = get_config()
    except ValueError as e:
        print(f"[ERROR] Invalid configuration: {e}", file=sys.stderr)
        return EXIT_CANNOT_START

    parser = build_parser(config)
    args = parser.parse_args(argv)

    if args.debug:
        set_debug_mode(True)
    if args.quiet:
        set_quiet_mode(True)

    try:
        thresholds = parse_thresholds(args.thresholds) if args.thresholds else config['thresholds']
        sweep_config = SweepConfig(thresholds=thresholds, baseline=parse_number(args.baseline))
        if args.json_flush_every < 1:
            raise ValueError("--json-flush-every must be >= 1")
        transcoder = TranscoderAdapter(
            transcode_cmd=args.transcode_cmd,
            info_cmd=args.info_cmd,
            baseline=sweep_config.baseline,
            transcode_timeout=args.transcode_timeout or None,
            info_timeout=args.info_timeout or None,
        )
        evaluator = VMAfEvaluator(
            ffmpeg_cmd=args.ffmpeg,
            n_threads=args.vmaf_threads,
            model=args.vmaf_model,
            timeout=args.vmaf_timeout or None,
        )
    except ValueError as e:
        logger.error(str(e))
        return EXIT_CANNOT_START

    dataset_root = Path(args.dataset_root).resolve()
    file_manager = FileManager(dataset_root, debug=args.debug)
    try:
        files = file_manager.load_file_list(Path(args.file_list))
    except FileListError as e:
        logger.error(str(e))
        return EXIT_CANNOT_START

    if not dataset_root.is_dir():
        logger.warn(f"Dataset root is not a directory: {dataset_root}")
    file_manager.missing_entries(files)

    if args.dry_run:
        print("\n[DRY-RUN] Work items in sweep order:")
        for item in iter_work_items(sweep_config, files):
            print(f"  [{item.index}/{item.total}] {item.label()}")
        return EXIT_OK

    output_dir = Path(args.output_dir).resolve()
    run_name = args.run_name or f"sweep_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
    scratch = ScratchSpaceManager(Path(args.scratch_root),
                                  min_free_bytes=int(args.min_scratch_free_gb * 1024 ** 3))

    # Fail fast before the log artifacts are created
    try:
        scratch.check_root()
    except StorageUnavailable as e:
        logger.error(str(e))
        return EXIT_CANNOT_START

    completed = {}
    if args.resume:
        completed = load_completed(output_dir / f"{run_name}.json")

    metadata = {
        "dataset_root": str(dataset_root),
        "file_list": str(Path(args.file_list).resolve()),
        "baseline": sweep_config.baseline,
        "thresholds": list(sweep_config.thresholds),
        "scratch_root": str(Path(args.scratch_root).resolve()),
        "transcode_cmd": args.transcode_cmd,
        "info_cmd": args.info_cmd,
        "files": len(files),
    }

    print_section_header(f"THRESHOLD SWEEP {run_name}")
    previous_handler = signal.signal(signal.SIGTERM, _raise_system_exit)
    try:
        with ResultLogger(output_dir, run_name, flush_every=args.json_flush_every,
                          metadata=metadata, carried=completed) as result_logger:
            driver = SweepDriver(sweep_config, files, dataset_root, scratch, transcoder, evaluator,
                                 result_logger, keep_failed_scratch=args.keep_failed_scratch,
                                 completed=completed)
            driver.run()
    except StorageUnavailable as e:
        logger.error(str(e))
        return EXIT_CANNOT_START
    except KeyboardInterrupt:
        logger.warn("Interrupted; results flushed up to the last completed work item")
        return EXIT_INTERRUPTED
    finally:
        signal.signal(signal.SIGTERM, previous_handler or signal.SIG_DFL)

    logger.result(f"Sweep finished, results in {output_dir}")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
