"""
Batch scoring of borrower request files.

Each JSON file holds one request payload (attributes and/or borrower_data).
Directories and ZIP archives of such files are expanded before scoring, and
per-file failures are recorded by type instead of stopping the batch.
"""

import io
import json
import logging
import sys
import traceback
import zipfile
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from trustscore_engine.config.engine_config import EngineConfig
from trustscore_engine.scoring.scoring_engine import (
    InvalidRequestStructureError,
    ScoringEngine,
    ScoringRequest,
    ScoringResult,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

ERROR_COLUMNS = ["File Name", "Error Type", "Error Message", "Timestamp"]

# BatchStats fields that add up when two batches are merged
SUMMED_STATS = (
    "total_files", "processed", "successful", "failed",
    "approved", "declined", "total_score", "total_certainty",
)


@dataclass
class ProcessingError:
    """A request file that could not be scored."""
    file_name: str
    error_type: str
    error_message: str
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_row(self) -> Dict[str, str]:
        return dict(zip(ERROR_COLUMNS, (self.file_name, self.error_type, self.error_message, self.timestamp)))


@dataclass
class BatchStats:
    """Running totals over one batch of requests."""
    total_files: int = 0
    processed: int = 0
    successful: int = 0
    failed: int = 0

    approved: int = 0
    declined: int = 0

    total_score: float = 0.0
    min_score: float = 100.0
    max_score: float = 0.0
    total_certainty: float = 0.0

    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    def record(self, result: ScoringResult) -> None:
        """Add one scored request."""
        self.processed += 1
        self.successful += 1
        self.total_score += result.final_score
        self.total_certainty += result.overall_certainty
        self.min_score = min(self.min_score, result.final_score)
        self.max_score = max(self.max_score, result.final_score)

        credit = result.credit_recommendation
        if credit is not None and credit.approved:
            self.approved += 1
        else:
            self.declined += 1

    def record_failure(self) -> None:
        self.processed += 1
        self.failed += 1

    @property
    def average_score(self) -> float:
        return self.total_score / self.successful if self.successful else 0.0

    @property
    def average_certainty(self) -> float:
        return self.total_certainty / self.successful if self.successful else 0.0

    @property
    def processing_time(self) -> float:
        """Seconds between start and end, 0 until the batch has finished."""
        if self.start_time and self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return 0.0

    @property
    def success_rate(self) -> float:
        """Percentage of files scored."""
        return self.successful / self.total_files * 100 if self.total_files else 0.0


@dataclass
class BatchResult:
    """Scored requests and failures for one batch."""
    stats: BatchStats
    results: List[ScoringResult]
    errors: List[ProcessingError]
    error_summary: Dict[str, int] = field(default_factory=dict)

    @staticmethod
    def merge_results(first: 'BatchResult', second: 'BatchResult') -> 'BatchResult':
        """
        Combine two batches into one report.

        Score bounds only come from batches that scored at least one request;
        the merged run spans the earliest start to the latest end.
        """
        both = (first.stats, second.stats)
        stats = BatchStats(**{name: sum(getattr(s, name) for s in both) for name in SUMMED_STATS})

        scored = [s for s in both if s.successful > 0]
        stats.min_score = min((s.min_score for s in scored), default=0.0)
        stats.max_score = max((s.max_score for s in scored), default=0.0)
        stats.start_time = min((s.start_time for s in both if s.start_time), default=None)
        stats.end_time = max((s.end_time for s in both if s.end_time), default=None)

        return BatchResult(
            stats=stats,
            results=first.results + second.results,
            errors=first.errors + second.errors,
            error_summary=dict(Counter(first.error_summary) + Counter(second.error_summary)),
        )


class TrustScoreBatchProcessor:
    """Batch processor for borrower scoring requests."""

    def __init__(self, config: Optional[EngineConfig] = None):
        """
        Initialize the batch processor.

        Args:
            config: Engine configuration shared by every request in the batch
        """
        self.scoring_engine = ScoringEngine(config=config)
        logger.info("Initialized batch processor")

    def process_batch(
        self,
        files: List[Tuple[str, bytes]],
        progress_callback: Optional[Callable[[int, int, str], None]] = None
    ) -> BatchResult:
        """
        Score a batch of request files.

        Args:
            files: List of (filename, content) tuples
            progress_callback: Optional callback(current, total, message)

        Returns:
            BatchResult with all processing results
        """
        stats = BatchStats(
            total_files=len(files),
            start_time=datetime.now()
        )

        results = []
        errors = []
        error_types: Counter = Counter()

        def record_error(filename: str, error_type: str, message: str) -> None:
            errors.append(ProcessingError(
                file_name=filename,
                error_type=error_type,
                error_message=message
            ))
            stats.record_failure()
            error_types[error_type] += 1

        logger.info("Starting batch processing of %d files", len(files))

        for idx, (filename, content) in enumerate(files):
            try:
                if progress_callback:
                    progress_callback(idx + 1, len(files), f"Processing: {filename}")

                logger.debug("Processing file %d/%d: %s", idx + 1, len(files), filename)

                result = self._process_single_request(filename=filename, content=content)

                results.append(result)
                stats.record(result)

            except json.JSONDecodeError as e:
                record_error(filename, "JSON_PARSE_ERROR", f"Invalid JSON: {e}")
                logger.error("JSON parse error in %s: %s", filename, e)

            except InvalidRequestStructureError as e:
                record_error(filename, "INVALID_REQUEST_STRUCTURE", str(e))
                logger.error("Invalid request structure in %s: %s", filename, e)

            except ValueError as e:
                record_error(filename, "DATA_VALIDATION_ERROR", str(e))
                logger.error("Data validation error in %s: %s", filename, e)

            except Exception as e:
                record_error(filename, "PROCESSING_ERROR", f"{type(e).__name__}: {e}")
                logger.error("Processing error in %s: %s", filename, traceback.format_exc())

        stats.end_time = datetime.now()

        if stats.successful == 0:
            stats.min_score = 0.0

        logger.info(
            "Batch processing complete: %d/%d successful, avg score: %.1f, "
            "avg certainty: %.2f, time: %.1fs",
            stats.successful, stats.total_files, stats.average_score,
            stats.average_certainty, stats.processing_time
        )

        return BatchResult(
            stats=stats,
            results=results,
            errors=errors,
            error_summary=dict(error_types)
        )

    def _process_single_request(self, filename: str, content: bytes) -> ScoringResult:
        """Parse and score a single request file."""
        try:
            data = json.loads(content.decode("utf-8"))
        except UnicodeDecodeError:
            # latin-1 accepts every byte value
            data = json.loads(content.decode("latin-1"))

        request = ScoringRequest.from_payload(data, request_ref=Path(filename).stem)
        return self.scoring_engine.score_request(request)

    def load_files_from_paths(self, paths: List[str]) -> List[Tuple[str, bytes]]:
        """
        Load request files from disk.
        Handles JSON files, ZIP archives and directories containing either.

        Args:
            paths: File or directory paths

        Returns:
            List of (filename, content) tuples
        """
        all_files = []

        for raw_path in paths:
            path = Path(raw_path)
            if path.is_dir():
                candidates = sorted(
                    p for p in path.iterdir() if p.suffix.lower() in (".json", ".zip")
                )
            else:
                candidates = [path]

            for candidate in candidates:
                if not candidate.exists():
                    logger.warning("Skipping missing file: %s", candidate)
                    continue

                content = candidate.read_bytes()
                if candidate.suffix.lower() == ".zip":
                    logger.info("Extracting ZIP archive: %s", candidate.name)
                    zip_files = self._extract_zip(content)
                    all_files.extend(zip_files)
                    logger.info("Extracted %d files from %s", len(zip_files), candidate.name)
                elif candidate.suffix.lower() == ".json":
                    all_files.append((candidate.name, content))
                else:
                    logger.warning("Skipping unsupported file: %s", candidate.name)

        logger.info("Total files loaded: %d", len(all_files))
        return all_files

    def _extract_zip(self, content: bytes) -> List[Tuple[str, bytes]]:
        """JSON members of a ZIP archive, keyed by base name."""
        with zipfile.ZipFile(io.BytesIO(content)) as archive:
            return [
                (Path(info.filename).name, archive.read(info))
                for info in archive.infolist()
                if not info.is_dir() and info.filename.lower().endswith(".json")
            ]

    def results_to_dataframe(self, results: List[ScoringResult]):
        """
        Convert scoring results to a pandas DataFrame.

        Args:
            results: List of ScoringResult objects

        Returns:
            pandas DataFrame with one row per request
        """
        import pandas as pd

        rows = []
        for result in results:
            credit = result.credit_recommendation
            row = {
                "Request Ref": result.request_ref,
                "Final Score": result.final_score,
                "Grade": result.grade,
                "Risk Tier": result.risk_tier,
                "Overall Certainty": round(result.overall_certainty, 4),
                "Certainty Label": result.certainty_label,
                "Trust Level": result.trust_level,
                "Raw Score": round(result.raw_score, 2),
                "Certified Score": round(result.certified_score, 2),
                "Certainty Penalty": round(result.certainty_penalty, 2),
                "Decision": credit.decision.value if credit else "",
                "Max Amount": credit.max_amount if credit else 0,
                "Max Tenor (Months)": credit.max_tenor_months if credit else 0,
                "Suggested Rate": credit.suggested_rate if credit else 0.0,
                "Conditions": "; ".join(credit.conditions) if credit else "",
                "Recommendations": "; ".join(result.recommendations),
                "Alerts": "; ".join(result.alerts),
            }

            # One column per category sub-score
            for sub_score in result.sub_scores:
                row[f"{sub_score.label} Score"] = round(sub_score.raw_value, 2)

            rows.append(row)

        return pd.DataFrame(rows)

    def errors_to_dataframe(self, errors: List[ProcessingError]):
        """One row per failed file."""
        import pandas as pd

        return pd.DataFrame([error.to_row() for error in errors], columns=ERROR_COLUMNS)


def main(paths: List[str], output_csv: Optional[str] = None) -> BatchResult:
    """Score every request file under the given paths and optionally write a CSV."""
    processor = TrustScoreBatchProcessor()
    files = processor.load_files_from_paths(paths)
    batch = processor.process_batch(files)

    print(f"Scored {batch.stats.successful}/{batch.stats.total_files} requests "
          f"({batch.stats.approved} approved, {batch.stats.declined} declined)")
    print(f"Average score: {batch.stats.average_score:.1f}, "
          f"average certainty: {batch.stats.average_certainty:.2f}")
    for error_type, count in sorted(batch.error_summary.items()):
        print(f"  {error_type}: {count}")

    if output_csv:
        processor.results_to_dataframe(batch.results).to_csv(output_csv, index=False)
        print(f"Results written to {output_csv}")

    return batch


if __name__ == "__main__":
    if len(sys.argv) < 2:
        raise SystemExit(
            "Usage: python trustscore_batch_processor.py <file_or_dir> [...] [--csv out.csv]"
        )

    args = sys.argv[1:]
    output = None
    if "--csv" in args:
        index = args.index("--csv")
        if index + 1 >= len(args):
            raise SystemExit("--csv requires an output path")
        output = args[index + 1]
        del args[index:index + 2]

    main(args, output)
