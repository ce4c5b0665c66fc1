"""
Command line pipeline for CustomerMerge.

Loads a customer export, finds duplicate groups, optionally applies a merge
plan, and writes the groups, merge results, and consolidated customer
files to an output directory.
"""

import argparse
import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from customer_merge.audit.merge_audit_log import create_merge_audit_log
from customer_merge.ingestion.record_loader import CustomerRecordLoader
from customer_merge.merge.merger import BatchMergeResult
from customer_merge.models import DuplicateGroup
from customer_merge.normalize.config import DEFAULT_CONFIG_PATH, load_config
from customer_merge.pipeline.service import CustomerMergeService
from customer_merge.reporting.summary import (
    build_analytics,
    consolidated_records,
    groups_to_frame,
    records_to_frame,
    summarize_groups,
    unique_records,
)
from customer_merge.storage.record_store import InMemoryRecordStore

logger = logging.getLogger(__name__)


class CustomerMergePipeline:
    """
    Orchestrates one CLI run.

    Records live in an in-memory store for the duration of the run.
    """

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH):
        """
        Initialize pipeline with configuration.

        Args:
            config_path: Path to configuration file
        """
        self.config_path = config_path
        self.config = load_config(config_path)

        self.store = InMemoryRecordStore()
        self.audit_log = create_merge_audit_log(self.config.get("audit", {}))
        self.service = CustomerMergeService(self.store, self.config, audit_log=self.audit_log)

        self.groups: List[DuplicateGroup] = []
        self.pipeline_start_time = None
        self.stage_times: Dict[str, float] = {}
        self.stage_durations: Dict[str, float] = {}

        logger.info("Initialized CustomerMerge pipeline")

    def _start_stage_timer(self, stage_name: str):
        """Start timing for a pipeline stage."""
        self.stage_times[stage_name] = time.time()
        logger.info(f"Starting stage: {stage_name}")

    def _end_stage_timer(self, stage_name: str):
        """End timing for a pipeline stage."""
        if stage_name in self.stage_times:
            duration = time.time() - self.stage_times[stage_name]
            self.stage_durations[stage_name] = duration
            logger.info(f"Completed stage: {stage_name} in {duration:.2f} seconds")

    def ingest_data(self, input_path: str) -> int:
        """
        Load customer rows into the record store.

        Args:
            input_path: CSV or JSON-lines customer export

        Returns:
            Number of records created
        """
        self._start_stage_timer("data_ingestion")

        try:
            if input_path.endswith(".csv"):
                df = pd.read_csv(input_path, dtype=str, keep_default_na=False, skip_blank_lines=True)
            elif input_path.endswith(".json") or input_path.endswith(".jsonl"):
                df = pd.read_json(input_path, lines=True, dtype=False)
            else:
                raise ValueError(f"Unsupported file format: {input_path}")

            existing_ids = [record.external_id for record in self.store.get_all()]
            loader = CustomerRecordLoader(self.config.get("ingestion", {}), existing_ids)
            created = self.store.bulk_create(loader.load_frame(df))

            logger.info(f"Ingested {len(created)} records from {input_path}")

            self._end_stage_timer("data_ingestion")
            return len(created)

        except Exception as e:
            logger.error(f"Data ingestion failed: {e}")
            raise

    def find_duplicates(self) -> Dict[str, Any]:
        """
        Run the matcher over the stored records.

        Returns:
            Dictionary with duplicate groups and their count
        """
        self._start_stage_timer("duplicate_detection")
        self.groups = self.service.find_duplicate_groups()
        result = {
            "duplicate_groups": [group.to_dict() for group in self.groups],
            "total": len(self.groups),
        }
        logger.info(f"Found {result['total']} duplicate groups")
        self._end_stage_timer("duplicate_detection")
        return result

    def apply_merge_plan(self, plan_path: str) -> BatchMergeResult:
        """
        Apply a batch merge plan.

        Args:
            plan_path: JSON file shaped like a batch merge request

        Returns:
            Batch merge result
        """
        self._start_stage_timer("record_merging")

        try:
            with open(plan_path, 'r', encoding="utf-8") as f:
                plan = json.load(f)

            batch = self.service.apply_batch(plan)

            self._end_stage_timer("record_merging")
            return batch

        except Exception as e:
            logger.error(f"Record merging failed: {e}")
            raise

    def generate_report(self, original_count: int,
                        batch: Optional[BatchMergeResult]) -> Dict[str, Any]:
        """
        Generate the run report.

        Args:
            original_count: Number of ingested records
            batch: Merge plan result, if a plan was applied

        Returns:
            Report dictionary
        """
        records = self.store.get_all()
        report = {
            "pipeline_execution": {
                "start_time": datetime.fromtimestamp(self.pipeline_start_time).isoformat()
                if self.pipeline_start_time else None,
                "end_time": datetime.now().isoformat(),
                "stage_times": self.stage_durations,
                "total_duration": time.time() - self.pipeline_start_time if self.pipeline_start_time else 0
            },
            "analytics": build_analytics(records),
            "group_summary": summarize_groups(self.groups),
        }

        if batch is not None:
            report["merge_statistics"] = self.service.merger.get_merge_statistics(batch, original_count)

        if self.audit_log is not None:
            report["audit_metrics"] = self.audit_log.get_audit_metrics()

        return report

    def run_pipeline(self, input_path: str, output_path: Optional[str] = None,
                     merge_plan_path: Optional[str] = None) -> Dict[str, Any]:
        """
        Run the complete CustomerMerge pipeline.

        Args:
            input_path: Path to customer export
            output_path: Directory for output files (optional)
            merge_plan_path: Batch merge plan to apply (optional)

        Returns:
            Pipeline execution report
        """
        self.pipeline_start_time = time.time()
        logger.info(f"Starting CustomerMerge pipeline for {input_path}")

        original_count = self.ingest_data(input_path)
        duplicates = self.find_duplicates()

        batch = None
        if merge_plan_path:
            batch = self.apply_merge_plan(merge_plan_path)

        report = self.generate_report(original_count, batch)
        report["duplicate_groups"] = duplicates["total"]

        if output_path:
            self._save_results(duplicates, batch, output_path)

        logger.info(f"Pipeline completed in {time.time() - self.pipeline_start_time:.2f} seconds")
        return report

    def _save_results(self, duplicates: Dict[str, Any], batch: Optional[BatchMergeResult],
                      output_path: str):
        """Save pipeline results to specified path."""
        output_dir = Path(output_path)
        output_dir.mkdir(parents=True, exist_ok=True)

        records = self.store.get_all()

        with open(output_dir / "duplicate_groups.json", 'w', encoding="utf-8") as f:
            json.dump(duplicates, f, indent=2, ensure_ascii=False)

        groups_to_frame(self.groups).to_csv(output_dir / "duplicate_group_members.csv", index=False)

        if batch is not None:
            with open(output_dir / "merge_results.json", 'w', encoding="utf-8") as f:
                json.dump(batch.to_dict(), f, indent=2)

        records_to_frame(consolidated_records(records)).to_csv(
            output_dir / "consolidated_customers.csv", index=False
        )
        records_to_frame(unique_records(records)).to_csv(
            output_dir / "unique_customers.csv", index=False
        )

        logger.info(f"Results saved to {output_path}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CustomerMerge duplicate detection and merge")
    parser.add_argument("--input", required=True, help="Customer export (CSV or JSON lines)")
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Configuration file path")
    parser.add_argument("--output", help="Output directory path")
    parser.add_argument("--merge-plan", help="JSON batch merge plan to apply")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point for the CustomerMerge CLI."""
    args = _build_parser().parse_args(argv)

    Path("logs").mkdir(exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler("logs/customer_merge.log")
        ]
    )

    try:
        pipeline = CustomerMergePipeline(args.config)
        report = pipeline.run_pipeline(
            input_path=args.input,
            output_path=args.output,
            merge_plan_path=args.merge_plan
        )
    except Exception as e:
        logger.error(f"Pipeline execution failed: {e}")
        sys.exit(1)

    analytics = report["analytics"]
    print("\n" + "=" * 50)
    print("CUSTOMER MERGE SUMMARY")
    print("=" * 50)
    print(f"Customers: {analytics['total_customers']:,}")
    print(f"Duplicate Groups: {report['duplicate_groups']:,}")
    print(f"Merged Into Others: {analytics['duplicates_count']:,}")
    print(f"Unique Customers: {analytics['unique_customers']:,}")
    if "merge_statistics" in report:
        stats = report["merge_statistics"]
        print(f"Merge Groups Applied: {stats['merge_groups']:,} ({stats['failed_groups']:,} failed)")
    print(f"Total Duration: {report['pipeline_execution']['total_duration']:.2f} seconds")
    print("=" * 50)


if __name__ == "__main__":
    main()
