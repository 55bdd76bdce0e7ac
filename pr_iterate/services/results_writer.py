"""
Results Writer
==============
Serializes the final Report into a JSON file.
"""
import json
import logging
import os

from pr_iterate.models.report import Report

logger = logging.getLogger(__name__)


class ResultsWriter:
    """
    Service responsible for persisting the full history of a remediation run
    as a structured JSON file.
    """

    @staticmethod
    def write_report(report: Report, output_path: str = "pr-iterate-report.json") -> bool:
        """
        Write the report to `output_path`. Returns False (and logs) on failure.
        """
        try:
            abs_output = os.path.abspath(output_path)
            parent = os.path.dirname(abs_output)
            if parent:
                os.makedirs(parent, exist_ok=True)

            logger.info("Writing final report to %s", abs_output)
            with open(abs_output, "w", encoding="utf-8") as f:
                json.dump(report.model_dump(mode="json"), f, indent=2)
            return True

        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to write report %s: %s", output_path, e, exc_info=True)
            return False
