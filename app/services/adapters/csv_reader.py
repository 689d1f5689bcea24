"""
File Reader

Alternate ingestion path used when no billing export is configured. Reads
delimited usage data with pandas and yields UsageRow-shaped records.

Two layouts are understood:
1. Usage layout: timestamp, accountName, serviceName, region, usageType,
   usageAmount, usageUnit, cost
2. Precomputed layout: timestamp, accountName, serviceName, region, co2e
   (emissions already known; energy is back-derived from the region factor)
"""

from pathlib import Path
from typing import List, Dict, Any, Union

import pandas as pd
import structlog

from app.core.exceptions import ConfigurationError

logger = structlog.get_logger()

USAGE_COLUMNS = ["timestamp", "accountName", "serviceName", "region", "usageType", "usageAmount", "usageUnit"]
PRECOMPUTED_COLUMNS = ["timestamp", "accountName", "serviceName", "region", "co2e"]


class CsvUsageReader:
    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _load(self) -> pd.DataFrame:
        if not self.path.exists():
            raise ConfigurationError(f"Usage file not found: {self.path}")
        try:
            frame = pd.read_csv(self.path, dtype={"accountName": str, "region": str})
        except pd.errors.EmptyDataError:
            logger.warning("usage_file_empty", path=str(self.path))
            frame = pd.DataFrame(columns=USAGE_COLUMNS)
        frame["timestamp"] = pd.to_datetime(frame["timestamp"], utc=True)
        return frame

    def read(self) -> List[Dict[str, Any]]:
        """Rows as dicts with camelCase keys, timestamps as UTC datetimes."""
        frame = self._load()
        required = PRECOMPUTED_COLUMNS if "usageAmount" not in frame.columns else USAGE_COLUMNS
        missing = [c for c in required if c not in frame.columns]
        if missing:
            raise ConfigurationError(f"Usage file {self.path} is missing columns: {', '.join(missing)}")

        if "cost" not in frame.columns:
            frame["cost"] = 0.0
        frame = frame.fillna({"cost": 0.0, "region": "unknown", "accountName": "", "usageType": "", "usageUnit": ""})
        if "cpuUtilization" in frame.columns:
            # blank utilization means "not measured", not a number
            frame["cpuUtilization"] = frame["cpuUtilization"].astype(object).where(frame["cpuUtilization"].notna(), None)

        records = []
        for record in frame.to_dict(orient="records"):
            record["timestamp"] = record["timestamp"].to_pydatetime()
            records.append(record)

        logger.info("usage_file_loaded", path=str(self.path), rows=len(records))
        return records
