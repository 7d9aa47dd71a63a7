from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence

import pandas as pd
from loguru import logger

from .errors import DatasetError
from .models import LocalityRecord

# (id, label, region)
BC_LOCALITIES: tuple[tuple[str, str, str], ...] = (
    ("vancouver", "Vancouver", "Metro Vancouver"),
    ("surrey", "Surrey", "Metro Vancouver"),
    ("burnaby", "Burnaby", "Metro Vancouver"),
    ("richmond", "Richmond", "Metro Vancouver"),
    ("coquitlam", "Coquitlam", "Metro Vancouver"),
    ("langley", "Langley", "Metro Vancouver"),
    ("delta", "Delta", "Metro Vancouver"),
    ("new-westminster", "New Westminster", "Metro Vancouver"),
    ("maple-ridge", "Maple Ridge", "Metro Vancouver"),
    ("white-rock", "White Rock", "Metro Vancouver"),
    ("port-coquitlam", "Port Coquitlam", "Metro Vancouver"),
    ("north-vancouver", "North Vancouver", "Metro Vancouver"),
    ("west-vancouver", "West Vancouver", "Metro Vancouver"),
    ("port-moody", "Port Moody", "Metro Vancouver"),
    ("pitt-meadows", "Pitt Meadows", "Metro Vancouver"),
    ("victoria", "Victoria", "Vancouver Island"),
    ("nanaimo", "Nanaimo", "Vancouver Island"),
    ("campbell-river", "Campbell River", "Vancouver Island"),
    ("courtenay", "Courtenay", "Vancouver Island"),
    ("comox", "Comox", "Vancouver Island"),
    ("duncan", "Duncan", "Vancouver Island"),
    ("ladysmith", "Ladysmith", "Vancouver Island"),
    ("parksville", "Parksville", "Vancouver Island"),
    ("qualicum-beach", "Qualicum Beach", "Vancouver Island"),
    ("port-alberni", "Port Alberni", "Vancouver Island"),
    ("saanich", "Saanich", "Vancouver Island"),
    ("kelowna", "Kelowna", "Okanagan Valley"),
    ("vernon", "Vernon", "Okanagan Valley"),
    ("penticton", "Penticton", "Okanagan Valley"),
    ("west-kelowna", "West Kelowna", "Okanagan Valley"),
    ("lake-country", "Lake Country", "Okanagan Valley"),
    ("peachland", "Peachland", "Okanagan Valley"),
    ("summerland", "Summerland", "Okanagan Valley"),
    ("oliver", "Oliver", "Okanagan Valley"),
    ("osoyoos", "Osoyoos", "Okanagan Valley"),
    ("abbotsford", "Abbotsford", "Fraser Valley"),
    ("chilliwack", "Chilliwack", "Fraser Valley"),
    ("mission", "Mission", "Fraser Valley"),
    ("hope", "Hope", "Fraser Valley"),
    ("agassiz", "Agassiz", "Fraser Valley"),
    ("harrison-hot-springs", "Harrison Hot Springs", "Fraser Valley"),
    ("kamloops", "Kamloops", "Interior BC"),
    ("cranbrook", "Cranbrook", "Interior BC"),
    ("trail", "Trail", "Interior BC"),
    ("castlegar", "Castlegar", "Interior BC"),
    ("nelson", "Nelson", "Interior BC"),
    ("revelstoke", "Revelstoke", "Interior BC"),
    ("salmon-arm", "Salmon Arm", "Interior BC"),
    ("sicamous", "Sicamous", "Interior BC"),
    ("golden", "Golden", "Interior BC"),
    ("invermere", "Invermere", "Interior BC"),
    ("kimberley", "Kimberley", "Interior BC"),
    ("fernie", "Fernie", "Interior BC"),
    ("prince-george", "Prince George", "Northern BC"),
    ("fort-st-john", "Fort St. John", "Northern BC"),
    ("dawson-creek", "Dawson Creek", "Northern BC"),
    ("fort-nelson", "Fort Nelson", "Northern BC"),
    ("terrace", "Terrace", "Northern BC"),
    ("prince-rupert", "Prince Rupert", "Northern BC"),
    ("smithers", "Smithers", "Northern BC"),
    ("hazelton", "Hazelton", "Northern BC"),
    ("houston", "Houston", "Northern BC"),
    ("burns-lake", "Burns Lake", "Northern BC"),
    ("williams-lake", "Williams Lake", "Northern BC"),
    ("quesnel", "Quesnel", "Northern BC"),
    ("100-mile-house", "100 Mile House", "Northern BC"),
    ("mackenzie", "Mackenzie", "Northern BC"),
    ("chetwynd", "Chetwynd", "Northern BC"),
    ("tumbler-ridge", "Tumbler Ridge", "Northern BC"),
)

TABLE_COLUMNS = ("id", "display_label", "region")


class LocalityDataset:
    def __init__(self, records: Sequence[LocalityRecord]) -> None:
        self.records: tuple[LocalityRecord, ...] = tuple(records)
        self.label_index: Dict[str, LocalityRecord] = {}
        for record in self.records:
            self.label_index.setdefault(record.display_label.lower(), record)

    @classmethod
    def bundled(cls) -> "LocalityDataset":
        return cls([LocalityRecord(id=rid, display_label=label, region=region) for rid, label, region in BC_LOCALITIES])

    @classmethod
    def from_table(cls, path: Path, sheet_name: Optional[str] = None) -> "LocalityDataset":
        if not path.exists():
            raise DatasetError(f"locality table not found: {path}")
        ext = path.suffix.lower()
        if ext in {".csv", ".txt"}:
            df = pd.read_csv(path, encoding="utf-8-sig", dtype=str)
        else:
            kwargs = {}
            if sheet_name is not None:
                kwargs["sheet_name"] = sheet_name
            df = pd.read_excel(path, dtype=str, **kwargs)
        missing = [col for col in TABLE_COLUMNS if col not in df.columns]
        if missing:
            raise DatasetError(f"locality table {path} is missing columns: {', '.join(missing)}")
        df = df.fillna("")
        records = [
            LocalityRecord(id=row["id"].strip(), display_label=row["display_label"].strip(), region=row["region"].strip())
            for row in df.to_dict(orient="records")
            if row["id"].strip() and row["display_label"].strip()
        ]
        logger.info("loaded {count} localities from {path}", count=len(records), path=path)
        return cls(records)

    def search(self, query: str) -> List[LocalityRecord]:
        """Case-insensitive substring match on label or region; a blank query returns everything."""
        term = query.strip().lower()
        if not term:
            return list(self.records)
        return [
            record
            for record in self.records
            if term in record.display_label.lower() or term in record.region.lower()
        ]

    def by_region(self, region: str) -> List[LocalityRecord]:
        return [record for record in self.records if record.region == region]

    def regions(self) -> List[str]:
        return list(dict.fromkeys(record.region for record in self.records))

    def is_known(self, label: str) -> bool:
        return label.strip().lower() in self.label_index

    def lookup(self, label: str) -> Optional[LocalityRecord]:
        return self.label_index.get(label.strip().lower())

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[LocalityRecord]:
        return iter(self.records)
