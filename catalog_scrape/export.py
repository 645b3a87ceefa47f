from pathlib import Path
from typing import Iterable, Optional

import orjson
from slugify import slugify

from .schema import EnrichedProduct


def export_path(export_dir: str, store_name: str, category: str) -> Path:
    return Path(export_dir) / f"items-{slugify(store_name)}-{slugify(category)}.jsonl"


def append_jsonl(path: Path, obj: dict):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "ab") as f:
        f.write(orjson.dumps(obj) + b"\n")


def export_products(export_dir: str, store_name: str, category: str, products: Iterable[EnrichedProduct]) -> Optional[Path]:
    path = export_path(export_dir, store_name, category)
    written = 0
    for product in products:
        append_jsonl(path, product.model_dump(mode="json"))
        written += 1
    return path if written else None
