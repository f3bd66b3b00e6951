from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

import yaml
from jsonschema import ValidationError as SchemaValidationError
from jsonschema import validate
from pydantic import ValidationError

from procura.core.logging_config import logger
from procura.data_validators.tiers import validate_tier_set
from procura.domain.models import Request, SupplierOffering, VolumeTier
from procura.errors import CatalogError
from procura.schemas.request_input_v1 import RequestCreateV1


def schema_path() -> Path:
    # .../procura/storage/catalog_loader.py -> parents[1] = .../procura
    return Path(__file__).resolve().parents[1] / "schemas" / "catalog_v1.schema.json"


@dataclass
class Catalog:
    supplier_names: Dict[str, str] = field(default_factory=dict)
    offerings: List[SupplierOffering] = field(default_factory=list)
    requests: List[Request] = field(default_factory=list)


def _offering_from_dict(d: Dict[str, Any], supplier_names: Dict[str, str]) -> SupplierOffering:
    tiers = tuple(
        VolumeTier(
            min_quantity=str(t["min"]),
            max_quantity=None if t.get("max") is None else str(t["max"]),
            price=str(t["price"]),
        )
        for t in d.get("volume_tiers") or []
    )
    moq = d.get("minimum_order_quantity")
    return SupplierOffering(
        supplier_id=str(d["supplier_id"]),
        product_id=str(d["product_id"]),
        base_price=str(d["base_price"]),
        volume_tiers=tiers,
        available=bool(d.get("available", True)),
        supplier_name=supplier_names.get(str(d["supplier_id"])),
        supplier_product_code=d.get("supplier_product_code"),
        minimum_order_quantity=None if moq is None else str(moq),
    )


def catalog_from_dict(d: Dict[str, Any]) -> Catalog:
    with schema_path().open("r", encoding="utf-8") as f:
        schema = json.load(f)

    try:
        validate(instance=d, schema=schema)
    except SchemaValidationError as e:
        raise CatalogError(f"Catalog does not match schema: {e.message}") from e

    supplier_names = {str(s["id"]): str(s.get("name") or s["id"]) for s in d.get("suppliers") or []}

    offerings: List[SupplierOffering] = []
    errors: List[str] = []
    for idx, row in enumerate(d.get("offerings") or []):
        offering = _offering_from_dict(row, supplier_names)
        for p in validate_tier_set(offering.volume_tiers):
            errors.append(f"offerings[{idx}] ({offering.supplier_id}/{offering.product_id}) tier {p.index}: {p.code} {p.message}")
        offerings.append(offering)

    if errors:
        raise CatalogError("Malformed volume tiers: " + "; ".join(errors))

    requests: List[Request] = []
    for idx, row in enumerate(d.get("requests") or []):
        try:
            requests.append(RequestCreateV1.model_validate(row).to_domain())
        except ValidationError as e:
            raise CatalogError(f"requests[{idx}] is invalid: {e}") from e

    logger.bind(offerings=len(offerings), requests=len(requests), suppliers=len(supplier_names)).info("catalog_loaded")
    return Catalog(supplier_names=supplier_names, offerings=offerings, requests=requests)


def load_catalog(path: str | Path) -> Catalog:
    catalog_file = Path(path)
    try:
        with catalog_file.open("r", encoding="utf-8") as f:
            d = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise CatalogError(f"Cannot read catalog {catalog_file}: {e}") from e

    if not isinstance(d, dict):
        raise CatalogError(f"Catalog {catalog_file} must be a mapping at top level.")
    return catalog_from_dict(d)
