"""Small helpers for serialization across the persistence/API boundary."""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

import numpy as np
import pandas as pd

from portfolio_ledger_engine.decimal_utils import decimal_to_str


def make_json_safe(obj: Any) -> Any:
    """Recursively convert values into JSON-serializable forms.

    ``Decimal`` values become exact strings, never floats.
    """
    if isinstance(obj, Decimal):
        return decimal_to_str(obj)

    if isinstance(obj, Enum):
        return obj.value

    if hasattr(obj, "to_dict") and callable(obj.to_dict) and not isinstance(obj, (pd.DataFrame, pd.Series)):
        return make_json_safe(obj.to_dict())

    if is_dataclass(obj) and not isinstance(obj, type):
        return make_json_safe(asdict(obj))

    if isinstance(obj, dict):
        out = {}
        for key, value in obj.items():
            if isinstance(key, (pd.Timestamp, datetime, date)):
                safe_key = key.isoformat()
            elif isinstance(key, Enum):
                safe_key = key.value
            elif isinstance(key, (int, float, str, bool, type(None))):
                safe_key = key
            else:
                safe_key = str(key)
            out[safe_key] = make_json_safe(value)
        return out

    if isinstance(obj, (list, tuple)):
        return [make_json_safe(item) for item in obj]

    if isinstance(obj, pd.DataFrame):
        return [make_json_safe(row) for row in obj.to_dict("records")]

    if isinstance(obj, pd.Series):
        return {make_json_safe(k) if not isinstance(k, str) else k: make_json_safe(v) for k, v in obj.to_dict().items()}

    if isinstance(obj, np.ndarray):
        return [make_json_safe(item) for item in obj.tolist()]

    if isinstance(obj, np.integer):
        return int(obj)

    if isinstance(obj, np.floating):
        return None if np.isnan(obj) else float(obj)

    if isinstance(obj, np.bool_):
        return bool(obj)

    if isinstance(obj, (pd.Timestamp, datetime, date)):
        return obj.isoformat()

    if isinstance(obj, float) and obj != obj:
        return None

    if isinstance(obj, (int, float, str, bool, type(None))):
        return obj

    return str(obj)
