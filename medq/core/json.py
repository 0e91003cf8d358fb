"""Custom JSON handling."""

from __future__ import annotations

import datetime
import json
from decimal import Decimal
from typing import Any

from fastapi.responses import JSONResponse


class MedqJSONEncoder(json.JSONEncoder):
  """JSON encoder for numeric and timestamp column values."""

  def default(self, obj: Any) -> Any:
    if isinstance(obj, Decimal):
      return int(obj) if obj % 1 == 0 else float(obj)
    if isinstance(obj, datetime.datetime):
      return obj.isoformat()
    return super().default(obj)


class MedqJSONResponse(JSONResponse):
  """JSONResponse that uses MedqJSONEncoder."""

  def render(self, content: Any) -> bytes:
    return json.dumps(content, ensure_ascii=False, allow_nan=False, indent=None, separators=(",", ":"), cls=MedqJSONEncoder).encode("utf-8")
