from typing import Any

import orjson
from fastapi.responses import JSONResponse


class IndentedORJSONResponse(JSONResponse):
    """JSON response rendered by orjson with two-space indentation."""

    def render(self, content: Any) -> bytes:
        return orjson.dumps(content, option=orjson.OPT_INDENT_2 | orjson.OPT_NON_STR_KEYS)
