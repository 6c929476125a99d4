from __future__ import annotations

import uvicorn

from cyclescope.core.config import settings
from cyclescope.main import app


if __name__ == "__main__":
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
