import os

import uvicorn

from ledger_ingest.app import app
from ledger_ingest.core import settings
from ledger_ingest.logger import get_logging_config

if __name__ == "__main__":
    uvicorn.run(
        app,
        host=os.getenv("HOST", "0.0.0.0"),
        port=settings.get_env_int("PORT", 8000, min_value=1),
        log_config=get_logging_config(),
    )
