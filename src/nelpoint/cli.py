import os
import uvicorn

from nelpoint.log_config import configure_logging


def main():
    host = os.getenv("NEL_HOST", "127.0.0.1")
    port = int(os.getenv("NEL_PORT", "7000"))
    reload_ = os.getenv("NEL_RELOAD", "0") == "1"
    log_level = os.getenv("NEL_LOG_LEVEL", "info")

    configure_logging(log_level)
    uvicorn.run(
        "nelpoint.collector_app:app",
        host=host,
        port=port,
        reload=reload_,
        proxy_headers=os.getenv("NEL_PROXY_HEADERS", "0") == "1",
        log_level=log_level,
        log_config=None,
    )
