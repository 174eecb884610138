import asyncio
import logging
import logging.handlers
from relay.config import settings
from relay.ws_server import run_ws_server

def setup_logging():
    loglevel = settings.LOG_LEVEL.upper()
    # основной лог в stdout
    logging.basicConfig(
        level=loglevel,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    # отдельный логгер для диагностики авторизации
    auth_logger = logging.getLogger("auth_diag")
    handler = logging.handlers.RotatingFileHandler(
        settings.AUTH_DIAG_LOG, maxBytes=10 * 1024 * 1024, backupCount=3, encoding="utf-8"
    )
    handler.setFormatter(logging.Formatter("%(asctime)s | %(message)s"))
    auth_logger.setLevel(logging.INFO)
    auth_logger.addHandler(handler)

async def main():
    setup_logging()
    mode = "авторизация" if settings.AUTH_ENABLED else "общая комната"
    logging.info(f"Старт релея, режим: {mode}, JWKS={settings.jwks_url}")
    await run_ws_server(settings)

if __name__ == "__main__":
    asyncio.run(main())
