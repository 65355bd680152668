import logging, sys
from app.settings import settings

NOISY_LOGGERS = ("httpx", "httpcore", "qdrant_client", "pdfminer")


def configure_logging():
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if settings.PIPELINE_DEBUG_LOG:
        # full per-stage trace for the pipeline, kept apart from stdout
        pipeline_logger = logging.getLogger("evaluation_pipeline")
        fh = logging.FileHandler(settings.PIPELINE_DEBUG_LOG, mode="a", encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        if not any(isinstance(h, logging.FileHandler) for h in pipeline_logger.handlers):
            pipeline_logger.addHandler(fh)
