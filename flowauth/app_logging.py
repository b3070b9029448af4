import logging
from pythonjsonlogger import jsonlogger


def setup_logger(level: str = 'INFO') -> None:
    logHandler = logging.StreamHandler()
    formatter = jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s',
                                         rename_fields={'levelname': 'level', 'asctime': 'timestamp'})
    logHandler.setFormatter(formatter)
    logger = logging.getLogger()
    for handler in list(logger.handlers):
        if isinstance(getattr(handler, 'formatter', None), jsonlogger.JsonFormatter):
            logger.removeHandler(handler)
    logger.addHandler(logHandler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
