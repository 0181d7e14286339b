import logging

LOG_FORMAT = '%(asctime)s %(levelname)-8s %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'


def config_logger(logging_level):
    """Configures the root logger with *logging_level* (name or number).

    pika logs every frame at INFO/DEBUG, so its loggers are capped at WARNING.
    """
    logging.basicConfig(
        format=LOG_FORMAT,
        level=logging_level,
        datefmt=LOG_DATEFMT,
        force=True,
    )
    logging.getLogger("pika").setLevel(logging.WARNING)
