import logging

import layman

log_format = ' '.join([
    '%(asctime)s',
    '%(levelname)+7s',
    '%(threadName)s',
    '%(name)s:',
    '%(message)s'
])


def configure_script_logging(*loggers, verbose: bool = False):
    assert len(logging.getLogger().handlers) == 0, 'Logging is already configured.'
    _configure_logging(*loggers, verbose=verbose)


def configure_plugin_logging(*loggers, verbose: bool = False):
    """
    Configure logging for use inside a host process that may have configured
    logging already, in which case its handlers and the level of the root
    logger are left alone.
    """
    debug = _debug_level(verbose)
    for logger in {*loggers, layman.log}:
        logger.setLevel(layman_log_level(debug))
    root_logger = logging.getLogger()
    if not root_logger.hasHandlers():
        logging.basicConfig(format=log_format)


def get_test_logger(*names):
    return logging.getLogger(_test_logger_name(names))


def _test_logger_name(names):
    return '.'.join(('test', *names))


def configure_test_logging(*loggers):
    prefix = _test_logger_name('')
    expected = [(logger.name, True) for logger in loggers]
    actual = [(logger.name, logger.name.startswith(prefix)) for logger in loggers]
    assert actual == expected, actual
    _configure_logging(get_test_logger(), *loggers)


def _configure_logging(*loggers, verbose: bool = False):
    _configure_log_levels(*loggers, verbose=verbose)
    root_logger = logging.getLogger()
    if root_logger.hasHandlers():
        for handler in root_logger.handlers:
            handler.setFormatter(logging.Formatter(log_format))
    else:
        logging.basicConfig(format=log_format)


def _configure_log_levels(*loggers, verbose: bool = False):
    debug = _debug_level(verbose)
    logging.getLogger().setLevel(root_log_level(debug))
    for logger in {*loggers, layman.log}:
        logger.setLevel(layman_log_level(debug))


def _debug_level(verbose: bool) -> int:
    return max(layman.config.debug, int(verbose))


def root_log_level(debug: int) -> int:
    return [logging.WARN, logging.INFO, logging.DEBUG][debug]


def layman_log_level(debug: int) -> int:
    """
    >>> [logging.getLevelName(layman_log_level(debug)) for debug in range(3)]
    ['INFO', 'DEBUG', 'DEBUG']
    """
    return [logging.INFO, logging.DEBUG, logging.DEBUG][debug]
