import json
import logging
import datetime
import re
import sys


_POINTER = re.compile(r'0x[0-9a-fA-F]+')


def sanitize(message) -> str:
    """remove memory addresses like <HTTPSConnection(...) at 0x...> from messages"""
    return _POINTER.sub('<ptr>', str(message))


class StructuredLogger:

    def __init__(self, logger_name='StructuredLogger', level=logging.WARNING):
        self.logger = logging.getLogger(logger_name)
        self.logger.setLevel(level)

        # stdout carries the report, logs go to stderr
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            formatter = logging.Formatter('%(message)s')
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def set_level(self, level):
        if isinstance(level, str):
            level = logging.getLevelName(level.upper())
            if not isinstance(level, int):
                level = logging.WARNING
        self.logger.setLevel(level)

    def _log(self, level, message, **kwargs):
        log_entry = {
            'timestamp': datetime.datetime.now().isoformat(),
            'level': level.upper(),
            'message': message,
            **kwargs
        }
        json_log = json.dumps(log_entry, default=str)
        getattr(self.logger, level)(json_log) # Invoke the method corresponding to the level


    def info(self, message, **kwargs):
        self._log('info', message, **kwargs)

    def warning(self, message, **kwargs):
        self._log('warning', message, **kwargs)

    def error(self, message, **kwargs):
        self._log('error', message, **kwargs)

    def debug(self, message, **kwargs):
        self._log('debug', message, **kwargs)

app_logger = StructuredLogger('KeyprobeLogger')
