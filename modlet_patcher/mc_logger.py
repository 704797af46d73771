"""
MC Logger for 7 Days to Die Modlet Patcher

One process-wide logger shared by every component. Documents are merged on worker
threads, so records carry the thread name; messages are prefixed with the component
name in brackets by the callers, e.g. "[MergeRun] items.xml: ...".

Handlers:
    - stdout, always
    - a rotating log file, unless LOG_FILE is empty
    - syslog, when a local syslog socket exists

Classes that call this class:
    - modletPatcher.py (main script)
    - All other modules, through the module-level helpers

Methods called from this class:
    - info, debug, error, warning, critical: Called from various parts of the project
    - set_log_level: Called from the main script with the --log-level / --debug choice
    - delete_old_logs: Called after a run to prune rotated log files

Visual map:
[mc_logger.py] -> [stdout, rotating log file, syslog]
               <- [modletPatcher.py]
               <- [All other modules for logging]
"""

import glob
import logging
import logging.handlers
import os
import sys
import time
from typing import List
from .configuration import get_config, get_int_config, versioned

LOGGER_NAME = 'ModletPatcher'
LOG_FORMAT = '%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s'
SYSLOG_SOCKETS = {'darwin': '/var/run/syslog'}


@versioned("1.0.0")
class MCLogger:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(MCLogger, cls).__new__(cls)
            cls._instance._configure()
        return cls._instance

    def _configure(self) -> None:
        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(get_config('LOG_LEVEL', 'INFO').upper())
        self.logger.propagate = False
        self.logger.handlers.clear()
        self.log_file = get_config('LOG_FILE', 'modlet_patcher.log')

        formatter = logging.Formatter(LOG_FORMAT)
        for handler in self._build_handlers():
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def _build_handlers(self) -> List[logging.Handler]:
        handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]

        if self.log_file:
            handlers.append(logging.handlers.RotatingFileHandler(
                self.log_file,
                maxBytes=get_int_config('LOG_MAX_BYTES', 1024 * 1024),
                backupCount=get_int_config('LOG_BACKUP_COUNT', 5),
                encoding='utf-8',
            ))

        syslog_socket = SYSLOG_SOCKETS.get(sys.platform, '/dev/log')
        if os.path.exists(syslog_socket):
            try:
                handlers.append(logging.handlers.SysLogHandler(address=syslog_socket))
            except OSError as e:
                print(f"Warning: Unable to initialize syslog handler: {e}")
        return handlers

    def log(self, level: int, message: str, exc_info: bool = False) -> None:
        self.logger.log(level, message, exc_info=exc_info)

    def set_log_level(self, level: str) -> None:
        level = level.upper()
        self.logger.setLevel(level)
        for handler in self.logger.handlers:
            handler.setLevel(level)
        self.logger.debug(f"Log level set to {level}")

    def get_log_level(self) -> str:
        return logging.getLevelName(self.logger.level)

    def delete_old_logs(self) -> int:
        """
        Delete rotated log files (modlet_patcher.log.1, .2, ...) older than LOG_MAX_AGE_DAYS.

        Returns:
            int: Number of files deleted
        """
        if not self.log_file:
            return 0
        cutoff = time.time() - get_int_config('LOG_MAX_AGE_DAYS', 30) * 86400
        deleted = 0
        for file_path in glob.glob(f"{glob.escape(os.path.abspath(self.log_file))}.*"):
            if os.path.getmtime(file_path) < cutoff:
                os.remove(file_path)
                deleted += 1
                self.logger.info(f"Deleted old log file: {os.path.basename(file_path)}")
        return deleted

# Create a single instance of MCLogger
logger = MCLogger()

# Add convenience functions to access the logger directly
def info(message: str) -> None:
    logger.log(logging.INFO, message)

def debug(message: str) -> None:
    logger.log(logging.DEBUG, message)

def error(message: str, exc_info: bool = False) -> None:
    logger.log(logging.ERROR, message, exc_info=exc_info)

def warning(message: str) -> None:
    logger.log(logging.WARNING, message)

def critical(message: str) -> None:
    logger.log(logging.CRITICAL, message)

def set_log_level(level: str) -> None:
    logger.set_log_level(level)

def get_log_level() -> str:
    return logger.get_log_level()

def delete_old_logs() -> int:
    return logger.delete_old_logs()
