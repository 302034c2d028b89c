"""
Log Parsers Module

Provides grammars for common log formats and the LogParser that
combines them:
- Apache/Nginx access logs
- Syslog format
- Authentication logs (auth.log)
"""

from .base_parser import BaseParser, LogRecord
from .apache_parser import ApacheParser
from .nginx_parser import NginxParser
from .syslog_parser import SyslogParser
from .auth_parser import AuthLogParser
from .log_parser import LogParser, ParseResult

__all__ = [
    'BaseParser',
    'LogRecord',
    'ApacheParser',
    'NginxParser',
    'SyslogParser',
    'AuthLogParser',
    'LogParser',
    'ParseResult',
]
