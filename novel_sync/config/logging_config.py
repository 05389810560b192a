# novel_sync/config/logging_config.py
# =============================================================================
# File: novel_sync/config/logging_config.py
# Description: Logging configuration using the Rich framework, with a JSON
#              formatter for production and per-logger env overrides
# =============================================================================

import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime
from typing import Optional, Dict, Any

from rich.box import DOUBLE, MINIMAL, SIMPLE
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean value from environment variable."""
    value = os.getenv(key, '').lower()
    return value in ('true', '1', 'yes', 'on') if value else default


def get_env_int(key: str, default: int) -> int:
    """Get integer value from environment variable."""
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default


NOVEL_SYNC_THEME = Theme({
    "debug": "magenta dim",
    "info": "green",
    "warning": "dark_goldenrod",
    "error": "red",
    "critical": "bold red",
    "success": "green3",
    "timestamp": "grey70",
    "logger_name": "grey35",
    "message": "grey85",
    "dim": "bright_black",
    "frame": "bright_blue",
    "header": "bold cyan",
})

# Border colour per service type, used by banners and status panels
_BORDER_COLORS = {
    'sync_worker': 'yellow',
    'recharge': 'bright_green',
    'reconciler': 'cyan',
}

_service_type: str = 'sync_worker'

_PLAIN_FORMAT = "[%(asctime)s] [%(levelname)-8s] [%(name)-40s] %(message)s"
_PLAIN_DATEFMT = "%Y-%m-%d %H:%M:%S"


class SyncRichHandler(RichHandler):
    """RichHandler with a compact single-line runtime layout"""

    def __init__(self, *args, **kwargs):
        kwargs.setdefault('show_time', False)
        kwargs.setdefault('show_level', False)
        kwargs.setdefault('show_path', False)
        kwargs.setdefault('enable_link_path', False)
        kwargs.setdefault('markup', True)
        kwargs.setdefault('rich_tracebacks', True)
        kwargs.setdefault('tracebacks_show_locals', False)
        super().__init__(*args, **kwargs)

    def format(self, record: logging.LogRecord) -> str:
        time_str = datetime.fromtimestamp(record.created).strftime('%H:%M:%S')

        level_style = record.levelname.lower()
        if level_style not in ('debug', 'info', 'warning', 'error', 'critical'):
            level_style = 'message'
        level_str = f"[{level_style}]{record.levelname:>7}[/{level_style}]"

        logger_name = record.name
        if len(logger_name) > 30:
            parts = logger_name.split('.')
            if len(parts) > 2:
                logger_name = f"{parts[0]}...{parts[-1]}"
        logger_str = f"[logger_name]{logger_name:>30}[/logger_name]"

        message = record.getMessage()
        if get_env_bool('LOG_CALLER_INFO', False) and record.pathname:
            message = f"{message} [{record.filename}:{record.lineno}]"

        line = f"[timestamp]{time_str}[/timestamp] {level_str} {logger_str}  {message}"
        if record.exc_info:
            line = f"{line}\n{self.formatter.formatException(record.exc_info) if self.formatter else ''}"
        return line

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.console.print(self.format(record), soft_wrap=True, highlight=False)
        except Exception:
            self.handleError(record)


class ProductionFormatter(logging.Formatter):
    """JSON formatter for production environments"""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON"""
        log_obj = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Correlation fields passed through `extra=`
        for attr in ('order_sn', 'event_name', 'block_number', 'tx_name'):
            if hasattr(record, attr):
                log_obj[attr] = getattr(record, attr)

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


def get_logger_level_from_env(logger_name: str, default_level: int) -> int:
    """Get logger level from environment variable."""
    # e.g. "novel_sync.infra.event_dispatch" -> "LOGLEVEL_NOVEL_SYNC_INFRA_EVENT_DISPATCH"
    env_name = f"LOGLEVEL_{logger_name.replace('.', '_').upper()}"

    level_str = os.getenv(env_name, '').upper()
    if level_str:
        level_map = {
            'DEBUG': logging.DEBUG,
            'INFO': logging.INFO,
            'WARNING': logging.WARNING,
            'WARN': logging.WARNING,
            'ERROR': logging.ERROR,
            'CRITICAL': logging.CRITICAL,
        }
        return level_map.get(level_str, default_level)

    return default_level


def setup_logging(
        service_name: str = "novel_sync",
        log_level: Optional[str] = None,
        log_file: Optional[str] = None,
        enable_json: Optional[bool] = None,
        service_type: Optional[str] = None,
) -> None:
    """
    Configure logging with Rich for terminals and JSON for production.

    Args:
        service_name: Name of the service (e.g., "sync_worker")
        log_level: Override log level (default: LOG_LEVEL env or INFO)
        log_file: Optional rotating log file path
        enable_json: Enable JSON formatting (default: LOG_JSON_FORMAT env)
        service_type: Service type used for banner colours
    """
    global _service_type
    _service_type = service_type or os.getenv('SERVICE_TYPE', 'sync_worker')

    level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_file = log_file or os.getenv("LOG_FILE")

    if enable_json is None:
        enable_json = get_env_bool('LOG_JSON_FORMAT', False)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    use_rich = not enable_json and (sys.stdout.isatty() or get_env_bool("FORCE_COLOR", False))

    if use_rich:
        console = Console(
            theme=NOVEL_SYNC_THEME,
            force_terminal=get_env_bool("FORCE_COLOR", False),
            width=get_env_int('LOG_CONSOLE_WIDTH', 0) or None,
        )
        handler = SyncRichHandler(console=console)
        handler.setFormatter(logging.Formatter())
        root_logger.addHandler(handler)

    elif enable_json:
        json_handler = logging.StreamHandler(sys.stdout)
        json_handler.setFormatter(ProductionFormatter())
        root_logger.addHandler(json_handler)

    else:
        plain_handler = logging.StreamHandler(sys.stdout)
        plain_handler.setFormatter(logging.Formatter(_PLAIN_FORMAT, datefmt=_PLAIN_DATEFMT))
        root_logger.addHandler(plain_handler)

    if log_file:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=get_env_int('LOG_MAX_SIZE_MB', 100) * 1024 * 1024,
            backupCount=get_env_int('LOG_BACKUP_COUNT', 5),
            encoding=os.getenv('LOG_FILE_ENCODING', 'utf-8'),
        )
        # Files always get the plain layout
        file_handler.setFormatter(logging.Formatter(_PLAIN_FORMAT, datefmt=_PLAIN_DATEFMT))
        root_logger.addHandler(file_handler)

    default_noise_config = {
        "asyncio": logging.WARNING,
        "httpx": logging.WARNING,
        "httpcore": logging.WARNING,
        "pymongo": logging.WARNING,
        "pymongo.topology": logging.WARNING,
        "pymongo.connection": logging.WARNING,
        "motor": logging.WARNING,
        "prometheus_client": logging.WARNING,

        "novel_sync.infra.event_dispatch": logging.INFO,
        "novel_sync.infra.ledger_http": logging.INFO,
        "novel_sync.ledger.gateway": logging.INFO,
    }

    for logger_name, default_level in default_noise_config.items():
        logging.getLogger(logger_name).setLevel(get_logger_level_from_env(logger_name, default_level))

    logger = logging.getLogger(f"{service_name}.startup")
    logger.info(f"Logging configured for {service_name} service")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Args:
        name: Logger name

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


def _rich_enabled() -> bool:
    return any(isinstance(h, SyncRichHandler) for h in logging.getLogger().handlers)


def log_worker_banner(logger: logging.Logger, worker_name: str, instance_id: str, version: str | None = None):
    """Log a banner for worker startup"""
    if version is None:
        from novel_sync import __version__
        version = __version__

    if not _rich_enabled():
        logger.info(f"{worker_name} v{version} starting (instance={instance_id}, pid={os.getpid()})")
        return

    console = Console(theme=NOVEL_SYNC_THEME)
    banner_text = f"""[bold cyan]{worker_name.upper()}[/bold cyan]
[dim]Version {version}[/dim]

[bold]Instance:[/bold] {instance_id}
[bold]PID:[/bold] {os.getpid()}
[bold]Started:[/bold] {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"""

    console.print()
    console.print(Panel(
        banner_text,
        title="[bold]WORKER STARTUP[/bold]",
        title_align="center",
        border_style=_BORDER_COLORS.get(_service_type, 'bright_blue'),
        box=DOUBLE,
        padding=(1, 2),
        width=min(console.width - 2, 60),
    ))
    console.print()


def log_metrics_table(logger: logging.Logger, title: str, metrics: Dict[str, Any]):
    """Log metrics in a table"""
    if not _rich_enabled():
        logger.info(f"{title}: " + ", ".join(f"{k}={v}" for k, v in metrics.items()))
        return

    console = Console(theme=NOVEL_SYNC_THEME)
    table = Table(title=title, box=SIMPLE, show_header=True, header_style="header")
    table.add_column("Metric", style="dim")
    table.add_column("Value", justify="right")
    for key, value in metrics.items():
        table.add_row(str(key), str(value))
    console.print(table)


def log_status_update(logger: logging.Logger, status: str, details: Optional[Dict[str, Any]] = None):
    """Log a status update with optional details"""
    if not _rich_enabled():
        logger.info(f"Status: {status}")
        if details:
            for key, value in details.items():
                logger.info(f"  {key}: {value}")
        return

    console = Console(theme=NOVEL_SYNC_THEME)
    status_text = f"[bold]Status:[/bold] [info]{status}[/info]"
    if details:
        status_text += "\n\n[bold]Details:[/bold]\n"
        for key, value in details.items():
            status_text += f"  • {key.replace('_', ' ').title()}: {value}\n"

    console.print()
    console.print(Panel(
        status_text.strip(),
        border_style=_BORDER_COLORS.get(_service_type, 'info'),
        box=MINIMAL,
        padding=(1, 2),
        width=min(console.width - 2, 90),
    ))

# =============================================================================
# EOF
# =============================================================================
