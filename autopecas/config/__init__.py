"""Public config package exports."""

from .constants import ErpConfig as ErpConfig
from .constants import KvKeys as KvKeys
from .constants import Messages as Messages
from .constants import PerformanceConfig as PerformanceConfig
from .constants import ReconcileConfig as ReconcileConfig
from .constants import ScoreWeights as ScoreWeights
from .constants import SearchConfig as SearchConfig
from .constants import ServerConfig as ServerConfig
from .exceptions import AutopecasError as AutopecasError
from .exceptions import ConfigurationError as ConfigurationError
from .exceptions import ErpNotConfiguredError as ErpNotConfiguredError
from .exceptions import ErpNotConnectedError as ErpNotConnectedError
from .exceptions import ErpUnavailableError as ErpUnavailableError
from .exceptions import InvalidQueryError as InvalidQueryError
from .exceptions import UpstreamError as UpstreamError
from .exceptions import ValidationError as ValidationError
from .logging_config import get_logger as get_logger
from .logging_config import setup_logging as setup_logging

__all__ = [
    "ErpConfig",
    "KvKeys",
    "Messages",
    "PerformanceConfig",
    "ReconcileConfig",
    "ScoreWeights",
    "SearchConfig",
    "ServerConfig",
    "AutopecasError",
    "ConfigurationError",
    "ErpNotConfiguredError",
    "ErpNotConnectedError",
    "ErpUnavailableError",
    "InvalidQueryError",
    "UpstreamError",
    "ValidationError",
    "setup_logging",
    "get_logger",
]
