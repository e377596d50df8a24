"""
Configuration Management Module
Loads and validates configuration from config.yaml
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, Optional, List

import yaml

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class DatabaseConfig:
    """Database configuration"""
    host: str = "localhost"
    port: int = 5432
    user: str = "clearance_user"
    password: str = "clearance_password"
    name: str = "clearance_database"


@dataclass
class OfficeConfig:
    """Letterhead and signature block printed on every certificate"""
    republic: str = "Republic of the Philippines"
    department: str = "Department of Justice"
    office_name: str = "OFFICE OF THE CITY PROSECUTOR"
    city: str = "City of Tagbilaran"
    address: str = "Hall of Justice Building, Brgy. Cogon, Tagbilaran City"
    telephone: str = "Tel. No. 411-3403/411-2306"
    email: str = "Email: ocptagbilaran@doj.gov.ph"
    left_seal: str = "/images/logos/doj-seal.png"
    right_seal: str = "/images/logos/bagong-pilipinas.png"
    signatory_prefix: str = "FOR THE CITY PROSECUTOR:"
    signatory_name: str = "REGIE C. POCON"
    signatory_title: str = "Administrative Officer V"
    witness_place: str = "City of Tagbilaran, Bohol, Philippines"
    default_case_origin: str = "Tagbilaran City"

    def letterhead_lines(self) -> List[str]:
        return [
            self.republic,
            self.department,
            self.office_name,
            self.city,
            self.address,
            self.telephone,
            self.email,
        ]


@dataclass
class ClearanceConfig:
    """Issuance rules for clearance certificates"""
    or_number_prefix: str = "OCP"
    or_max_attempts: int = 5
    default_validity_period: str = "6 Months"
    validity_periods: List[str] = field(default_factory=lambda: ["6 Months", "1 Year"])
    min_age: int = 18
    max_age: int = 120
    name_max_length: int = 100
    purpose_fees: Dict[str, int] = field(default_factory=dict)


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"
    file: str = "logs/clearance.log"
    console: bool = True
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    security_log_dir: str = "logs"


@dataclass
class ApiConfig:
    """HTTP layer settings"""
    cors_origins: List[str] = field(default_factory=list)
    default_page_size: int = 10
    max_page_size: int = 100


class ConfigurationError(Exception):
    """Raised when configuration is invalid"""
    pass


class ConfigManager:
    """Manages system configuration"""

    _instance: Optional['ConfigManager'] = None

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration manager

        Args:
            config_path: Path to config.yaml file
        """
        self.config_path = Path(config_path) if config_path else self._find_config()
        self._raw_config: Dict[str, Any] = {}
        self.office: OfficeConfig = OfficeConfig()
        self.clearance: ClearanceConfig = ClearanceConfig()
        self.logging: LoggingConfig = LoggingConfig()
        self.api: ApiConfig = ApiConfig()
        self.database: DatabaseConfig = DatabaseConfig()

        if self.config_path and self.config_path.exists():
            self.load()
        else:
            logger.warning(f"Config file not found at {self.config_path}, using defaults")

    def _find_config(self) -> Path:
        """Find config.yaml in common locations"""
        env_path = os.getenv("CONFIG_PATH")
        search_paths = [
            Path(env_path) if env_path else None,
            Path.cwd() / "config.yaml",
            Path(__file__).parent / "config.yaml",
            Path(__file__).parent.parent / "config.yaml",
        ]

        for path in search_paths:
            if path is not None and path.exists():
                return path

        return Path.cwd() / "config.yaml"

    def load(self) -> None:
        """Load configuration from YAML file"""
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                self._raw_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")
        except FileNotFoundError:
            raise ConfigurationError(f"Config file not found: {self.config_path}")

        if not isinstance(self._raw_config, dict):
            raise ConfigurationError("Config file must contain a mapping at the top level")

        self._parse_office()
        self._parse_clearance()
        self._parse_logging()
        self._parse_api()
        self._parse_database()
        self._validate()

    def _parse_database(self) -> None:
        """Parse database configuration"""
        cfg = self._raw_config.get('database', {})
        self.database = DatabaseConfig(
            host=cfg.get('host', self.database.host),
            port=cfg.get('port', self.database.port),
            user=cfg.get('user', self.database.user),
            password=cfg.get('password', self.database.password),
            name=cfg.get('name', self.database.name)
        )

    def _parse_office(self) -> None:
        cfg = self._raw_config.get('office', {})
        defaults = OfficeConfig()
        self.office = OfficeConfig(**{
            key: cfg.get(key, getattr(defaults, key))
            for key in defaults.__dataclass_fields__
        })

    def _parse_clearance(self) -> None:
        """Parse clearance issuance configuration"""
        cfg = self._raw_config.get('clearance', {})
        self.clearance = ClearanceConfig(
            or_number_prefix=str(cfg.get('or_number_prefix', 'OCP')),
            or_max_attempts=int(cfg.get('or_max_attempts', 5)),
            default_validity_period=cfg.get('default_validity_period', '6 Months'),
            validity_periods=cfg.get('validity_periods', self.clearance.validity_periods),
            min_age=int(cfg.get('min_age', 18)),
            max_age=int(cfg.get('max_age', 120)),
            name_max_length=int(cfg.get('name_max_length', 100)),
            purpose_fees=cfg.get('purpose_fees', {}) or {}
        )

    def _parse_logging(self) -> None:
        """Parse logging configuration"""
        cfg = self._raw_config.get('logging', {})
        self.logging = LoggingConfig(
            level=cfg.get('level', 'INFO'),
            file=cfg.get('file', 'logs/clearance.log'),
            console=cfg.get('console', True),
            format=cfg.get('format', self.logging.format),
            security_log_dir=cfg.get('security_log_dir', 'logs')
        )

    def _parse_api(self) -> None:
        cfg = self._raw_config.get('api', {})
        self.api = ApiConfig(
            cors_origins=cfg.get('cors_origins', []) or [],
            default_page_size=int(cfg.get('default_page_size', 10)),
            max_page_size=int(cfg.get('max_page_size', 100))
        )

    @classmethod
    def get_instance(cls, config_path: Optional[str] = None) -> 'ConfigManager':
        """Get singleton instance of ConfigManager"""
        if cls._instance is None:
            cls._instance = ConfigManager(config_path)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset singleton instance (useful for testing)"""
        cls._instance = None

    def to_dict(self) -> Dict[str, Any]:
        """Export configuration as dictionary (database password omitted)"""
        return {
            'office': {
                'office_name': self.office.office_name,
                'city': self.office.city,
                'signatory_name': self.office.signatory_name,
                'signatory_title': self.office.signatory_title,
                'witness_place': self.office.witness_place
            },
            'clearance': {
                'or_number_prefix': self.clearance.or_number_prefix,
                'or_max_attempts': self.clearance.or_max_attempts,
                'default_validity_period': self.clearance.default_validity_period,
                'validity_periods': self.clearance.validity_periods,
                'min_age': self.clearance.min_age,
                'max_age': self.clearance.max_age
            },
            'logging': {
                'level': self.logging.level,
                'file': self.logging.file
            },
            'database': {
                'host': self.database.host,
                'port': self.database.port,
                'user': self.database.user,
                'name': self.database.name
            }
        }

    def _validate(self) -> None:
        """Validate configuration values

        Raises:
            ConfigurationError: If a value cannot produce valid certificates
        """
        clearance = self.clearance
        if not clearance.or_number_prefix.strip():
            raise ConfigurationError("clearance.or_number_prefix must not be empty")
        if clearance.min_age > clearance.max_age:
            raise ConfigurationError(
                f"clearance.min_age ({clearance.min_age}) is greater than "
                f"clearance.max_age ({clearance.max_age})"
            )
        if clearance.or_max_attempts < 1:
            raise ConfigurationError("clearance.or_max_attempts must be at least 1")
        if clearance.default_validity_period not in clearance.validity_periods:
            raise ConfigurationError(
                f"Unknown default validity period: {clearance.default_validity_period}"
            )
        for purpose, fee in clearance.purpose_fees.items():
            if not isinstance(fee, (int, float)) or fee < 0:
                raise ConfigurationError(f"Invalid fee for purpose '{purpose}': {fee}")
        if self.logging.level.upper() not in LOG_LEVELS:
            raise ConfigurationError(f"Unknown logging level: {self.logging.level}")


def configure_logging(config: LoggingConfig) -> None:
    """Apply logging configuration to the root logger"""
    handlers: List[logging.Handler] = []
    if config.console:
        handlers.append(logging.StreamHandler())
    if config.file:
        log_path = Path(config.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding='utf-8'))

    logging.basicConfig(
        level=getattr(logging, config.level.upper(), logging.INFO),
        format=config.format,
        handlers=handlers or None,
        force=True
    )


def get_config(config_path: Optional[str] = None) -> ConfigManager:
    """Convenience function to get configuration instance"""
    return ConfigManager.get_instance(config_path)
