"""
Configuration Management

시스템 설정 관리
"""

import os
import yaml
import logging
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Tuple
from pathlib import Path
from logging.handlers import RotatingFileHandler


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    """환경 변수 조회 (Actions 입력값 INPUT_<NAME> 도 허용)"""
    value = os.getenv(name)
    if value is None or value == "":
        value = os.getenv(f"INPUT_{name}")
    if value is None or value == "":
        return default
    return value


def _getenv_bool(name: str, default: str) -> bool:
    return _getenv(name, default).lower() == "true"


def _split_patterns(raw: Optional[str]) -> List[str]:
    """콤마/줄바꿈으로 구분된 glob 패턴 목록"""
    if not raw:
        return []
    return [p.strip() for p in raw.replace('\n', ',').split(',') if p.strip()]


@dataclass
class GiteaConfig:
    """Gitea API 설정"""
    token: Optional[str] = None
    api_base_url: Optional[str] = None
    timeout_seconds: int = 30


@dataclass
class LLMConfig:
    """언어 모델 호출 설정"""
    api_key: Optional[str] = None
    model: str = "gpt-4"
    base_url: Optional[str] = None
    temperature: float = 0.2
    max_tokens: int = 700
    top_p: float = 1.0
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0
    timeout_seconds: float = 60.0
    max_retries: int = 0
    json_mode_models: Tuple[str, ...] = ("gpt-4-1106-preview",)

    def sampling_params(self) -> Dict[str, Any]:
        """completion 요청에 넘길 모델/샘플링 파라미터"""
        return {
            'model': self.model,
            'temperature': self.temperature,
            'max_tokens': self.max_tokens,
            'top_p': self.top_p,
            'frequency_penalty': self.frequency_penalty,
            'presence_penalty': self.presence_penalty,
        }

    @property
    def json_mode(self) -> bool:
        return self.model in self.json_mode_models


@dataclass
class ReviewConfig:
    """리뷰 파이프라인 설정"""
    max_concurrency: int = 4
    fragment_timeout_seconds: float = 120.0
    run_timeout_seconds: float = 1800.0
    validate_line_numbers: bool = True
    post_comments: bool = False
    exclude_patterns: List[str] = field(default_factory=list)


@dataclass
class LoggingConfig:
    """로깅 설정"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_path: Optional[str] = None
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5


@dataclass
class AppConfig:
    """전체 애플리케이션 설정"""
    gitea: GiteaConfig
    llm: LLMConfig
    review: ReviewConfig
    logging: LoggingConfig
    event_path: Optional[str] = None
    workspace: str = "."
    debug: bool = False

    @classmethod
    def from_env(cls) -> "AppConfig":
        """환경 변수에서 설정 로드"""
        return cls(
            gitea=GiteaConfig(
                token=_getenv("API_TOKEN_GITEA"),
                api_base_url=_getenv("API_URL_GITEA"),
                timeout_seconds=int(_getenv("GITEA_TIMEOUT", "30")),
            ),
            llm=LLMConfig(
                api_key=_getenv("OPENAI_API_KEY"),
                model=_getenv("OPENAI_API_MODEL", "gpt-4"),
                base_url=_getenv("OPENAI_BASE_URL"),
                temperature=float(_getenv("LLM_TEMPERATURE", "0.2")),
                max_tokens=int(_getenv("LLM_MAX_TOKENS", "700")),
                top_p=float(_getenv("LLM_TOP_P", "1")),
                frequency_penalty=float(_getenv("LLM_FREQUENCY_PENALTY", "0")),
                presence_penalty=float(_getenv("LLM_PRESENCE_PENALTY", "0")),
                timeout_seconds=float(_getenv("LLM_TIMEOUT", "60")),
                max_retries=int(_getenv("LLM_MAX_RETRIES", "0")),
            ),
            review=ReviewConfig(
                max_concurrency=int(_getenv("MAX_CONCURRENCY", "4")),
                fragment_timeout_seconds=float(_getenv("FRAGMENT_TIMEOUT", "120")),
                run_timeout_seconds=float(_getenv("RUN_TIMEOUT", "1800")),
                validate_line_numbers=_getenv_bool("VALIDATE_LINE_NUMBERS", "true"),
                post_comments=_getenv_bool("POST_COMMENTS", "false"),
                exclude_patterns=_split_patterns(_getenv("EXCLUDE")),
            ),
            logging=LoggingConfig(
                level=_getenv("LOG_LEVEL", "INFO"),
                format=_getenv("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
                file_path=_getenv("LOG_FILE"),
                max_file_size=int(_getenv("LOG_MAX_SIZE", str(10 * 1024 * 1024))),
                backup_count=int(_getenv("LOG_BACKUP_COUNT", "5")),
            ),
            event_path=_getenv("GITHUB_EVENT_PATH"),
            workspace=_getenv("GITHUB_WORKSPACE", "."),
            debug=_getenv_bool("DEBUG", "false"),
        )

    @classmethod
    def from_yaml(cls, config_path: str) -> "AppConfig":
        """YAML 파일에서 설정 로드"""
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        llm_data = dict(config_data.get('llm', {}))
        if 'json_mode_models' in llm_data:
            llm_data['json_mode_models'] = tuple(llm_data['json_mode_models'])

        return cls(
            gitea=GiteaConfig(**config_data.get('gitea', {})),
            llm=LLMConfig(**llm_data),
            review=ReviewConfig(**config_data.get('review', {})),
            logging=LoggingConfig(**config_data.get('logging', {})),
            event_path=config_data.get('event_path'),
            workspace=config_data.get('workspace', '.'),
            debug=config_data.get('debug', False),
        )

    def validate(self) -> None:
        """설정 유효성 검사"""
        errors = []

        # 필수 자격 증명 확인
        if not self.gitea.token:
            errors.append("Gitea token is required")
        if not self.gitea.api_base_url:
            errors.append("Gitea API URL is required")
        if not self.llm.api_key:
            errors.append("OpenAI API key is required")
        if not self.llm.model:
            errors.append("OpenAI model is required")

        if not 0.0 <= self.llm.temperature <= 2.0:
            errors.append("Temperature must be between 0.0 and 2.0")
        if self.llm.max_tokens <= 0:
            errors.append("Max tokens must be positive")
        if self.llm.max_retries < 0:
            errors.append("Max retries must be non-negative")

        if self.review.max_concurrency <= 0:
            errors.append("Max concurrency must be positive")
        if self.review.fragment_timeout_seconds <= 0 or self.review.run_timeout_seconds <= 0:
            errors.append("Timeouts must be positive")

        # 로그 레벨 검증
        valid_log_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        if self.logging.level.upper() not in valid_log_levels:
            errors.append(f"Invalid log level: {self.logging.level}")

        if errors:
            raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")

    def to_dict(self) -> Dict[str, Any]:
        """설정을 딕셔너리로 변환"""
        return {
            'gitea': {
                'api_base_url': self.gitea.api_base_url,
                'timeout_seconds': self.gitea.timeout_seconds,
                # 보안상 토큰은 제외
            },
            'llm': {
                'model': self.llm.model,
                'base_url': self.llm.base_url,
                'temperature': self.llm.temperature,
                'max_tokens': self.llm.max_tokens,
                'top_p': self.llm.top_p,
                'frequency_penalty': self.llm.frequency_penalty,
                'presence_penalty': self.llm.presence_penalty,
                'timeout_seconds': self.llm.timeout_seconds,
                'max_retries': self.llm.max_retries,
                'json_mode_models': list(self.llm.json_mode_models),
            },
            'review': {
                'max_concurrency': self.review.max_concurrency,
                'fragment_timeout_seconds': self.review.fragment_timeout_seconds,
                'run_timeout_seconds': self.review.run_timeout_seconds,
                'validate_line_numbers': self.review.validate_line_numbers,
                'post_comments': self.review.post_comments,
                'exclude_patterns': list(self.review.exclude_patterns),
            },
            'logging': {
                'level': self.logging.level,
                'format': self.logging.format,
                'file_path': self.logging.file_path,
                'max_file_size': self.logging.max_file_size,
                'backup_count': self.logging.backup_count,
            },
            'event_path': self.event_path,
            'workspace': self.workspace,
            'debug': self.debug,
        }


def setup_logging(config: LoggingConfig, debug: bool = False) -> None:
    """로깅 설정"""
    # An unknown level falls back to INFO here; AppConfig.validate() reports it
    level = logging.DEBUG if debug else getattr(logging, config.level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=config.format)

    # 파일 로깅이 설정된 경우 로테이션 설정
    if config.file_path:
        handler = RotatingFileHandler(
            config.file_path,
            maxBytes=config.max_file_size,
            backupCount=config.backup_count,
        )
        handler.setFormatter(logging.Formatter(config.format))

        # 루트 로거에 핸들러 추가
        logging.getLogger().addHandler(handler)
