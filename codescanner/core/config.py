from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from codescanner.core.errors import ConfigError

logger = logging.getLogger(__name__)

C_FAMILY = ["c", "cpp", "cc", "cxx", "c++", "h", "hpp"]
POLYGLOT = ["c", "cpp", "h", "hpp", "js", "py", "java", "go"]


class Settings(BaseModel):
    DATA_DIR: str = os.getenv("DATA_DIR", "data")

    # Optional JSON overlay for per-scanner settings (see ScannerConfigStore)
    SCANNER_CONFIG_PATH: str | None = os.getenv("SCANNER_CONFIG_PATH")

    # Job lifecycle
    STALE_SCAN_MINUTES: int = int(os.getenv("STALE_SCAN_MINUTES", "30"))
    DEFAULT_TIMEOUT_MS: int = int(os.getenv("DEFAULT_TIMEOUT_MS", "300000"))
    DEFAULT_TOOLS: list[str] = ["semgrep", "snyk", "clangTidy"]

    # Storage: "local" (JSON files under DATA_DIR) or "memory"
    STORAGE_BACKEND: str = os.getenv("STORAGE_BACKEND", "local")


settings = Settings()


class ScannerSettings(BaseModel):
    """Runtime configuration of one scanner adapter."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    path: str
    enabled: bool = True
    timeout_ms: int = Field(settings.DEFAULT_TIMEOUT_MS, alias="timeoutMs")
    supported_languages: list[str] = Field(default_factory=list, alias="supportedLanguages")
    version: str = "1.0"
    description: str = ""
    website: str = ""

    # tool specific
    rules: str | None = None
    checks: str | None = None
    docker_path: str = Field("docker", alias="dockerPath")
    docker_image: str | None = Field(None, alias="dockerImage")
    clang_path: str | None = Field(None, alias="clangPath")

    @property
    def extensions(self) -> list[str]:
        return [f".{lang.lower()}" for lang in self.supported_languages]


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw and raw.isdigit() else default


def default_scanner_settings() -> dict[str, ScannerSettings]:
    """Built-in scanner table, overridable through environment variables."""
    return {
        "semgrep": ScannerSettings(
            path=os.getenv("SEMGREP_PATH", "semgrep"),
            timeout_ms=_env_int("SEMGREP_TIMEOUT_MS", 300000),
            supported_languages=POLYGLOT,
            description="Lightweight static analysis for many languages",
            website="https://semgrep.dev/",
            rules=os.getenv("SEMGREP_RULES_PATH"),
            docker_image=os.getenv("SEMGREP_DOCKER_IMAGE", "returntocorp/semgrep"),
        ),
        "snyk": ScannerSettings(
            path=os.getenv("SNYK_PATH", "snyk"),
            timeout_ms=_env_int("SNYK_TIMEOUT_MS", 800000),
            supported_languages=POLYGLOT,
            description="Snyk Code static application security testing",
            website="https://snyk.io/",
        ),
        "clangTidy": ScannerSettings(
            path=os.getenv("CLANGTIDY_PATH", "clang-tidy"),
            timeout_ms=_env_int("CLANGTIDY_TIMEOUT_MS", 300000),
            supported_languages=["c", "cpp", "cc", "cxx", "h", "hpp", "hxx"],
            description="Clang-based C++ linter tool",
            website="https://clang.llvm.org/extra/clang-tidy/",
            checks=os.getenv("CLANGTIDY_CHECKS"),
        ),
        "cppcheck": ScannerSettings(
            path=os.getenv("CPPCHECK_PATH", "cppcheck"),
            timeout_ms=_env_int("CPPCHECK_TIMEOUT_MS", 180000),
            supported_languages=C_FAMILY,
            version="2.0",
            description="Static analysis tool for C/C++ code",
            website="https://cppcheck.sourceforge.io/",
        ),
        "clangStaticAnalyzer": ScannerSettings(
            path=os.getenv("CLANG_STATIC_ANALYZER_PATH", "scan-build"),
            timeout_ms=_env_int("CLANG_STATIC_ANALYZER_TIMEOUT_MS", 300000),
            supported_languages=C_FAMILY + ["m", "mm"],
            description="Source code analysis tool that finds bugs in C, C++, and Objective-C programs",
            website="https://clang-analyzer.llvm.org/",
            clang_path=os.getenv("CLANG_PATH", "clang"),
        ),
        "cppcheckCustom": ScannerSettings(
            path=os.getenv("DOCKER_PATH", "docker"),
            timeout_ms=_env_int("CPPCHECK_CUSTOM_TIMEOUT_MS", 300000),
            supported_languages=C_FAMILY,
            description="Custom Cppcheck scanner using Docker with custom rule files",
            website="https://cppcheck.sourceforge.io/",
            rules=os.getenv("CPPCHECK_CUSTOM_RULES_PATH", str(Path("rules") / "cppcheck-custom")),
            docker_path=os.getenv("DOCKER_PATH", "docker"),
            docker_image=os.getenv("CPPCHECK_DOCKER_IMAGE", "neszt/cppcheck-docker"),
        ),
    }


def _aliased(overrides: dict) -> dict:
    # the file may use either field names or their camelCase aliases
    out = {}
    for key, value in overrides.items():
        field = ScannerSettings.model_fields.get(key)
        out[field.alias if field and field.alias else key] = value
    return out


class ScannerConfigStore:
    """
    Explicit holder of per-scanner settings.

    Built from the defaults above and, when ``path`` is given, overlaid with
    the JSON file at that path. The file is only re-read on ``reload()``.
    """

    UPDATABLE_FIELDS = {"path", "enabled", "timeout_ms"}

    def __init__(self, path: Path | None = None, defaults: dict[str, ScannerSettings] | None = None):
        self.path = path
        self._defaults = defaults if defaults is not None else default_scanner_settings()
        self._config: dict[str, ScannerSettings] = {}
        self.reload()

    def reload(self) -> None:
        config = {name: s.model_copy(deep=True) for name, s in self._defaults.items()}

        if self.path and self.path.exists():
            try:
                data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
            except json.JSONDecodeError as e:
                raise ConfigError(f"Invalid scanner config {self.path}: {e}") from e

            for name, overrides in (data or {}).items():
                base = config.get(name)
                merged = {**(base.model_dump(by_alias=True) if base else {}), **_aliased(overrides or {})}
                try:
                    config[name] = ScannerSettings.model_validate(merged)
                except ValidationError as e:
                    raise ConfigError(f"Invalid settings for scanner {name}: {e}") from e
            logger.info("Loaded scanner config from %s", self.path)

        self._config = config

    def names(self) -> list[str]:
        return list(self._config.keys())

    def get(self, name: str) -> ScannerSettings | None:
        return self._config.get(name)

    def update(self, name: str, **fields) -> ScannerSettings:
        current = self._config.get(name)
        if current is None:
            raise ConfigError(f"Unknown scanner: {name}")

        allowed = {k: v for k, v in fields.items() if k in self.UPDATABLE_FIELDS}
        updated = current.model_copy(update=allowed)
        self._config[name] = updated
        self.save()
        return updated

    def save(self) -> None:
        if not self.path:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            name: s.model_dump(by_alias=True, include={"path", "enabled", "timeout_ms"})
            for name, s in self._config.items()
        }
        self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
