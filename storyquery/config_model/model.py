from __future__ import annotations
from typing import Literal, Optional
from pathlib import Path
import os
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr


# ---------- Leaf models ----------

class EnvCfg(BaseModel):
    project_name: str = "storyquery"


class LoggingCfg(BaseModel):
    level: str = "INFO"
    structured_json: bool = True


class EngineCfg(BaseModel):
    model_config = ConfigDict(extra="forbid")

    default_context: Literal["text", "object"] = "text"
    default_target: Optional[str] = "card"
    # 0 = unbounded
    cache_max_entries: int = Field(default=0, ge=0)
    log_failures: bool = True


class BuiltinsCfg(BaseModel):
    model_config = ConfigDict(extra="forbid")

    fuzzy_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    near_max_distance: int = Field(default=50, ge=0)


class RecordsCfg(BaseModel):
    title_field: str = "title"


# ---------- Root ----------

class RootCfg(BaseModel):
    env: EnvCfg = EnvCfg()
    logging: LoggingCfg = LoggingCfg()
    engine: EngineCfg = EngineCfg()
    builtins: BuiltinsCfg = BuiltinsCfg()
    records: RecordsCfg = RecordsCfg()

    _config_dir: Optional[Path] = PrivateAttr(default=None)

    @property
    def config_dir(self) -> Optional[Path]:
        return self._config_dir

    @classmethod
    def from_toml(cls, path: str | os.PathLike[str]) -> "RootCfg":
        try:
            import tomllib  # py>=3.11
        except ImportError:
            import tomli as tomllib

        p = Path(path)

        def _parse_raw_dict() -> dict:
            # 1) normal binary parse
            try:
                with p.open("rb") as f:
                    return tomllib.load(f)
            except (tomllib.TOMLDecodeError, UnicodeDecodeError):
                pass

            # 2) retry: utf-8-sig strips a BOM; also drop pasted code fences
            text = p.read_text(encoding="utf-8-sig", errors="replace")
            cleaned = text.strip()
            if cleaned.startswith("```"):
                cleaned = cleaned.lstrip("`").strip()
                if cleaned.endswith("```"):
                    cleaned = cleaned.rstrip("`").strip()
            cleaned = cleaned.lstrip("\ufeff\u200b\u200c\u200d\u2060")

            try:
                return tomllib.loads(cleaned)
            except tomllib.TOMLDecodeError as e:
                snippet = cleaned[:80].replace("\n", "\\n")
                raise RuntimeError(
                    f"Failed to parse TOML at {p} after BOM/cleanup. "
                    f"First chars: {snippet!r}"
                ) from e

        raw = _parse_raw_dict()
        for section in ("env", "logging", "engine", "builtins", "records"):
            raw.setdefault(section, {})

        cfg = cls(
            env=EnvCfg(**raw["env"]),
            logging=LoggingCfg(**raw["logging"]),
            engine=EngineCfg(**raw["engine"]),
            builtins=BuiltinsCfg(**raw["builtins"]),
            records=RecordsCfg(**raw["records"]),
        )
        cfg._config_dir = p.parent.resolve()
        return cfg

    @classmethod
    def load(cls, path: str | os.PathLike[str] | None = None) -> "RootCfg":
        final = Path(path or os.environ.get("STORYQUERY_CFG", "config/config.toml")).resolve()
        return cls.from_toml(final)


def load_config(path: str | os.PathLike[str] | None = None) -> RootCfg:
    return RootCfg.load(path)
