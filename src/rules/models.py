from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RendererRules(BaseModel):
    binary: str = "rrdtool"
    args: list[str] = Field(default_factory=lambda: ["-"])
    working_directory: str | None = None


class CacheRules(BaseModel):
    timeout_seconds: float = Field(default=120.0, ge=0)
    check_interval_seconds: float = Field(default=30.0, gt=0)


class ReportRules(BaseModel):
    root_dir: str = "~/Documents/SystemDataScope"
    tick_seconds: float = Field(default=0.25, ge=0)
    dir_format: str = "%Y-%m-%d_%H-%M-%S"

    @property
    def root_path(self) -> Path:
        return Path(self.root_dir).expanduser()


class ColorRules(BaseModel):
    main: str | None = None
    secondary: str | None = None


class ImageRules(BaseModel):
    image_format: str = "PNG"
    default_aspect_ratio: float = Field(default=0.5, gt=0)
    fonts: dict[str, int] = Field(default_factory=dict)
    colors: ColorRules = Field(default_factory=ColorRules)

    @field_validator("fonts")
    @classmethod
    def upper_font_tags(cls, v: dict[str, int]) -> dict[str, int]:
        return {tag.upper(): size for tag, size in v.items()}


class LoggingRules(BaseModel):
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ImageTypeRules(BaseModel):
    command: str
    full_size: bool = False
    fonts: dict[str, int] = Field(default_factory=dict)


class Rules(BaseModel):
    renderer: RendererRules = Field(default_factory=RendererRules)
    cache: CacheRules = Field(default_factory=CacheRules)
    report: ReportRules = Field(default_factory=ReportRules)
    images: ImageRules = Field(default_factory=ImageRules)
    logging: LoggingRules = Field(default_factory=LoggingRules)
    types: dict[str, ImageTypeRules] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")
