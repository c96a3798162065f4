"""Assemble the ``flutter_assets`` directory from the app's ``pubspec.yaml``."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping
import json
import shutil

import yaml

from core.config_loader import load_config_file

from .errors import ConfigError, MissingArtifactError

PUBSPEC = "pubspec.yaml"
ASSET_MANIFEST = "AssetManifest.json"
FONT_MANIFEST = "FontManifest.json"
MATERIAL_ICONS_FAMILY = "MaterialIcons"
MATERIAL_ICONS_FONT = Path("materialdesignicons") / "MaterialIcons-Regular.otf"
MATERIAL_ICONS_ASSET = "fonts/MaterialIcons-Regular.otf"


@dataclass(slots=True)
class FontAsset:
    asset: str
    weight: int | None = None
    style: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "FontAsset":
        asset = data.get("asset")
        if not isinstance(asset, str) or not asset:
            raise ConfigError("every font entry needs a non-empty 'asset'")
        weight = data.get("weight")
        if weight is not None and (isinstance(weight, bool) or not isinstance(weight, int)):
            raise ConfigError(f"font weight of '{asset}' must be an integer")
        style = data.get("style")
        if style is not None and not isinstance(style, str):
            raise ConfigError(f"font style of '{asset}' must be a string")
        return cls(asset=asset, weight=weight, style=style)

    def to_manifest(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"asset": self.asset}
        if self.weight is not None:
            entry["weight"] = self.weight
        if self.style is not None:
            entry["style"] = self.style
        return entry


@dataclass(slots=True)
class FontFamily:
    family: str
    fonts: List[FontAsset] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "FontFamily":
        family = data.get("family")
        if not isinstance(family, str) or not family:
            raise ConfigError("every font family needs a non-empty 'family'")
        fonts = data.get("fonts") or []
        if not isinstance(fonts, list) or not all(isinstance(font, Mapping) for font in fonts):
            raise ConfigError(f"'fonts' of family '{family}' must be a list of mappings")
        return cls(family=family, fonts=[FontAsset.from_mapping(font) for font in fonts])

    def to_manifest(self) -> Dict[str, Any]:
        return {"family": self.family, "fonts": [font.to_manifest() for font in self.fonts]}


@dataclass(slots=True)
class AssetBundle:
    """The assets and fonts an app declares under the ``flutter`` key of its pubspec.

    Asset entries ending in ``/`` name a directory whose direct children are
    bundled. The material icon font is added when ``uses-material-design``
    is set.
    """

    root_dir: Path
    material_fonts: Path
    assets: List[str] = field(default_factory=list)
    fonts: List[FontFamily] = field(default_factory=list)
    uses_material_design: bool = False

    @classmethod
    def new(cls, root_dir: Path, material_fonts: Path) -> "AssetBundle":
        pubspec = root_dir / PUBSPEC
        if not pubspec.is_file():
            raise MissingArtifactError(pubspec)
        try:
            data = load_config_file(pubspec)
        except (ValueError, TypeError, yaml.YAMLError) as exc:
            raise ConfigError(f"{pubspec}: {exc}") from exc
        return cls.from_mapping(data.get("flutter") or {}, root_dir=root_dir, material_fonts=material_fonts)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, root_dir: Path, material_fonts: Path) -> "AssetBundle":
        if not isinstance(data, Mapping):
            raise ConfigError("'flutter' section must be a mapping")
        assets = data.get("assets") or []
        if not isinstance(assets, list) or not all(isinstance(asset, str) and asset for asset in assets):
            raise ConfigError("'assets' must be a list of paths")
        fonts = data.get("fonts") or []
        if not isinstance(fonts, list) or not all(isinstance(family, Mapping) for family in fonts):
            raise ConfigError("'fonts' must be a list of font families")
        return cls(
            root_dir=root_dir,
            material_fonts=material_fonts,
            assets=list(assets),
            fonts=[FontFamily.from_mapping(family) for family in fonts],
            uses_material_design=bool(data.get("uses-material-design", False)),
        )

    def asset_files(self) -> List[str]:
        """Every bundled asset path relative to the app root, in declaration order."""
        files: List[str] = []
        for entry in self.assets:
            source = self.root_dir / entry
            if entry.endswith("/"):
                if not source.is_dir():
                    raise MissingArtifactError(source, "asset directory does not exist")
                children = sorted(child.name for child in source.iterdir() if child.is_file())
                files.extend(f"{entry}{name}" for name in children)
            else:
                if not source.is_file():
                    raise MissingArtifactError(source, "asset does not exist")
                files.append(entry)
        for family in self.fonts:
            for font in family.fonts:
                if not (self.root_dir / font.asset).is_file():
                    raise MissingArtifactError(self.root_dir / font.asset, "font asset does not exist")
                files.append(font.asset)
        return list(dict.fromkeys(files))

    def font_families(self) -> List[FontFamily]:
        families = list(self.fonts)
        if self.uses_material_design:
            families.append(FontFamily(MATERIAL_ICONS_FAMILY, [FontAsset(MATERIAL_ICONS_ASSET)]))
        return families

    def assemble(self, flutter_assets: Path) -> None:
        """Write the bundle into *flutter_assets*, replacing what was there."""
        files = self.asset_files()
        material_icons = self.material_fonts / MATERIAL_ICONS_FONT
        if self.uses_material_design and not material_icons.is_file():
            raise MissingArtifactError(material_icons)

        if flutter_assets.exists():
            shutil.rmtree(flutter_assets)
        flutter_assets.mkdir(parents=True)
        for name in files:
            _copy(self.root_dir / name, flutter_assets / name)
        if self.uses_material_design:
            _copy(material_icons, flutter_assets / MATERIAL_ICONS_ASSET)

        manifest = {name: [name] for name in files}
        (flutter_assets / ASSET_MANIFEST).write_text(json.dumps(manifest, indent=2) + "\n", encoding="utf-8")
        fonts = [family.to_manifest() for family in self.font_families()]
        (flutter_assets / FONT_MANIFEST).write_text(json.dumps(fonts, indent=2) + "\n", encoding="utf-8")


def _copy(source: Path, dest: Path) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(source, dest)


__all__ = [
    "ASSET_MANIFEST",
    "AssetBundle",
    "FONT_MANIFEST",
    "FontAsset",
    "FontFamily",
    "MATERIAL_ICONS_ASSET",
    "MATERIAL_ICONS_FAMILY",
]
