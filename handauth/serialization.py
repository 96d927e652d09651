"""Serialization for signature Templates

This module provides functions to serialize/deserialize templates to plain
dicts and JSON so they can be stored on disk and shipped to worker processes.

Only the running statistics of every surviving region are persisted, never
the enrolled images themselves.
"""

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict
import json

from handauth.config import TEMPLATE_EXTENSION, TEMPLATE_FORMAT_VERSION
from handauth.features import FeatureMap, OnlineFeature
from handauth.geometry import RegionGeometry
from handauth.models import FeatureType, TemplateSettings
from handauth.template import Template


def _feature_map_to_dict(feature_map: FeatureMap) -> Dict[str, Dict[str, float]]:
    return {
        feature_type.value: {
            'mean': float(f.mean),
            'variance': float(f.variance),
            'std': float(f.std),
            'min': float(f.min),
            'max': float(f.max)
        }
        for feature_type, f in feature_map.items()
    }


def _feature_map_from_dict(data: Dict[str, Dict[str, float]]) -> FeatureMap:
    feature_map: FeatureMap = {}
    for name, stats in data.items():
        feature = OnlineFeature(FeatureType(name))
        feature.mean = float(stats['mean'])
        feature.variance = float(stats['variance'])
        feature.std = float(stats['std'])
        feature.min = float(stats['min'])
        feature.max = float(stats['max'])
        feature_map[feature.feature_type] = feature
    return feature_map


def template_to_dict(template: Template) -> Dict[str, Any]:
    """Serialize template to a JSON-compatible dictionary.

    Args:
        template: Template object (enrolled or empty)

    Returns:
        Dictionary with settings, geometry and the statistics of every region
    """
    settings = template.settings
    geometry = template.geometry
    return {
        'version': TEMPLATE_FORMAT_VERSION,
        'rows': int(template.rows),
        'cols': int(template.cols),
        'samples': int(template.samples),
        'settings': {
            'areas': sorted(a.value for a in settings.areas),
            'features': sorted(f.value for f in settings.features),
            'basic_features': [f.value for f in settings.basic_features],
            'region_features': [f.value for f in settings.region_features]
        },
        'geometry': None if geometry is None else {
            'height': geometry.height,
            'width': geometry.width
        },
        'basic': _feature_map_to_dict(template.basic),
        'grid': [
            {'row': r, 'col': c, 'features': _feature_map_to_dict(m)}
            for (r, c), m in template.grid.items()
        ],
        'row': [
            {'row': r, 'features': _feature_map_to_dict(m)}
            for r, m in template.row.items()
        ],
        'col': [
            {'col': c, 'features': _feature_map_to_dict(m)}
            for c, m in template.col.items()
        ]
    }


def template_from_dict(data: Dict[str, Any]) -> Template:
    """Deserialize template from dictionary.

    The geometry is recomputed from the stored image size, so a stored
    template passes the same validation as a freshly enrolled one.

    Args:
        data: Dictionary produced by template_to_dict

    Returns:
        Template object

    Raises:
        ValueError: If the format version is not supported
        GridConfigError: If the stored geometry is invalid
    """
    version = data.get('version', TEMPLATE_FORMAT_VERSION)
    if version != TEMPLATE_FORMAT_VERSION:
        raise ValueError(f"Unsupported template format version: {version}")

    settings_data = data.get('settings', {})
    defaults = TemplateSettings()
    settings = TemplateSettings(
        areas=settings_data.get('areas', defaults.areas),
        features=settings_data.get('features', defaults.features),
        basic_features=settings_data.get('basic_features', defaults.basic_features),
        region_features=settings_data.get('region_features', defaults.region_features)
    )

    rows, cols = int(data['rows']), int(data['cols'])
    template = Template(rows, cols, settings=settings)
    template.samples = int(data.get('samples', 0))

    geometry = data.get('geometry')
    if geometry is not None:
        template.geometry = RegionGeometry.create(int(geometry['height']), int(geometry['width']), rows, cols)

    template.basic = _feature_map_from_dict(data.get('basic', {}))
    template.grid = {
        (int(entry['row']), int(entry['col'])): _feature_map_from_dict(entry['features'])
        for entry in data.get('grid', [])
    }
    template.row = {int(entry['row']): _feature_map_from_dict(entry['features']) for entry in data.get('row', [])}
    template.col = {int(entry['col']): _feature_map_from_dict(entry['features']) for entry in data.get('col', [])}

    return template


def template_to_json(template: Template) -> str:
    """Serialize template to JSON string.

    Args:
        template: Template object

    Returns:
        JSON string
    """
    return json.dumps(template_to_dict(template), indent=2)


def template_from_json(json_str: str) -> Template:
    """Deserialize template from JSON string.

    Args:
        json_str: JSON string with template data

    Returns:
        Template object
    """
    return template_from_dict(json.loads(json_str))


def save_template(template: Template, path: Path, overwrite: bool = True) -> Path:
    """Write template as JSON, adding the template extension if missing.

    Args:
        template: Template object
        path: Output file path
        overwrite: Replace an existing file (default True)

    Returns:
        Path the template was written to

    Raises:
        FileExistsError: If path exists and overwrite is False
    """
    path = Path(path)
    if path.suffix != TEMPLATE_EXTENSION:
        path = path.with_suffix(TEMPLATE_EXTENSION)

    if path.exists() and not overwrite:
        raise FileExistsError(f"Template already exists: {path}")

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(template_to_json(template), encoding='utf-8')
    return path


def load_template(path: Path) -> Template:
    """Read a template written by save_template.

    Raises:
        FileNotFoundError: If path does not exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Template not found: {path}")
    return template_from_json(path.read_text(encoding='utf-8'))

