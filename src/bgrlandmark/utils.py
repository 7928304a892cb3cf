"""
Shared helper functions and utilities.

Logging setup and loading/saving of the JSON configuration file.
"""

import copy
import json
import logging
import os
from datetime import datetime
from pathlib import Path

from .patterns import NUM_CODES

LOGGER = logging.getLogger(__name__)


def setup_logging(level=logging.INFO):
    """Set up logging configuration.

    Args:
        level: Logging level (default: INFO)
    """
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    LOGGER.debug("Logging initialized")


DEFAULT_CONFIG = {
    # Detector
    'landmark': {
        'template_dim': 11,
        'corr_threshold': 1.0,  # on |positive - negative| correlation, 0 to 2
        'pixel_range_threshold': 64,
        'pixel_darkness_threshold': 128,
        'bgr_range_threshold': 64,
        'shape_threshold': 0.4,  # max TM_SQDIFF_NORMED residual, null disables
        'hue_epsilon': 0.25,
        'maxima_kernel': 3,
        # 'range', 'range_shape', 'range_shape_color'
        'strategy': 'range_shape_color',
        'check_black_corners': True,
        'keep_unclassified': False,
        'pattern': 'BW+',

        # Preprocessing of the grayscale matching frame
        'preprocess': {
            'channel': None,  # 0/1/2 select B/G/R, None converts to gray
            'equalize': False,
            'pre_blur': 0,
        },
    },

    # Calibration grid
    'calibration': {
        'grid_cols': 4,
        'grid_rows': 3,
        'row_major': True,
        'grid_spacing': 1.0,
    },
}


def _merge(base, override):
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def get_config(config_path=None):
    """Load configuration from file or return defaults.

    Nested sections in the file override the matching default keys only.

    Args:
        config_path: Path to configuration file (optional)

    Returns:
        dict: Configuration dictionary
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if config_path and os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                loaded_config = json.load(f)
            _merge(config, loaded_config)
            LOGGER.info("Configuration loaded from %s", config_path)
        except (OSError, ValueError) as e:
            LOGGER.warning("Failed to load config from %s: %s", config_path, e)
    elif config_path:
        LOGGER.warning("Config file %s not found, using defaults", config_path)

    return config


def save_config(config, config_path):
    """Save configuration to file.

    Args:
        config: Configuration dictionary
        config_path: Path to save configuration file

    Returns:
        bool: True if save successful, False otherwise
    """
    try:
        with open(config_path, 'w') as f:
            json.dump(config, f, indent=4)
        LOGGER.info("Configuration saved to %s", config_path)
        return True
    except (OSError, TypeError) as e:
        LOGGER.error("Failed to save config to %s: %s", config_path, e)
        return False


def validate_config(config):
    """Validate configuration structure.

    Values are clamped by the detector configuration, so only the presence
    and types of the sections are checked here.

    Args:
        config: Configuration dictionary

    Returns:
        bool: True if valid, False otherwise
    """
    for section in ('landmark', 'calibration'):
        if not isinstance(config.get(section), dict):
            LOGGER.error("Missing required config section: %s", section)
            return False

    calibration = config['calibration']
    if calibration.get('grid_cols', 0) <= 0 or calibration.get('grid_rows', 0) <= 0:
        LOGGER.error("Calibration grid dimensions must be positive")
        return False
    if calibration['grid_cols'] * calibration['grid_rows'] != NUM_CODES:
        LOGGER.error("Calibration grid %dx%d must hold exactly %d codes",
                     calibration['grid_cols'], calibration['grid_rows'], NUM_CODES)
        return False
    if calibration.get('grid_spacing', 0) <= 0:
        LOGGER.error("Calibration grid spacing must be positive")
        return False

    LOGGER.debug("Configuration validated successfully")
    return True


def get_timestamp():
    """Get current timestamp string.

    Returns:
        str: Formatted timestamp
    """
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def create_directory(path):
    """Create directory if it doesn't exist.

    Args:
        path: Directory path to create

    Returns:
        bool: True if created or exists, False on error
    """
    try:
        Path(path).mkdir(parents=True, exist_ok=True)
        return True
    except OSError as e:
        LOGGER.error("Failed to create directory %s: %s", path, e)
        return False
