"""
Class imbalance handling: up-sampling, down-sampling and SMOTE.
"""

import logging
from typing import Any, Dict, Optional

from imblearn.over_sampling import RandomOverSampler, SMOTE
from imblearn.under_sampling import RandomUnderSampler

logger = logging.getLogger(__name__)

SAMPLING_METHODS = ('none', 'upsample', 'downsample', 'smote')


def create_sampler(imbalance_config: Optional[Dict[str, Any]], random_state: int = 42):
    """Build the resampler named by ``imbalance_config['method']``.

    Returns None when no resampling is requested. The sampler belongs
    inside an imblearn Pipeline so it only runs while fitting.
    """
    imbalance_config = imbalance_config or {}
    method = imbalance_config.get('method', 'none') or 'none'
    sampling_strategy = imbalance_config.get('sampling_strategy', 'auto')

    if method == 'none':
        return None

    if method == 'upsample':
        sampler = RandomOverSampler(sampling_strategy=sampling_strategy, random_state=random_state)
    elif method == 'downsample':
        sampler = RandomUnderSampler(sampling_strategy=sampling_strategy, random_state=random_state)
    elif method == 'smote':
        sampler = SMOTE(
            sampling_strategy=sampling_strategy,
            k_neighbors=imbalance_config.get('k_neighbors', 5),
            random_state=random_state,
        )
    else:
        raise ValueError(f"Unknown imbalance method: {method}. Expected one of {SAMPLING_METHODS}")

    logger.info(f"Using {type(sampler).__name__} (sampling_strategy={sampling_strategy})")
    return sampler
