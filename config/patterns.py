import logging
import re
from typing import Dict, Pattern

logger = logging.getLogger(__name__)

# Backend path patterns consulted by the cache policy, matched against URL paths.
BACKEND_PATH_PATTERNS: Dict[str, str] = {
    'public_catalog': r'^/rest/v1/plank_exercises',
    'public_storage': r'^/storage/v1/object/public/',
}

# File extensions treated as static sub-resources when a request carries no destination.
STATIC_EXTENSION_PATTERNS: Dict[str, str] = {
    'script': r'\.(?:m?js)$',
    'style': r'\.css$',
    'image': r'\.(?:png|jpe?g|gif|svg|webp|avif|ico)$',
}

# Headers whose presence marks a request as credential-bearing.
CREDENTIAL_HEADERS = ('Authorization',)

def compile_patterns(patterns_dict: Dict[str, str]) -> Dict[str, Pattern]:
    compiled = {}
    for name, pattern in patterns_dict.items():
        try:
            compiled[name] = re.compile(pattern, re.IGNORECASE)
        except re.error as e:
            logger.warning(f"Invalid pattern '{name}': {e}")
            continue
    return compiled

BACKEND_PATH_PATTERNS_COMPILED = compile_patterns(BACKEND_PATH_PATTERNS)
STATIC_EXTENSION_PATTERNS_COMPILED = compile_patterns(STATIC_EXTENSION_PATTERNS)
