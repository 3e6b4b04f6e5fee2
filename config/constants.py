import os
from typing import Dict, Any, List

__version__ = "1.0.0"

DEFAULT_CONFIG: Dict[str, Any] = {
    'origin': 'https://plankcoach.app',
    'backend_url': 'https://plankcoach.supabase.co',
    'backend_host_suffix': 'supabase.co',
    'auth_path_prefix': '/auth/v1',
    'cache_prefix': 'plank-coach-secure',
    'cache_version': '1',
    'offline_url': '/',
    'parallel_workers': 8,
    'request_timeout': 15,
    'max_notification_actions': 2,
    'static_strategy': 'cache-first',
    'subscription_propagation_delay': 1.0,
    'reconcile_interval': 300.0,
    'user_agent': 'Mozilla/5.0 (compatible; PlankWorker/1.0.0)',
}

ESSENTIAL_RESOURCES: List[str] = [
    DEFAULT_CONFIG['offline_url'],
    '/favicon.ico',
    '/placeholder.svg',
    '/icons/notification-workout.png',
    '/icons/notification-achievement.png',
    '/icons/notification-streak.png',
    '/icons/notification-progress.png',
]

CACHE_LIMITS = {
    'max_entries_per_generation': 1000,
    'max_body_bytes': 10 * 1024 * 1024,
}

HTTP_CONFIG = {
    'max_retries': 2,
    'retry_status_codes': [408, 425, 429, 500, 502, 503, 504],
    'retry_backoff_factor': 0.5,
    'retry_methods': ['GET', 'HEAD'],
    'pool_connections': 10,
    'pool_maxsize': 20,
}

STATIC_DESTINATIONS = ('image', 'script', 'style')

# Notification rendering tables
NOTIFICATION_DEFAULTS: Dict[str, Any] = {
    'title': 'Plank Coach',
    'body': 'Time for your workout!',
    'icon': '/icons/notification-workout.png',
    'badge': '/icons/notification-workout.png',
    'vibrate': [200, 100, 200],
    'require_interaction': True,
    'tag': 'plank-coach-notification',
    'category': 'reminder',
    'actions': [
        {'action': 'start-workout', 'title': '💪 Start Workout'},
        {'action': 'view-progress', 'title': '📊 View Progress'},
    ],
}

NOTIFICATION_ICONS: Dict[str, str] = {
    'achievement': '/icons/notification-achievement.png',
    'achievements': '/icons/notification-achievement.png',
    'streak': '/icons/notification-streak.png',
    'streaks': '/icons/notification-streak.png',
    'progress': '/icons/notification-progress.png',
    'milestone': '/icons/notification-progress.png',
    'milestones': '/icons/notification-progress.png',
    'reminder': '/icons/notification-workout.png',
    'reminders': '/icons/notification-workout.png',
    'workout': '/icons/notification-workout.png',
}
DEFAULT_NOTIFICATION_ICON = '/icons/notification-workout.png'

VIBRATION_PATTERNS: Dict[str, List[int]] = {
    'achievement': [200, 150, 300, 150, 400],
    'streak': [150, 100, 150, 100, 150],
    'progress': [100, 50, 100],
    'reminder': [200, 100, 200],
}
DEFAULT_VIBRATION = [200, 100, 200]

CATEGORY_ACTIONS: Dict[str, List[Dict[str, str]]] = {
    'achievement': [
        {'action': 'view-achievement', 'title': '🏆 View Achievement'},
        {'action': 'share', 'title': '📤 Share'},
    ],
    'streak': [
        {'action': 'quick-workout', 'title': '⚡ Quick Plank'},
        {'action': 'full-workout', 'title': '💪 Full Workout'},
    ],
    'progress': [
        {'action': 'view-stats', 'title': '📈 View Stats'},
        {'action': 'set-goal', 'title': '🎯 Set Goal'},
    ],
}

# Click routing tables
ACTION_ROUTES: Dict[str, str] = {
    'start-workout': '/?tab=workout',
    'quick-workout': '/?tab=workout',
    'full-workout': '/?tab=workout',
    'view-progress': '/?tab=stats',
    'view-stats': '/?tab=stats',
    'set-goal': '/?tab=stats',
    'view-achievement': '/?tab=achievements',
}
CATEGORY_ROUTES: Dict[str, str] = {
    'achievement': '/?tab=achievements',
    'streak': '/?tab=workout',
    'reminder': '/?tab=workout',
    'progress': '/?tab=stats',
    'milestone': '/?tab=stats',
}
DEFAULT_ROUTE = '/'
SHARE_ACTION = 'share'
DISMISS_ACTION = 'dismiss'
SHARE_FALLBACK_URL = '/?tab=achievements&share=true'

SYNC_SESSIONS_TAG = 'sync-sessions'
OFFLINE_SESSIONS_KEY = 'offline_workout_sessions'

BACKEND_PATHS = {
    'push_subscriptions': '/rest/v1/push_subscriptions',
    'notification_interactions': '/rest/v1/notification_interactions',
    'workout_sessions': '/rest/v1/user_sessions',
    'vapid_public_key': '/functions/v1/get-vapid-public-key',
}

EXIT_CODES = {
    'SUCCESS': 0,
    'USAGE_ERROR': 1,
    'NETWORK_ERROR': 2,
    'CONFIG_ERROR': 3,
    'CACHE_ERROR': 4,
    'UNKNOWN_ERROR': 255
}

ENV_VARS = {
    'PLANKWORKER_ORIGIN': 'origin',
    'PLANKWORKER_BACKEND_URL': 'backend_url',
    'PLANKWORKER_CACHE_VERSION': 'cache_version',
    'PLANKWORKER_CACHE_DIR': 'cache_dir',
    'PLANKWORKER_PARALLEL': 'parallel_workers',
    'PLANKWORKER_TIMEOUT': 'request_timeout',
    'PLANKWORKER_STATIC_STRATEGY': 'static_strategy',
    'PLANKWORKER_LOG_LEVEL': 'log_level',
    'PLANKWORKER_LOG_FILE': 'log_file',
}

def get_version() -> str:
    return __version__

def get_user_agent() -> str:
    return os.getenv('PLANKWORKER_USER_AGENT') or DEFAULT_CONFIG['user_agent']

def cache_generation_name(prefix: str, version: str) -> str:
    return f"{prefix}-v{version}"

def is_valid_parallel_count(count: int) -> bool:
    return 1 <= count <= 64

def is_valid_timeout(timeout: int) -> bool:
    return 1 <= timeout <= 300
