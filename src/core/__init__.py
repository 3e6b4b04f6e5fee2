__version__ = "1.0.0"
__author__ = "Plank Coach"
__description__ = "Offline-first background agent for the Plank Coach web app"

from .agent import ServiceWorkerAgent
from .bridge import UNAVAILABLE, SecureBridge
from .cache_store import CacheGeneration, CacheStorage
from .clients import ClientRegistry, WindowClient
from .dispatcher import CacheStrategyDispatcher
from .fetcher import NetworkFetcher, create_session
from .lifecycle import LifecycleManager, LifecycleState, evict_stale_generations
from .normalizer import URLNormalizer, url_normalizer
from .notifications import NotificationCenter
from .policy import CachePolicy, CachePolicyRule, CacheStrategy
from .push_renderer import PushRenderer
from .router import NotificationRouter, RouteTarget, resolve
from .sync import BackgroundSync

__all__ = [
    'ServiceWorkerAgent',
    'SecureBridge',
    'UNAVAILABLE',
    'CacheGeneration',
    'CacheStorage',
    'ClientRegistry',
    'WindowClient',
    'CacheStrategyDispatcher',
    'NetworkFetcher',
    'create_session',
    'LifecycleManager',
    'LifecycleState',
    'evict_stale_generations',
    'URLNormalizer',
    'url_normalizer',
    'NotificationCenter',
    'CachePolicy',
    'CachePolicyRule',
    'CacheStrategy',
    'PushRenderer',
    'NotificationRouter',
    'RouteTarget',
    'resolve',
    'BackgroundSync',
]
