from .backend import BackendClient
from .page import ALLOWED_STORAGE_KEYS, ForegroundPage
from .reconciler import PushManager, SubscriptionReconciler, url_base64_to_bytes
from .storage import DurableStorage

__all__ = [
    'BackendClient',
    'ForegroundPage',
    'ALLOWED_STORAGE_KEYS',
    'PushManager',
    'SubscriptionReconciler',
    'url_base64_to_bytes',
    'DurableStorage',
]
